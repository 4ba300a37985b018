"""
Unit tests for option resolution and options files.
"""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from memongo.core.exceptions import (
    ConfigurationError,
    UnsupportedSystemError,
    UnsupportedVersionError,
)
from memongo.core.platform import SystemContext
from memongo.core.version import Version
from memongo.server.options import (
    Options,
    get_free_port,
    load_options,
    options_from_dict,
)
from memongo.server.readiness import LogFormat
from memongo.server.watchdog import ShellWatchdog

MAC_URL_405 = "https://fastdl.mongodb.org/osx/mongodb-osx-ssl-x86_64-4.0.5.tgz"


def mac(**environ):
    environ.setdefault("HOME", "/home/u")
    return SystemContext("darwin", "x86_64", environ=environ)


class TestResolveBinary:
    """Test how the binary source is resolved."""

    def test_version_computes_url(self):
        """Test a version alone yields the platform's download URL."""
        resolved = Options(mongo_version="4.0.5", context=mac()).resolve()

        assert resolved.download_url == MAC_URL_405
        assert resolved.version == Version(4, 0, 5)
        assert resolved.mongod_bin is None

    def test_version_from_environment(self):
        """Test MEMONGO_MONGOD_VERSION supplies the version."""
        resolved = Options(context=mac(MEMONGO_MONGOD_VERSION="4.0.5")).resolve()

        assert resolved.download_url == MAC_URL_405

    def test_explicit_url_overrides_computed(self):
        """Test download_url wins over the computed URL."""
        resolved = Options(
            mongo_version="4.0.5",
            download_url="https://mirror.example.com/m.tgz",
            context=mac(),
        ).resolve()

        assert resolved.download_url == "https://mirror.example.com/m.tgz"

    def test_url_from_environment(self):
        """Test MEMONGO_DOWNLOAD_URL needs no version or platform support."""
        context = SystemContext(
            "windows", "x86_64", environ={"MEMONGO_DOWNLOAD_URL": "https://x/m.tgz"}
        )

        with patch("memongo.server.options.get_default_cache_dir", return_value=Path("/c")):
            resolved = Options(context=context).resolve()

        assert resolved.download_url == "https://x/m.tgz"
        assert resolved.version is None

    def test_explicit_binary_skips_provisioning(self):
        """Test mongod_bin means no URL and no cache."""
        resolved = Options(mongod_bin="/usr/bin/mongod", context=mac()).resolve()

        assert resolved.mongod_bin == Path("/usr/bin/mongod")
        assert resolved.download_url is None
        assert resolved.cache_path is None

    def test_binary_from_environment(self):
        """Test MEMONGO_MONGOD_BIN is honoured."""
        resolved = Options(context=mac(MEMONGO_MONGOD_BIN="/opt/mongod")).resolve()

        assert resolved.mongod_bin == Path("/opt/mongod")

    def test_binary_with_unparseable_version(self):
        """Test a bad version next to an explicit binary is only a hint."""
        resolved = Options(
            mongod_bin="/opt/mongod", mongo_version="latest", context=mac()
        ).resolve()

        assert resolved.version is None

    def test_nothing_given(self):
        """Test no version, URL or binary is a configuration error."""
        with pytest.raises(ConfigurationError, match="one of mongo_version"):
            Options(context=mac()).resolve()

    def test_invalid_version(self):
        """Test a malformed version fails when provisioning."""
        with pytest.raises(UnsupportedVersionError):
            Options(mongo_version="4.0", context=mac()).resolve()

    def test_unsupported_system(self):
        """Test an unsupported platform fails when a URL must be computed."""
        context = SystemContext("windows", "x86_64", environ={"HOME": "/h"})

        with pytest.raises(UnsupportedSystemError):
            Options(mongo_version="4.0.5", context=context).resolve()


class TestResolveCachePath:
    """Test cache path resolution."""

    def test_explicit(self):
        """Test cache_path option is used as given."""
        resolved = Options(mongo_version="4.0.5", cache_path="/tmp/c", context=mac()).resolve()

        assert resolved.cache_path == Path("/tmp/c")

    def test_from_context(self):
        """Test the default comes from the context's environment."""
        resolved = Options(
            mongo_version="4.0.5", context=mac(MEMONGO_CACHE_PATH="/srv/c")
        ).resolve()

        assert resolved.cache_path == Path("/srv/c")


class TestResolvePort:
    """Test port resolution."""

    def test_explicit_port(self):
        """Test an explicit port is kept."""
        resolved = Options(mongod_bin="/m", port=27999, context=mac()).resolve()

        assert resolved.port == 27999

    def test_port_from_environment(self):
        """Test MEMONGO_MONGOD_PORT supplies the port."""
        resolved = Options(
            mongod_bin="/m", context=mac(MEMONGO_MONGOD_PORT="28001")
        ).resolve()

        assert resolved.port == 28001

    def test_bad_port_environment(self):
        """Test a non-numeric port variable is rejected."""
        with pytest.raises(ConfigurationError, match="MEMONGO_MONGOD_PORT"):
            Options(mongod_bin="/m", context=mac(MEMONGO_MONGOD_PORT="abc")).resolve()

    def test_out_of_range_port(self):
        """Test ports outside 0-65535 are rejected."""
        with pytest.raises(ConfigurationError, match="port must be between"):
            Options(mongod_bin="/m", port=70000, context=mac()).resolve()

    def test_zero_kept_for_modern_versions(self):
        """Test 4.x binaries choose their own port."""
        resolved = Options(mongo_version="4.0.5", context=mac()).resolve()

        assert resolved.port == 0

    @patch("memongo.server.options.get_free_port", return_value=34567)
    def test_probed_for_old_versions(self, mock_port):
        """Test pre-4.0 binaries get a probed free port."""
        resolved = Options(mongo_version="3.6.10", context=mac()).resolve()

        assert resolved.port == 34567
        mock_port.assert_called_once()

    @patch("memongo.server.options.get_free_port", return_value=34567)
    def test_probed_for_unknown_versions(self, mock_port):
        """Test an unknown version is treated conservatively."""
        resolved = Options(mongod_bin="/m", context=mac()).resolve()

        assert resolved.port == 34567


class TestResolveVerification:
    """Test verification defaults."""

    def test_signature_on_with_version(self):
        """Test signatures are verified by default when a version is known."""
        resolved = Options(mongo_version="4.0.5", context=mac()).resolve()

        assert resolved.verify_signature is True
        assert resolved.verify_checksum is True

    def test_signature_off_without_version(self):
        """Test an explicit URL alone disables signature checks by default."""
        resolved = Options(download_url="https://x/m.tgz", context=mac()).resolve()

        assert resolved.verify_signature is False

    def test_signature_forced_without_version(self):
        """Test forcing signatures without a version is an error."""
        with pytest.raises(ConfigurationError, match="signature verification requires"):
            Options(
                download_url="https://x/m.tgz", verify_signature=True, context=mac()
            ).resolve()

    def test_signature_disabled(self):
        """Test signatures can be turned off."""
        resolved = Options(
            mongo_version="4.0.5", verify_signature=False, context=mac()
        ).resolve()

        assert resolved.verify_signature is False


class TestResolveLogging:
    """Test log format and logger resolution."""

    def test_format_from_version(self):
        """Test the log grammar follows the version."""
        old = Options(mongo_version="4.2.8", context=mac()).resolve()
        new = Options(mongo_version="4.4.1", context=mac()).resolve()

        assert old.log_format is LogFormat.TEXT
        assert new.log_format is LogFormat.JSON

    def test_format_explicit(self):
        """Test an explicit format wins, case-insensitively."""
        resolved = Options(mongod_bin="/m", log_format="JSON", context=mac()).resolve()

        assert resolved.log_format is LogFormat.JSON

    def test_format_invalid(self):
        """Test unknown formats are rejected."""
        with pytest.raises(ConfigurationError, match="log_format must be one of"):
            Options(mongod_bin="/m", log_format="xml", context=mac()).resolve()

    def test_logger_level_applied(self):
        """Test log_level is applied to the provided logger."""
        target = logging.getLogger("tests.options.level")

        resolved = Options(
            mongod_bin="/m", logger=target, log_level="debug", context=mac()
        ).resolve()

        assert resolved.logger is target
        assert target.level == logging.DEBUG

    def test_unknown_level(self):
        """Test unknown level names are rejected."""
        with pytest.raises(ConfigurationError, match="unknown log level"):
            Options(mongod_bin="/m", log_level="chatty", context=mac()).resolve()

    def test_default_logger(self):
        """Test a library logger is used when none is given."""
        resolved = Options(mongod_bin="/m", context=mac()).resolve()

        assert resolved.logger.name == "memongo.server"


class TestResolveMisc:
    """Test remaining resolution rules."""

    def test_startup_timeout_must_be_positive(self):
        """Test zero and negative timeouts are rejected."""
        with pytest.raises(ConfigurationError, match="startup_timeout"):
            Options(mongod_bin="/m", startup_timeout=0, context=mac()).resolve()

    def test_default_watchdog(self):
        """Test the platform watchdog is selected by default."""
        resolved = Options(mongod_bin="/m", context=mac()).resolve()

        assert isinstance(resolved.watchdog, ShellWatchdog)

    def test_resolution_does_not_mutate_options(self):
        """Test resolve() leaves the caller's Options untouched."""
        options = Options(mongo_version="4.0.5", context=mac())

        options.resolve()

        assert options.port == 0
        assert options.download_url is None


class TestGetFreePort:
    """Test get_free_port function."""

    def test_returns_usable_port(self):
        """Test a port in the unprivileged range comes back."""
        assert 1024 <= get_free_port() <= 65535


class TestLoadOptions:
    """Test YAML options files."""

    def test_load(self, tmp_path):
        """Test recognised keys populate Options."""
        path = tmp_path / "memongo.yaml"
        path.write_text(
            'mongo_version: "4.0.5"\n'
            "port: 27999\n"
            "startup_timeout: 20\n"
            "log_format: text\n"
            "verify_signature: false\n"
        )

        options = load_options(path)

        assert options.mongo_version == "4.0.5"
        assert options.port == 27999
        assert options.startup_timeout == 20.0
        assert options.log_format == "text"
        assert options.verify_signature is False

    def test_missing_file(self, tmp_path):
        """Test a missing file is a configuration error."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_options(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path):
        """Test an empty file is rejected."""
        path = tmp_path / "memongo.yaml"
        path.write_text("")

        with pytest.raises(ConfigurationError, match="empty"):
            load_options(path)

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML is rejected."""
        path = tmp_path / "memongo.yaml"
        path.write_text("mongo_version: [unclosed\n")

        with pytest.raises(ConfigurationError, match="invalid YAML"):
            load_options(path)

    def test_not_a_mapping(self, tmp_path):
        """Test a top-level list is rejected."""
        path = tmp_path / "memongo.yaml"
        path.write_text("- 4.0.5\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            load_options(path)

    def test_unknown_keys(self):
        """Test unknown keys are reported by name."""
        with pytest.raises(ConfigurationError, match="mongo_verison"):
            options_from_dict({"mongo_verison": "4.0.5"})

    @pytest.mark.parametrize(
        "data",
        [
            {"port": "27017"},
            {"port": True},
            {"verify_checksum": "yes"},
            {"startup_timeout": "soon"},
            {"mongod_bin": 5},
        ],
    )
    def test_wrong_types(self, data):
        """Test values of the wrong type are rejected."""
        with pytest.raises(ConfigurationError):
            options_from_dict(data)

    def test_numeric_version_becomes_string(self):
        """Test an unquoted version scalar is kept as text."""
        assert options_from_dict({"mongo_version": 4.0}).mongo_version == "4.0"
