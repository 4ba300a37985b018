"""
Unit tests for platform detection.
"""

import pytest

from memongo.core.exceptions import UnsupportedSystemError
from memongo.core.platform import (
    PlatformInfo,
    SystemContext,
    detect_platform,
    parse_os_release,
)
from memongo.core.version import Version


class TestParseOsRelease:
    """Test parse_os_release function."""

    def test_quoted_and_bare_values(self):
        """Test double-quoted, single-quoted and bare values."""
        content = 'NAME="Ubuntu"\nID=ubuntu\nVERSION_ID=\'18.04\'\n'

        values = parse_os_release(content)

        assert values["NAME"] == "Ubuntu"
        assert values["ID"] == "ubuntu"
        assert values["VERSION_ID"] == "18.04"

    def test_skips_comments_and_blank_lines(self):
        """Test comments, blank lines and junk lines are ignored."""
        content = "# comment\n\nID=debian\nnot a pair\n"

        assert parse_os_release(content) == {"ID": "debian"}

    def test_value_may_contain_equals(self):
        """Test only the first '=' separates key and value."""
        assert parse_os_release("HOME_URL=https://x/?a=b")["HOME_URL"] == "https://x/?a=b"


class TestDetectPlatform:
    """Test detect_platform function."""

    def test_macos(self):
        """Test darwin maps to osx with no distribution."""
        info = detect_platform(SystemContext("darwin", "x86_64"))

        assert info == PlatformInfo(os="osx", arch="x86_64")

    @pytest.mark.parametrize("machine", ["x86_64", "amd64", "x64"])
    def test_architecture_aliases(self, linux_context, machine):
        """Test x86-64 spellings are normalised."""
        info = detect_platform(linux_context(machine=machine))

        assert info.arch == "x86_64"

    def test_unsupported_os(self):
        """Test windows is rejected."""
        with pytest.raises(UnsupportedSystemError) as exc_info:
            detect_platform(SystemContext("windows", "x86_64"))

        assert "your platform, windows, is not supported" in str(exc_info.value)
        assert str(exc_info.value).startswith(
            "automatic download is not supported on your system"
        )

    def test_unsupported_architecture(self, linux_context):
        """Test non x86-64 machines are rejected."""
        with pytest.raises(UnsupportedSystemError, match="your architecture, aarch64"):
            detect_platform(linux_context(machine="aarch64"))

    def test_linux_with_os_release(self, linux_context):
        """Test ID and VERSION_ID are read from os-release."""
        context = linux_context(os_release='ID=ubuntu\nVERSION_ID="18.04"\n')

        info = detect_platform(context)

        assert info.os == "linux"
        assert info.distribution_id == "ubuntu"
        assert info.distribution_release == 18

    def test_linux_with_redhat_release_only(self, linux_context):
        """Test the Red Hat release file is the fallback."""
        context = linux_context(
            redhat_release="CentOS release 6.10 (Final)\n"
        )

        info = detect_platform(context)

        assert info.distribution_id == ""
        assert "release 6" in info.legacy_release

    def test_linux_without_descriptor_is_generic(self, linux_context):
        """Test no release files means generic Linux."""
        info = detect_platform(linux_context())

        assert info == PlatformInfo(os="linux", arch="x86_64")
        assert info.distribution_tag(Version(4, 0, 5)) == ""

    def test_unreadable_os_release_is_fatal(self, linux_context, tmp_path):
        """Test read errors other than not-found are reported."""
        context = linux_context()
        directory = tmp_path / "etc" / "os-release"
        directory.mkdir()

        with pytest.raises(UnsupportedSystemError, match="could not read"):
            detect_platform(context)


class TestDistributionTag:
    """Test PlatformInfo.distribution_tag mapping."""

    @pytest.mark.parametrize(
        "distribution,release,version,expected",
        [
            ("ubuntu", 22, "6.0.4", "ubuntu2204"),
            ("ubuntu", 22, "5.0.0", "ubuntu2004"),
            ("ubuntu", 20, "4.4.0", "ubuntu2004"),
            ("ubuntu", 18, "4.0.5", "ubuntu1804"),
            ("ubuntu", 18, "4.0.0", "ubuntu1604"),
            ("ubuntu", 16, "4.0.5", "ubuntu1604"),
            ("ubuntu", 16, "3.2.6", "ubuntu1404"),
            ("ubuntu", 14, "4.0.5", "ubuntu1404"),
            ("ubuntu", 12, "4.0.5", ""),
            ("debian", 11, "5.0.8", "debian11"),
            ("debian", 10, "4.2.1", "debian10"),
            ("debian", 9, "4.0.5", "debian92"),
            ("debian", 9, "3.6.4", "debian81"),
            ("debian", 8, "4.0.5", "debian81"),
            ("debian", 8, "3.2.7", ""),
            ("sles", 12, "4.0.5", "suse12"),
            ("rhel", 7, "4.0.5", "rhel70"),
            ("rhel", 8, "4.2.1", "rhel80"),
            ("rhel", 8, "4.0.5", "rhel70"),
            ("centos", 7, "4.0.5", "rhel70"),
            ("amzn", 2, "4.0.5", "amazon2"),
            ("amzn", 2, "3.6.10", "amazon"),
            ("amzn", 2018, "4.0.5", "amazon"),
            ("arch", 1, "4.0.5", ""),
        ],
    )
    def test_table(self, distribution, release, version, expected):
        """Test each distribution/release/version combination."""
        major, minor, patch = (int(p) for p in version.split("."))
        info = PlatformInfo("linux", "x86_64", distribution, release)

        assert info.distribution_tag(Version(major, minor, patch)) == expected

    def test_rhel6_from_legacy_release(self):
        """Test RHEL 6 is recognised from the legacy release file."""
        info = PlatformInfo(
            "linux", "x86_64", legacy_release="Red Hat Enterprise Linux Server release 6.10"
        )

        assert info.distribution_tag(Version(4, 0, 5)) == "rhel62"

    def test_unknown_release_number(self):
        """Test a distribution without a numeric release is generic."""
        info = PlatformInfo("linux", "x86_64", "ubuntu", None)

        assert info.distribution_tag(Version(4, 0, 5)) == ""

    def test_macos_has_no_tag(self):
        """Test non-Linux platforms never carry a distribution."""
        assert PlatformInfo("osx", "x86_64").distribution_tag(Version(4, 0, 5)) == ""
