"""
Server options and their resolution.

Options holds what the caller asked for; Options.resolve() fills in every
default from the environment and the system context, producing a
ResolvedOptions that the supervisor consumes. Nothing here mutates process
state other than the level of the logger handed in.

Environment variables consulted (through the SystemContext):

    MEMONGO_MONGOD_VERSION   version to provision
    MEMONGO_MONGOD_BIN       explicit mongod binary, skips provisioning
    MEMONGO_DOWNLOAD_URL     explicit archive URL
    MEMONGO_CACHE_PATH       cache root (see memongo.core.directory)
    MEMONGO_MONGOD_PORT      listen port
"""

import logging
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import requests
import yaml

from memongo.binary.spec import make_download_spec
from memongo.core.directory import get_default_cache_dir
from memongo.core.exceptions import ConfigurationError, UnsupportedVersionError
from memongo.core.platform import SystemContext
from memongo.core.version import Version, parse_version
from memongo.server.readiness import LogFormat, log_format_for_version
from memongo.server.watchdog import Watchdog, default_watchdog

logger = logging.getLogger(__name__)

ENV_VERSION = "MEMONGO_MONGOD_VERSION"
ENV_BIN = "MEMONGO_MONGOD_BIN"
ENV_DOWNLOAD_URL = "MEMONGO_DOWNLOAD_URL"
ENV_PORT = "MEMONGO_MONGOD_PORT"

DEFAULT_STARTUP_TIMEOUT = 10.0
DEFAULT_LOGGER_NAME = "memongo.server"

# mongod before 4.0 cannot bind port 0 and report the chosen port
EPHEMERAL_PORT_MIN_MAJOR = 4

# Keys accepted in an options file
FILE_KEYS = (
    "mongo_version",
    "mongod_bin",
    "download_url",
    "cache_path",
    "port",
    "startup_timeout",
    "log_level",
    "log_format",
    "verify_checksum",
    "verify_signature",
)


@dataclass
class Options:
    """
    Caller-facing options for starting a server.

    Every field is optional. At least one of ``mongo_version``,
    ``download_url`` or ``mongod_bin`` must be available, either here or
    through the environment.

    Attributes:
        mongo_version: MongoDB version to provision, e.g. "4.0.5"
        mongod_bin: Use this mongod instead of downloading one
        download_url: Download this archive instead of the computed URL
        cache_path: Root of the binary cache
        port: Listen port, 0 to choose automatically
        startup_timeout: Seconds to wait for readiness
        log_level: Level applied to the logger (name or number)
        logger: Logger receiving diagnostics and relayed mongod output
        log_format: "auto", "text" or "json"; derived from the version if None
        verify_checksum: Check archives against their published SHA-256
        verify_signature: Check archives against MongoDB's GPG signature;
            defaults to on when a version is known
        context: System facts and environment used for resolution
        session: requests session used for downloads
        watchdog: Orphan watchdog implementation
    """

    mongo_version: Optional[str] = None
    mongod_bin: Optional[Union[str, Path]] = None
    download_url: Optional[str] = None
    cache_path: Optional[Union[str, Path]] = None
    port: int = 0
    startup_timeout: float = DEFAULT_STARTUP_TIMEOUT
    log_level: Optional[Union[int, str]] = None
    logger: Optional[logging.Logger] = None
    log_format: Optional[Union[str, LogFormat]] = None
    verify_checksum: bool = True
    verify_signature: Optional[bool] = None
    context: Optional[SystemContext] = None
    session: Optional[requests.Session] = field(default=None, repr=False)
    watchdog: Optional[Watchdog] = field(default=None, repr=False)

    def resolve(self) -> "ResolvedOptions":
        """
        Fill in defaults.

        Raises:
            ConfigurationError: If the options are contradictory or incomplete
            UnsupportedVersionError: If a download needs a version that is invalid
            UnsupportedSystemError: If no download exists for this system
        """
        context = self.context or SystemContext.current()

        version_string = self.mongo_version or context.getenv(ENV_VERSION)
        mongod_bin = self.mongod_bin or context.getenv(ENV_BIN)

        version: Optional[Version] = None
        download_url: Optional[str] = None
        cache_path: Optional[Path] = None

        if mongod_bin:
            version = _version_hint(version_string)
        else:
            cache_path = (
                Path(self.cache_path)
                if self.cache_path
                else get_default_cache_dir(context)
            )
            if version_string:
                version = parse_version(version_string)

            download_url = self.download_url or context.getenv(ENV_DOWNLOAD_URL)
            if not download_url:
                if version is None:
                    raise ConfigurationError(
                        "one of mongo_version, download_url or mongod_bin must be "
                        f"given (or {ENV_VERSION}, {ENV_DOWNLOAD_URL}, {ENV_BIN})"
                    )
                download_url = make_download_spec(version, context=context).download_url

        verify_signature = self.verify_signature
        if verify_signature is None:
            verify_signature = version is not None and not mongod_bin
        elif verify_signature and version is None and not mongod_bin:
            raise ConfigurationError(
                "signature verification requires mongo_version to select the signing key"
            )

        port = self.port or _port_from_env(context)
        if port < 0 or port > 65535:
            raise ConfigurationError(f"port must be between 0 and 65535, got {port}")
        if port == 0 and (version is None or version.major < EPHEMERAL_PORT_MIN_MAJOR):
            port = get_free_port()

        if self.startup_timeout <= 0:
            raise ConfigurationError(
                f"startup_timeout must be positive, got {self.startup_timeout}"
            )

        return ResolvedOptions(
            mongod_bin=Path(mongod_bin) if mongod_bin else None,
            download_url=download_url,
            version=version,
            cache_path=cache_path,
            port=port,
            startup_timeout=float(self.startup_timeout),
            log_format=_resolve_log_format(self.log_format, version),
            logger=_resolve_logger(self.logger, self.log_level),
            verify_checksum=self.verify_checksum,
            verify_signature=bool(verify_signature),
            session=self.session,
            watchdog=self.watchdog or default_watchdog(),
        )


@dataclass(frozen=True)
class ResolvedOptions:
    """Options with every default filled in."""

    mongod_bin: Optional[Path]
    download_url: Optional[str]
    version: Optional[Version]
    cache_path: Optional[Path]
    port: int
    startup_timeout: float
    log_format: LogFormat
    logger: logging.Logger
    verify_checksum: bool
    verify_signature: bool
    session: Optional[requests.Session] = field(default=None, repr=False)
    watchdog: Optional[Watchdog] = field(default=None, repr=False)


def _version_hint(version_string: str) -> Optional[Version]:
    # A version alongside an explicit binary only tunes port and log format
    if not version_string:
        return None
    try:
        return parse_version(version_string)
    except UnsupportedVersionError as e:
        logger.debug(f"Ignoring version hint: {e}")
        return None


def _port_from_env(context: SystemContext) -> int:
    raw = context.getenv(ENV_PORT)
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PORT} must be an integer, got {raw!r}")


def _resolve_log_format(
    value: Optional[Union[str, LogFormat]], version: Optional[Version]
) -> LogFormat:
    if value is None:
        return log_format_for_version(version)
    try:
        return LogFormat(value.lower() if isinstance(value, str) else value)
    except ValueError:
        choices = ", ".join(f.value for f in LogFormat)
        raise ConfigurationError(f"log_format must be one of {choices}, got {value!r}")


def _resolve_logger(
    configured: Optional[logging.Logger], level: Optional[Union[int, str]]
) -> logging.Logger:
    target = configured or logging.getLogger(DEFAULT_LOGGER_NAME)
    if level is None:
        return target

    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ConfigurationError(f"unknown log level: {level!r}")
        level = numeric

    target.setLevel(level)
    return target


def get_free_port() -> int:
    """Ask the OS for a currently unused TCP port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("localhost", 0))
        return sock.getsockname()[1]


def load_options(path: Union[str, Path]) -> Options:
    """
    Load Options from a YAML file.

    Example file:

        mongo_version: "4.0.5"
        startup_timeout: 20
        log_format: text

    Raises:
        ConfigurationError: If the file is missing, empty, malformed, or
            contains unknown keys
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"options file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML syntax in {path}: {e}")

    if data is None:
        raise ConfigurationError(f"options file is empty: {path}")
    if not isinstance(data, dict):
        raise ConfigurationError(f"options file must contain a mapping: {path}")

    return options_from_dict(data)


def options_from_dict(data: Dict[str, Any]) -> Options:
    """Build Options from plain data, validating keys and value types."""
    unknown = sorted(set(data) - set(FILE_KEYS))
    if unknown:
        raise ConfigurationError(f"unknown option(s): {', '.join(unknown)}")

    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        kwargs[key] = _coerce(key, value)

    return Options(**kwargs)


def _coerce(key: str, value: Any) -> Any:
    if key in ("verify_checksum", "verify_signature"):
        if not isinstance(value, bool):
            raise ConfigurationError(f"{key} must be true or false")
        return value

    if key == "port":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError("port must be an integer")
        return value

    if key == "startup_timeout":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError("startup_timeout must be a number")
        return float(value)

    if key == "log_level" and isinstance(value, int) and not isinstance(value, bool):
        return value

    # YAML reads 4.0 as a float; versions are only meaningful as strings
    if key == "mongo_version" and isinstance(value, (int, float)):
        return str(value)

    if not isinstance(value, str):
        raise ConfigurationError(f"{key} must be a string")
    return value


__all__ = [
    "Options",
    "ResolvedOptions",
    "get_free_port",
    "load_options",
    "options_from_dict",
]
