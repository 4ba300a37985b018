"""
Core functionality for memongo.

This package contains the foundational modules that the provisioning
pipeline and the process supervisor depend on.
"""

from .exceptions import (
    MemongoError,
    ConfigurationError,
    UnsupportedVersionError,
    UnsupportedSystemError,
    DownloadError,
    IntegrityError,
    ChecksumVerificationError,
    SignatureVerificationError,
    ArchiveError,
    BinaryNotFoundInArchiveError,
    StartupError,
    WatchdogError,
    StartupTimeoutError,
)

from .version import (
    Version,
    parse_version,
)

from .platform import (
    SystemContext,
    PlatformInfo,
    detect_platform,
)

from .directory import (
    get_default_cache_dir,
)

__all__ = [
    "MemongoError",
    "ConfigurationError",
    "UnsupportedVersionError",
    "UnsupportedSystemError",
    "DownloadError",
    "IntegrityError",
    "ChecksumVerificationError",
    "SignatureVerificationError",
    "ArchiveError",
    "BinaryNotFoundInArchiveError",
    "StartupError",
    "WatchdogError",
    "StartupTimeoutError",
    "Version",
    "parse_version",
    "SystemContext",
    "PlatformInfo",
    "detect_platform",
    "get_default_cache_dir",
]
