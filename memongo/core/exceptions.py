"""
Centralized exception hierarchy for memongo.

Every failure the provisioning pipeline or the process supervisor can report
is a subclass of MemongoError, so callers can catch the whole family at once
or inspect a specific stage.
"""

from typing import Optional


# ============================================================================
# Base Exceptions
# ============================================================================


class MemongoError(Exception):
    """Base exception for all memongo errors."""

    pass


class ConfigurationError(MemongoError):
    """Raised when options cannot be resolved into a usable configuration."""

    pass


# ============================================================================
# Resolution Exceptions
# ============================================================================


class UnsupportedVersionError(MemongoError):
    """Malformed version string or a version below the supported floor."""

    def __init__(self, version: str, reason: str):
        self.version = version
        self.reason = reason
        super().__init__(f'unsupported MongoDB version "{version}": {reason}')


class UnsupportedSystemError(MemongoError):
    """Raised when no artifact is published for the detected system."""

    def __init__(
        self,
        reason: str,
        os_name: Optional[str] = None,
        arch: Optional[str] = None,
        distribution: Optional[str] = None,
    ):
        self.reason = reason
        self.os_name = os_name
        self.arch = arch
        self.distribution = distribution
        super().__init__(
            f"automatic download is not supported on your system: {reason}"
        )


# ============================================================================
# Provisioning Exceptions
# ============================================================================


class DownloadError(MemongoError):
    """Raised when an artifact or companion file cannot be fetched."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"error downloading {url}: {reason}")


class IntegrityError(MemongoError):
    """Base exception for artifact verification failures."""

    def __init__(self, message: str, url: str):
        self.url = url
        super().__init__(f"{message} for {url}")


class ChecksumVerificationError(IntegrityError):
    """Downloaded artifact does not match its published checksum."""

    def __init__(self, url: str, expected: str = "", actual: str = ""):
        self.expected = expected
        self.actual = actual
        super().__init__("checksum verification failed", url)


class SignatureVerificationError(IntegrityError):
    """Detached signature does not verify against the release key."""

    def __init__(self, url: str, detail: str = ""):
        self.detail = detail
        super().__init__("signature verification failed", url)


class ArchiveError(MemongoError):
    """Raised when the downloaded archive cannot be read."""

    pass


class BinaryNotFoundInArchiveError(ArchiveError):
    """Raised when the archive ends without the expected binary entry."""

    def __init__(self, url: str, suffix: str):
        self.url = url
        self.suffix = suffix
        super().__init__(f"did not find an entry ending in {suffix!r} in the archive from {url}")


# ============================================================================
# Startup Exceptions
# ============================================================================


class StartupError(MemongoError):
    """Raised when mongod fails to come up."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"mongod startup failed, {reason}")


class WatchdogError(StartupError):
    """Raised when the orphan watchdog cannot be started."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"error starting watcher process: {detail}")


class StartupTimeoutError(MemongoError):
    """Raised when mongod reports neither readiness nor failure in time."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"timed out after {timeout:g}s waiting for mongod to start")


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
]
