"""
Download specification for mongod archives.

A DownloadSpec pins every field that goes into the artifact URL on
fastdl.mongodb.org. URL derivation is a pure function of those fields, so
two equal specs always produce the same URLs.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from memongo.core.exceptions import UnsupportedSystemError
from memongo.core.platform import (
    GENERIC_DISTRIBUTION,
    OS_LINUX,
    OS_MACOS,
    PlatformInfo,
    SystemContext,
    detect_platform,
)
from memongo.core.version import Version, parse_version

logger = logging.getLogger(__name__)

DOWNLOAD_BASE_URL = "https://fastdl.mongodb.org"
PUBLIC_KEY_URL_TEMPLATE = "https://www.mongodb.org/static/pgp/server-{major}.{minor}.asc"
CHECKSUM_SUFFIX = ".sha256"
SIGNATURE_SUFFIX = ".sig"

# Generic Linux tarballs stopped being published with this release
GENERIC_LINUX_CUTOFF = Version(4, 2, 0)
# macOS builds before this release carry an "osx-ssl" designator
MACOS_SSL_CUTOFF = Version(4, 2, 0)


@dataclass(frozen=True)
class DownloadSpec:
    """
    Everything needed to locate one mongod archive.

    Attributes:
        version: MongoDB version
        platform: 'osx' or 'linux'
        arch: CPU architecture, 'x86_64'
        distribution: Linux distribution tag (e.g. 'ubuntu1804'), "" for generic/macOS
        ssl_build: Whether the legacy macOS "osx-ssl" build is needed
    """

    version: Version
    platform: str
    arch: str
    distribution: str = GENERIC_DISTRIBUTION
    ssl_build: bool = False

    @property
    def archive_name(self) -> str:
        """
        File name of the archive on the download server.

        Example:
            >>> DownloadSpec(Version(4, 0, 5), "linux", "x86_64", "ubuntu1804").archive_name
            'mongodb-linux-x86_64-ubuntu1804-4.0.5.tgz'
        """
        if self.platform == OS_LINUX:
            name = f"mongodb-linux-{self.arch}-"
            if self.distribution:
                name += f"{self.distribution}-"
        elif self.ssl_build:
            name = f"mongodb-osx-ssl-{self.arch}-"
        else:
            name = f"mongodb-macos-{self.arch}-"
        return f"{name}{self.version}.tgz"

    @property
    def download_url(self) -> str:
        return f"{DOWNLOAD_BASE_URL}/{self.platform}/{self.archive_name}"

    @property
    def checksum_url(self) -> str:
        return checksum_url_for(self.download_url)

    @property
    def signature_url(self) -> str:
        return signature_url_for(self.download_url)

    @property
    def public_key_url(self) -> str:
        return public_key_url_for(self.version)


def checksum_url_for(download_url: str) -> str:
    return download_url + CHECKSUM_SUFFIX


def signature_url_for(download_url: str) -> str:
    return download_url + SIGNATURE_SUFFIX


def public_key_url_for(version: Version) -> str:
    """Release signing key for a MongoDB major.minor series."""
    return PUBLIC_KEY_URL_TEMPLATE.format(major=version.major, minor=version.minor)


def make_download_spec(
    version: Union[str, Version],
    platform_info: Optional[PlatformInfo] = None,
    context: Optional[SystemContext] = None,
) -> DownloadSpec:
    """
    Build the DownloadSpec for ``version`` on the given (or detected) platform.

    Args:
        version: Version string or parsed Version
        platform_info: Platform to build for, detected from ``context`` if None
        context: System facts used for detection

    Returns:
        DownloadSpec

    Raises:
        UnsupportedVersionError: If the version is malformed or too old
        UnsupportedSystemError: If the platform is unsupported, or if it is a
            generic Linux and the version no longer ships generic builds

    Example:
        >>> spec = make_download_spec("4.2.1", PlatformInfo("osx", "x86_64"))
        >>> spec.download_url
        'https://fastdl.mongodb.org/osx/mongodb-macos-x86_64-4.2.1.tgz'
    """
    parsed = version if isinstance(version, Version) else parse_version(version)
    info = platform_info or detect_platform(context)

    distribution = info.distribution_tag(parsed)

    if info.os == OS_LINUX and not distribution and parsed >= GENERIC_LINUX_CUTOFF:
        raise UnsupportedSystemError(
            "MongoDB 4.2 removed support for generic linux tarballs. Specify the "
            "download URL manually or use a supported distro. See: "
            "https://www.mongodb.com/blog/post/a-proposal-to-endoflife-our-generic-linux-tar-packages",
            os_name=info.os,
            arch=info.arch,
            distribution=info.distribution_id or None,
        )

    spec = DownloadSpec(
        version=parsed,
        platform=info.os,
        arch=info.arch,
        distribution=distribution,
        ssl_build=info.os == OS_MACOS and parsed < MACOS_SSL_CUTOFF,
    )

    logger.debug(f"Resolved {spec} for {info}")
    return spec


__all__ = [
    "DownloadSpec",
    "make_download_spec",
    "checksum_url_for",
    "signature_url_for",
    "public_key_url_for",
    "DOWNLOAD_BASE_URL",
]
