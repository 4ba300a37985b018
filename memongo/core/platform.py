"""
Platform detection for memongo.

This module determines which mongod build fits the running machine:

- Operating system family ('osx' or 'linux', named as on the download server)
- CPU architecture ('x86_64')
- Linux distribution and release, read from /etc/os-release with a fallback
  to /etc/redhat-release

All facts come from a SystemContext so that tests (and callers provisioning
for another machine) can describe a system explicitly instead of patching
module globals.

Usage:
    from memongo.core.platform import SystemContext, detect_platform
    from memongo.core.version import parse_version

    info = detect_platform(SystemContext.current())
    print(info.distribution_tag(parse_version("4.0.5")))
"""

import logging
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from memongo.core.exceptions import UnsupportedSystemError
from memongo.core.version import Version

logger = logging.getLogger(__name__)

OS_MACOS = "osx"
OS_LINUX = "linux"
ARCH_X86_64 = "x86_64"

# Empty tag: no distribution-specific build, use the generic tarball
GENERIC_DISTRIBUTION = ""

DEFAULT_OS_RELEASE_PATH = Path("/etc/os-release")
DEFAULT_REDHAT_RELEASE_PATH = Path("/etc/redhat-release")


@dataclass(frozen=True)
class SystemContext:
    """
    Facts about the machine memongo runs on.

    Attributes:
        system: Lower-cased OS name as reported by platform.system()
        machine: Lower-cased machine name as reported by platform.machine()
        os_release_path: Location of the os-release descriptor
        redhat_release_path: Location of the legacy Red Hat release file
        environ: Environment variables consulted during option resolution
    """

    system: str
    machine: str
    os_release_path: Path = DEFAULT_OS_RELEASE_PATH
    redhat_release_path: Path = DEFAULT_REDHAT_RELEASE_PATH
    environ: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def current(cls) -> "SystemContext":
        """Describe the running process' own system."""
        return cls(
            system=platform.system().lower(),
            machine=platform.machine().lower(),
            environ=dict(os.environ),
        )

    def getenv(self, key: str) -> str:
        """Return an environment variable, or "" when unset."""
        return self.environ.get(key, "")


@dataclass(frozen=True)
class PlatformInfo:
    """
    Detected platform.

    Attributes:
        os: 'osx' or 'linux'
        arch: 'x86_64'
        distribution_id: os-release ID (e.g. 'ubuntu'), empty if unknown
        distribution_release: Major release number from VERSION_ID, if parseable
        legacy_release: Content of the Red Hat release file when os-release is absent
    """

    os: str
    arch: str
    distribution_id: str = ""
    distribution_release: Optional[int] = None
    legacy_release: str = ""

    def distribution_tag(self, version: Version) -> str:
        """
        Map this platform to the distribution tag used in download URLs.

        A distribution is only tagged once ``version`` is new enough to have
        a published build for it; otherwise an older tag or the generic
        build is chosen.

        Example:
            >>> info = PlatformInfo("linux", "x86_64", "ubuntu", 18)
            >>> info.distribution_tag(Version(4, 0, 5))
            'ubuntu1804'
            >>> info.distribution_tag(Version(4, 0, 0))
            'ubuntu1604'
        """
        if self.os != OS_LINUX:
            return GENERIC_DISTRIBUTION

        if self.distribution_id:
            return _tag_from_os_release(
                self.distribution_id, self.distribution_release, version
            )

        if "release 6" in self.legacy_release:
            # RHEL 7+ ships os-release, so only RHEL 6 is recognised here
            return "rhel62"

        return GENERIC_DISTRIBUTION

    def __str__(self) -> str:
        parts = [f"{self.os}-{self.arch}"]
        if self.distribution_id:
            release = (
                self.distribution_release
                if self.distribution_release is not None
                else "?"
            )
            parts.append(f"({self.distribution_id} {release})")
        return " ".join(parts)


# (minimum distribution release, minimum MongoDB version, tag), checked in order
_DISTRIBUTION_TABLE: Dict[str, list] = {
    "ubuntu": [
        (22, Version(6, 0, 4), "ubuntu2204"),
        (20, Version(4, 4, 0), "ubuntu2004"),
        (18, Version(4, 0, 1), "ubuntu1804"),
        (16, Version(3, 2, 7), "ubuntu1604"),
        (14, Version(0, 0, 0), "ubuntu1404"),
    ],
    "debian": [
        (11, Version(5, 0, 8), "debian11"),
        (10, Version(4, 2, 1), "debian10"),
        (9, Version(3, 6, 5), "debian92"),
        (8, Version(3, 2, 8), "debian81"),
    ],
    "sles": [
        (12, Version(0, 0, 0), "suse12"),
    ],
    "rhel": [
        (8, Version(4, 2, 1), "rhel80"),
        (7, Version(0, 0, 0), "rhel70"),
    ],
    "centos": [
        (8, Version(4, 2, 1), "rhel80"),
        (7, Version(0, 0, 0), "rhel70"),
    ],
}


def _tag_from_os_release(
    distribution_id: str, release: Optional[int], version: Version
) -> str:
    if release is None:
        return GENERIC_DISTRIBUTION

    if distribution_id == "amzn":
        # Amazon Linux 1 reports a release date (e.g. 2018.03), not a number
        if release == 2 and version.is_at_least(4, 0, 0):
            return "amazon2"
        return "amazon"

    for min_release, min_version, tag in _DISTRIBUTION_TABLE.get(distribution_id, []):
        if release >= min_release and version >= min_version:
            return tag

    return GENERIC_DISTRIBUTION


def parse_os_release(content: str) -> Dict[str, str]:
    """
    Parse os-release style KEY=value content.

    Blank lines, comments and lines without '=' are skipped. Values may be
    double-quoted, single-quoted or bare.

    Example:
        >>> parse_os_release('ID=ubuntu\\nVERSION_ID="18.04"\\n')
        {'ID': 'ubuntu', 'VERSION_ID': '18.04'}
    """
    values = {}

    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip().strip('"').strip("'")
        value = value.strip().strip('"').strip("'")
        value = (
            value.replace('\\"', '"')
            .replace("\\$", "$")
            .replace("\\`", "`")
            .replace("\\\\", "\\")
        )

        values[key] = value

    return values


def _read_optional(path: Path) -> Optional[str]:
    """Read a descriptor file, None if it does not exist."""
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None
    except OSError as e:
        raise UnsupportedSystemError(
            f"could not read {path}: {e}", os_name=OS_LINUX
        ) from e


def _parse_release_number(version_id: str) -> Optional[int]:
    major = version_id.split(".", 1)[0]
    if not major.isdigit():
        return None
    return int(major)


def _detect_os(context: SystemContext) -> str:
    if context.system == "darwin":
        return OS_MACOS
    if context.system == "linux":
        return OS_LINUX
    raise UnsupportedSystemError(
        f"your platform, {context.system}, is not supported",
        os_name=context.system,
    )


def _detect_architecture(context: SystemContext, os_name: str) -> str:
    if context.machine in ("x86_64", "amd64", "x64"):
        return ARCH_X86_64
    raise UnsupportedSystemError(
        f"your architecture, {context.machine}, is not supported",
        os_name=os_name,
        arch=context.machine,
    )


def detect_platform(context: Optional[SystemContext] = None) -> PlatformInfo:
    """
    Detect the platform described by ``context``.

    On Linux the os-release file is consulted first; when it does not exist
    the Red Hat release file is read instead, and when neither exists the
    platform is treated as generic Linux. Any other failure reading those
    files is an error.

    Args:
        context: System facts, defaults to SystemContext.current()

    Returns:
        PlatformInfo

    Raises:
        UnsupportedSystemError: Unsupported OS or architecture, or an
            unreadable descriptor file
    """
    context = context or SystemContext.current()

    os_name = _detect_os(context)
    arch = _detect_architecture(context, os_name)

    if os_name != OS_LINUX:
        return PlatformInfo(os=os_name, arch=arch)

    os_release = _read_optional(context.os_release_path)
    if os_release is not None:
        values = parse_os_release(os_release)
        info = PlatformInfo(
            os=os_name,
            arch=arch,
            distribution_id=values.get("ID", "").lower(),
            distribution_release=_parse_release_number(values.get("VERSION_ID", "")),
        )
        logger.debug(f"Detected {info} from {context.os_release_path}")
        return info

    legacy = _read_optional(context.redhat_release_path)
    if legacy is not None:
        logger.debug(f"Using {context.redhat_release_path}: {legacy.strip()}")
        return PlatformInfo(os=os_name, arch=arch, legacy_release=legacy)

    logger.debug("No OS descriptor file found, assuming generic Linux")
    return PlatformInfo(os=os_name, arch=arch)


__all__ = [
    "SystemContext",
    "PlatformInfo",
    "detect_platform",
    "parse_os_release",
    "OS_MACOS",
    "OS_LINUX",
    "ARCH_X86_64",
    "GENERIC_DISTRIBUTION",
]
