"""
MongoDB version parsing.

A version is a strict ``major.minor.patch`` triple. Anything else (missing
or extra components, signs, whitespace, pre-release tags) is rejected, as is
any version older than the oldest release memongo knows how to run.
"""

import re
from dataclasses import dataclass

from memongo.core.exceptions import UnsupportedVersionError

_COMPONENT_RE = re.compile(r"[0-9]+")
_COMPONENT_NAMES = ("major", "minor", "patch")


@dataclass(frozen=True, order=True)
class Version:
    """
    Parsed MongoDB version.

    Instances compare lexicographically over (major, minor, patch).

    Example:
        >>> Version(4, 0, 5) < Version(4, 2, 0)
        True
        >>> str(Version(4, 0, 5))
        '4.0.5'
    """

    major: int
    minor: int
    patch: int

    def is_at_least(self, major: int, minor: int = 0, patch: int = 0) -> bool:
        """Return True if this version is >= the given triple."""
        return self >= Version(major, minor, patch)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


MINIMUM_SUPPORTED_VERSION = Version(3, 2, 0)


def parse_version(version: str) -> Version:
    """
    Parse and validate a MongoDB version string.

    Args:
        version: Version string such as "4.0.5"

    Returns:
        Parsed Version

    Raises:
        UnsupportedVersionError: If the string is not three dot-separated
            non-negative integers, or is older than MINIMUM_SUPPORTED_VERSION

    Example:
        >>> parse_version("6.0.4")
        Version(major=6, minor=0, patch=4)
    """
    parts = version.split(".")
    if len(parts) != 3:
        raise UnsupportedVersionError(
            version, "MongoDB version number must be in the form x.y.z"
        )

    numbers = []
    for name, part in zip(_COMPONENT_NAMES, parts):
        if not _COMPONENT_RE.fullmatch(part):
            raise UnsupportedVersionError(version, f"could not parse {name} version")
        numbers.append(int(part))

    parsed = Version(*numbers)

    if parsed < MINIMUM_SUPPORTED_VERSION:
        floor = MINIMUM_SUPPORTED_VERSION
        raise UnsupportedVersionError(
            version,
            f"only MongoDB version {floor.major}.{floor.minor} and above are supported",
        )

    return parsed


__all__ = [
    "Version",
    "MINIMUM_SUPPORTED_VERSION",
    "parse_version",
]
