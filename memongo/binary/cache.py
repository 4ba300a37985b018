"""
Content-addressed on-disk cache for mongod binaries.

Layout::

    <cache root>/<sanitized archive name>_<first 10 hex chars of sha256(url)>/mongod

The directory name is a pure function of the download URL. The readable
part comes from the URL's last path segment; the hash suffix keeps two URLs
with the same file name apart. The binary's existence is the only state the
cache keeps.
"""

import hashlib
import logging
import posixpath
import re
from pathlib import Path
from urllib.parse import urlparse

from memongo.core.exceptions import ConfigurationError
from memongo.core.filesystem import atomic_install

logger = logging.getLogger(__name__)

BINARY_NAME = "mongod"
HASH_PREFIX_LENGTH = 10

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_filename(name: str) -> str:
    """
    Replace every character outside [a-zA-Z0-9_-] with '_'.

    Example:
        >>> sanitize_filename("mongodb-macos-x86_64-4.2.1.tgz")
        'mongodb-macos-x86_64-4_2_1_tgz'
    """
    return _UNSAFE_FILENAME_CHARS.sub("_", name)


def _url_basename(path: str) -> str:
    trimmed = path.rstrip("/")
    if not trimmed:
        return "/" if path else "."
    return posixpath.basename(trimmed)


def directory_name_for_url(url: str) -> str:
    """
    Cache directory name for a download URL.

    Raises:
        ConfigurationError: If the URL cannot be parsed
    """
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:HASH_PREFIX_LENGTH]

    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ConfigurationError(f"could not parse url {url!r}: {e}") from e

    return f"{sanitize_filename(_url_basename(parsed.path))}_{digest}"


class ArtifactCache:
    """
    Cache of extracted mongod binaries under a root directory.

    Example:
        >>> cache = ArtifactCache(Path("~/.cache/memongo").expanduser())
        >>> path = cache.path_for_url(spec.download_url)
        >>> if not cache.exists(path):
        ...     cache.install(extracted_tmp_file, path)
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def path_for_url(self, url: str) -> Path:
        """Where the binary downloaded from ``url`` lives."""
        return self.root / directory_name_for_url(url) / BINARY_NAME

    def exists(self, path: Path) -> bool:
        return Path(path).is_file()

    def install(self, source: Path, path: Path) -> Path:
        """
        Atomically move a finished binary into the cache.

        Racing installers of the same path are safe: each renames a complete
        file and the last rename wins. ``source`` is consumed either way.
        """
        installed = atomic_install(source, path)
        logger.debug(f"Installed {installed}")
        return installed


__all__ = [
    "ArtifactCache",
    "BINARY_NAME",
    "directory_name_for_url",
    "sanitize_filename",
]
