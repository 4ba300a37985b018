"""
mongod provisioning: cache lookup, download, verification and extraction.

This module orchestrates the full pipeline for one download URL:
1. Look up the content-addressed cache path; a hit returns immediately
2. Download the archive to a temporary directory
3. Verify its checksum and detached signature (each when enabled)
4. Stream the gzip'd tar for the entry ending in ``bin/mongod``
5. Extract that entry to a temporary file, mark it executable
6. Atomically rename it into the cache

Nothing is ever written to the final cache path until every check passes.
"""

import logging
import shutil
import tarfile
import time
import zlib
from pathlib import Path
from typing import Callable, Optional

import requests

from memongo.binary.cache import ArtifactCache
from memongo.binary.spec import (
    checksum_url_for,
    public_key_url_for,
    signature_url_for,
)
from memongo.core.download import (
    DEFAULT_TIMEOUT,
    DownloadProgress,
    download_file,
    fetch_text,
)
from memongo.core.exceptions import (
    ArchiveError,
    BinaryNotFoundInArchiveError,
    ConfigurationError,
)
from memongo.core.filesystem import (
    create_temp_file,
    make_executable,
    temporary_directory,
)
from memongo.core.verification import verify_checksum, verify_signature
from memongo.core.version import Version

logger = logging.getLogger(__name__)

BINARY_ARCHIVE_SUFFIX = "bin/mongod"


class MongodDownloader:
    """
    Downloads, verifies and caches mongod binaries.

    Example:
        >>> downloader = MongodDownloader(Path.home() / ".cache" / "memongo")
        >>> spec = make_download_spec("4.0.5")
        >>> path = downloader.get_or_download(spec.download_url, version=spec.version)
        >>> print(f"mongod at: {path}")
    """

    def __init__(
        self,
        cache_dir: Path,
        session: Optional[requests.Session] = None,
        verify_checksum: bool = True,
        verify_signature: bool = False,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        """
        Initialize downloader.

        Args:
            cache_dir: Cache root directory
            session: Optional requests session used for every fetch
            verify_checksum: Check the archive against its ``.sha256`` file
            verify_signature: Check the archive's ``.sig`` against the release key
            progress_callback: Optional callback for archive download progress
            timeout: Per-request timeout in seconds
        """
        self.cache = ArtifactCache(cache_dir)
        self.session = session
        self.verify_checksum = verify_checksum
        self.verify_signature = verify_signature
        self.progress_callback = progress_callback
        self.timeout = timeout

    def get_or_download(self, url: str, version: Optional[Version] = None) -> Path:
        """
        Return the cached mongod for ``url``, downloading it on a miss.

        Args:
            url: Archive URL
            version: MongoDB version; required when signature verification is
                enabled, since it selects the release signing key

        Returns:
            Path to the executable mongod

        Raises:
            ConfigurationError: Signature verification requested without a version
            DownloadError: Archive or companion file could not be fetched
            ChecksumVerificationError: Archive does not match its checksum
            SignatureVerificationError: Archive signature does not verify
            ArchiveError: Archive is unreadable or lacks a mongod entry
        """
        mongod_path = self.cache.path_for_url(url)

        if self.cache.exists(mongod_path):
            logger.debug(f"mongod from {url} exists in cache at {mongod_path}")
            return mongod_path

        if self.verify_signature and version is None:
            raise ConfigurationError(
                f"signature verification of {url} needs a MongoDB version to select the public key"
            )

        logger.info(
            f"mongod from {url} does not exist in cache, downloading to {mongod_path}"
        )
        start_time = time.time()

        with temporary_directory(prefix="memongo_download_") as work_dir:
            archive = work_dir / "mongodb.tgz"
            result = download_file(
                url,
                archive,
                session=self.session,
                progress_callback=self.progress_callback,
                timeout=self.timeout,
            )

            if self.verify_checksum:
                self._verify_checksum(url, archive, result.sha256)

            if self.verify_signature:
                self._verify_signature(url, archive, version, work_dir)

            extracted = self._extract_binary(url, archive, mongod_path.parent)

        self.cache.install(extracted, mongod_path)

        logger.info(
            f"Finished downloading mongod to {mongod_path} in {time.time() - start_time:.1f}s"
        )
        return mongod_path

    def _verify_checksum(self, url: str, archive: Path, actual_sha256: str) -> None:
        checksum_url = checksum_url_for(url)
        content = fetch_text(checksum_url, session=self.session, timeout=self.timeout)
        verify_checksum(archive, content, url, actual_sha256=actual_sha256)
        logger.info(f"Checksum verified successfully ({checksum_url})")

    def _verify_signature(
        self, url: str, archive: Path, version: Version, work_dir: Path
    ) -> None:
        key_path = work_dir / "server.asc"
        signature_path = work_dir / "mongodb.tgz.sig"

        download_file(
            public_key_url_for(version),
            key_path,
            session=self.session,
            timeout=self.timeout,
        )
        download_file(
            signature_url_for(url),
            signature_path,
            session=self.session,
            timeout=self.timeout,
        )

        verify_signature(archive, signature_path, key_path, url)
        logger.info(f"Signature verified successfully ({signature_url_for(url)})")

    def _extract_binary(self, url: str, archive: Path, staging_dir: Path) -> Path:
        """
        Extract the first archive entry ending in bin/mongod.

        The entry is written to a temporary file inside ``staging_dir`` so
        the final install is a same-filesystem rename. The directory is only
        created once a matching entry is found.
        """
        try:
            with tarfile.open(archive, mode="r|gz") as tar:
                for member in tar:
                    if not member.name.endswith(BINARY_ARCHIVE_SUFFIX):
                        continue
                    source = tar.extractfile(member)
                    if source is None:
                        continue

                    staging_dir.mkdir(parents=True, exist_ok=True)
                    extracted = create_temp_file(staging_dir, prefix=".mongod.")
                    try:
                        with source, open(extracted, "wb") as target:
                            shutil.copyfileobj(source, target)
                        make_executable(extracted)
                    except Exception:
                        extracted.unlink(missing_ok=True)
                        raise

                    logger.debug(f"Extracted {member.name} to {extracted}")
                    return extracted
        except (tarfile.TarError, EOFError, zlib.error) as e:
            raise ArchiveError(f"error reading archive from {url}: {e}") from e

        raise BinaryNotFoundInArchiveError(url, BINARY_ARCHIVE_SUFFIX)


def get_or_download_mongod(
    url: str,
    cache_dir: Path,
    version: Optional[Version] = None,
    **kwargs,
) -> Path:
    """
    Convenience wrapper around MongodDownloader.get_or_download.

    Extra keyword arguments are passed to MongodDownloader.
    """
    return MongodDownloader(cache_dir, **kwargs).get_or_download(url, version=version)


__all__ = [
    "MongodDownloader",
    "get_or_download_mongod",
    "BINARY_ARCHIVE_SUFFIX",
]
