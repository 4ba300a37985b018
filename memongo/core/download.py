"""
HTTP transport for mongod artifacts and their companion files.

This module provides:
- Streaming downloads to a local file with progress reporting
- SHA256 computed while the bytes arrive
- Small text fetches for checksum files

Every request is a single attempt. A transport error or any status other
than 200 is reported as DownloadError carrying the URL and status code.
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
from requests.exceptions import RequestException

from memongo.core.exceptions import DownloadError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
DEFAULT_TIMEOUT = 30


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second

    def __str__(self) -> str:
        return format_progress(self)


@dataclass
class DownloadResult:
    """A completed download."""

    path: Path
    size: int
    sha256: str


class StreamingHasher:
    """Compute a SHA256 digest incrementally for streaming downloads."""

    def __init__(self):
        self.hasher = hashlib.sha256()

    def update(self, data: bytes):
        self.hasher.update(data)

    def finalize(self) -> str:
        """Get final hash value as hex string."""
        return self.hasher.hexdigest()


def _get(session: Optional[requests.Session], url: str, timeout: int, stream: bool):
    http = session if session is not None else requests
    try:
        response = http.get(url, stream=stream, timeout=timeout, allow_redirects=True)
    except RequestException as e:
        raise DownloadError(url, str(e)) from e

    if response.status_code != 200:
        response.close()
        raise DownloadError(
            url,
            f"invalid status code {response.status_code}",
            status_code=response.status_code,
        )

    return response


def download_file(
    url: str,
    destination: Path,
    session: Optional[requests.Session] = None,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> DownloadResult:
    """
    Download ``url`` into ``destination``.

    The destination is overwritten. It is the caller's job to point this at
    a temporary location and to remove it if anything later fails.

    Args:
        url: URL to download from
        destination: Local path to write the body to
        session: Optional requests session (connection reuse, test doubles)
        progress_callback: Optional callback for progress updates
        timeout: Request timeout in seconds

    Returns:
        DownloadResult with size and SHA256 of the written bytes

    Raises:
        DownloadError: On transport failure or a non-200 status

    Example:
        >>> result = download_file(
        ...     "https://fastdl.mongodb.org/osx/mongodb-macos-x86_64-4.2.1.tgz",
        ...     Path("/tmp/mongodb.tgz"),
        ... )
        >>> print(result.sha256)
    """
    if not url:
        raise ValueError("URL cannot be empty")

    destination = Path(destination)
    logger.info(f"Downloading from {url}")

    response = _get(session, url, timeout, stream=True)

    content_length = response.headers.get("content-length")
    total_size = int(content_length) if content_length and content_length.isdigit() else 0

    hasher = StreamingHasher()
    downloaded = 0
    start_time = time.time()
    last_progress_time = start_time

    try:
        with response, open(destination, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                f.write(chunk)
                hasher.update(chunk)
                downloaded += len(chunk)

                # Report progress (max once per 0.5 seconds to avoid spam)
                current_time = time.time()
                if progress_callback and (
                    current_time - last_progress_time >= 0.5
                    or downloaded == total_size
                ):
                    elapsed = current_time - start_time
                    progress_callback(
                        DownloadProgress(
                            bytes_downloaded=downloaded,
                            total_bytes=total_size if total_size > 0 else downloaded,
                            percentage=(downloaded / total_size * 100)
                            if total_size > 0
                            else 0,
                            speed_bps=downloaded / elapsed if elapsed > 0 else 0,
                        )
                    )
                    last_progress_time = current_time
    except RequestException as e:
        raise DownloadError(url, f"connection interrupted: {e}") from e

    logger.debug(f"Downloaded {downloaded} bytes from {url} to {destination}")
    return DownloadResult(path=destination, size=downloaded, sha256=hasher.finalize())


def fetch_text(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> str:
    """
    Fetch a small text document such as a ``.sha256`` file.

    Raises:
        DownloadError: On transport failure or a non-200 status
    """
    logger.debug(f"Fetching {url}")
    response = _get(session, url, timeout, stream=False)
    with response:
        return response.text


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.percentage > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s"
        )
    return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"


__all__ = [
    "DownloadProgress",
    "DownloadResult",
    "StreamingHasher",
    "download_file",
    "fetch_text",
    "format_progress",
]
