"""
Download command implementation.

Provisions mongod into the cache without starting it and prints the
binary's path, e.g. to warm a CI cache.
"""

import logging

from memongo.binary.downloader import MongodDownloader
from memongo.cli.utils import options_from_args
from memongo.core.download import DownloadProgress, format_progress

logger = logging.getLogger(__name__)

# Log progress at most this often, in percent
PROGRESS_STEP = 10.0


def run(args) -> int:
    """
    Run the download command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    resolved = options_from_args(args).resolve()

    if resolved.mongod_bin is not None:
        logger.info("Explicit mongod binary given, nothing to download")
        print(resolved.mongod_bin)
        return 0

    next_report = [0.0]

    def report(progress: DownloadProgress):
        if 0 < progress.percentage < next_report[0]:
            return
        next_report[0] = progress.percentage + PROGRESS_STEP
        logger.info(f"Downloading: {format_progress(progress)}")

    downloader = MongodDownloader(
        resolved.cache_path,
        session=resolved.session,
        verify_checksum=resolved.verify_checksum,
        verify_signature=resolved.verify_signature,
        progress_callback=report,
    )
    logger.info(f"Fetching {resolved.download_url}")
    path = downloader.get_or_download(resolved.download_url, version=resolved.version)
    print(path)
    return 0
