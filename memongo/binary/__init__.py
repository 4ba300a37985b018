"""
mongod artifact provisioning.

Resolves a version to a download URL, and fetches, verifies and caches the
mongod binary from it.
"""

from .spec import DownloadSpec, make_download_spec
from .cache import ArtifactCache, directory_name_for_url
from .downloader import MongodDownloader, get_or_download_mongod

__all__ = [
    "DownloadSpec",
    "make_download_spec",
    "ArtifactCache",
    "directory_name_for_url",
    "MongodDownloader",
    "get_or_download_mongod",
]
