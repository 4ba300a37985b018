"""
Info command implementation.

Shows what memongo detects about this machine and, given a version, where
it would download mongod from and where it would cache it.
"""

import logging

from memongo.binary.cache import ArtifactCache
from memongo.binary.spec import make_download_spec
from memongo.cli.utils import options_from_args
from memongo.core.directory import get_default_cache_dir
from memongo.core.platform import SystemContext, detect_platform
from memongo.core.version import parse_version
from memongo.server.options import ENV_DOWNLOAD_URL, ENV_VERSION

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the info command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    options = options_from_args(args)
    context = options.context or SystemContext.current()
    platform_info = detect_platform(context)
    cache_root = options.cache_path or get_default_cache_dir(context)

    print(f"Platform:       {platform_info}")
    print(f"Cache:          {cache_root}")

    version_string = options.mongo_version or context.getenv(ENV_VERSION)
    download_url = options.download_url or context.getenv(ENV_DOWNLOAD_URL)
    if not version_string and not download_url:
        return 0

    if download_url:
        url = download_url
    else:
        version = parse_version(version_string)
        spec = make_download_spec(version, platform_info=platform_info)
        print(f"Version:        {spec.version}")
        print(f"Distribution:   {spec.distribution or 'generic'}")
        print(f"Checksum URL:   {spec.checksum_url}")
        print(f"Signature URL:  {spec.signature_url}")
        print(f"Public key URL: {spec.public_key_url}")
        url = spec.download_url

    cache = ArtifactCache(cache_root)
    binary_path = cache.path_for_url(url)
    print(f"Download URL:   {url}")
    print(f"Binary path:    {binary_path}")
    print(f"Cached:         {'yes' if cache.exists(binary_path) else 'no'}")
    return 0
