"""
Cache directory resolution for memongo.

Downloaded mongod binaries live under a per-user cache root:

    $MEMONGO_CACHE_PATH                     if set
    $XDG_CACHE_HOME/memongo                 if XDG_CACHE_HOME is set
    ~/Library/Caches/memongo                on macOS
    ~/.cache/memongo                        elsewhere
"""

from pathlib import Path
from typing import Optional

from memongo.core.platform import SystemContext

CACHE_DIR_NAME = "memongo"


def get_home_dir(context: SystemContext) -> Path:
    """Home directory from the context's HOME, else the process' own."""
    home = context.getenv("HOME")
    return Path(home) if home else Path.home()


def get_default_cache_dir(context: Optional[SystemContext] = None) -> Path:
    """
    Get the cache root for downloaded binaries.

    Example:
        >>> get_default_cache_dir(SystemContext("linux", "x86_64", environ={"HOME": "/home/u"}))
        PosixPath('/home/u/.cache/memongo')
    """
    context = context or SystemContext.current()

    explicit = context.getenv("MEMONGO_CACHE_PATH")
    if explicit:
        return Path(explicit)

    xdg_cache_home = context.getenv("XDG_CACHE_HOME")
    if xdg_cache_home:
        return Path(xdg_cache_home) / CACHE_DIR_NAME

    if context.system == "darwin":
        return get_home_dir(context) / "Library" / "Caches" / CACHE_DIR_NAME

    return get_home_dir(context) / ".cache" / CACHE_DIR_NAME


__all__ = ["CACHE_DIR_NAME", "get_home_dir", "get_default_cache_dir"]
