"""
File system utilities for memongo.

This module provides the few file operations the cache and the supervisor
rely on:
- Atomic installation of a finished file (temp file + rename)
- Safe deletion of directory trees
- Temporary files and directories that clean up after themselves

Atomicity comes from the rename primitive of the underlying filesystem. No
locks are taken: concurrent installers of the same file each rename their
own complete copy into place and the last rename wins.
"""

import errno
import os
import shutil
import stat
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union


class FilesystemError(Exception):
    """Base exception for filesystem operations."""

    pass


def make_executable(path: Union[str, Path]) -> None:
    """Set mode 0755 on ``path``."""
    os.chmod(
        path,
        stat.S_IRWXU | stat.S_IRGRP | stat.S_IXGRP | stat.S_IROTH | stat.S_IXOTH,
    )


def create_temp_file(
    directory: Optional[Union[str, Path]] = None, prefix: str = "memongo_"
) -> Path:
    """
    Create an empty temporary file and return its path.

    The caller owns the file and must remove it.
    """
    fd, name = tempfile.mkstemp(
        dir=str(directory) if directory is not None else None, prefix=prefix
    )
    os.close(fd)
    return Path(name)


def atomic_install(source: Union[str, Path], destination: Union[str, Path]) -> Path:
    """
    Move a finished file into place atomically.

    ``source`` is consumed. If it lives on another filesystem it is first
    copied next to ``destination`` so the final step is still a rename.
    Readers of ``destination`` see either nothing or the complete file.

    Args:
        source: Complete file to install
        destination: Final path

    Returns:
        The destination path

    Example:
        >>> atomic_install('/tmp/tmpab12cd', '~/.cache/memongo/x_0123456789/mongod')
    """
    source = Path(source)
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    try:
        os.replace(source, destination)
        return destination
    except OSError as e:
        if e.errno != errno.EXDEV:
            source.unlink(missing_ok=True)
            raise FilesystemError(
                f"Failed to install {source} as {destination}: {e}"
            ) from e

    # Cross-device: stage a copy in the destination directory, then rename
    staged = create_temp_file(destination.parent, prefix=f".{destination.name}.")
    try:
        shutil.copy2(source, staged)
        os.replace(staged, destination)
    except OSError as e:
        staged.unlink(missing_ok=True)
        raise FilesystemError(
            f"Failed to install {source} as {destination}: {e}"
        ) from e
    finally:
        source.unlink(missing_ok=True)

    return destination


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('/tmp/tmpk2j3h4', require_prefix='/tmp')
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if path != require_prefix and require_prefix not in path.parents:
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return  # Already gone, nothing to do

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


@contextmanager
def temporary_directory(prefix: str = "memongo_") -> Iterator[Path]:
    """
    Context manager for temporary directory with automatic cleanup.

    Example:
        >>> with temporary_directory() as tmp:
        ...     (tmp / 'file.txt').write_text('test')
    """
    temp_dir = Path(tempfile.mkdtemp(prefix=prefix))

    try:
        yield temp_dir
    finally:
        if temp_dir.exists():
            safe_rmtree(temp_dir)


__all__ = [
    "FilesystemError",
    "make_executable",
    "create_temp_file",
    "atomic_install",
    "safe_rmtree",
    "temporary_directory",
]
