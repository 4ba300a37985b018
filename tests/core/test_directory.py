"""
Unit tests for cache directory resolution.
"""

from pathlib import Path

from memongo.core.directory import get_default_cache_dir
from memongo.core.platform import SystemContext


def _context(system="linux", **environ):
    return SystemContext(system=system, machine="x86_64", environ=environ)


class TestGetDefaultCacheDir:
    """Test get_default_cache_dir precedence."""

    def test_explicit_cache_path_wins(self):
        """Test MEMONGO_CACHE_PATH beats everything else."""
        context = _context(
            MEMONGO_CACHE_PATH="/srv/cache", XDG_CACHE_HOME="/xdg", HOME="/home/u"
        )

        assert get_default_cache_dir(context) == Path("/srv/cache")

    def test_xdg_cache_home(self):
        """Test XDG_CACHE_HOME/memongo is used when set."""
        context = _context(XDG_CACHE_HOME="/xdg", HOME="/home/u")

        assert get_default_cache_dir(context) == Path("/xdg/memongo")

    def test_macos_default(self):
        """Test macOS uses ~/Library/Caches."""
        context = _context(system="darwin", HOME="/Users/u")

        assert get_default_cache_dir(context) == Path("/Users/u/Library/Caches/memongo")

    def test_linux_default(self):
        """Test other systems use ~/.cache."""
        assert get_default_cache_dir(_context(HOME="/home/u")) == Path(
            "/home/u/.cache/memongo"
        )

    def test_falls_back_to_process_home(self, monkeypatch, tmp_path):
        """Test a context without HOME uses the process' home."""
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_default_cache_dir(_context()) == tmp_path / ".cache" / "memongo"
