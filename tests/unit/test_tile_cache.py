"""
Unit tests for tile caches (in-memory and file system)
"""

import json
import os
import sys
import threading

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.types import CacheEntry, TileAddress
from tile_server.errors import CacheIOError
from tile_server.tile_cache import FileTileCache, MemoryTileCache


ADDR = TileAddress(layer_id=0, zoom=9, x=-3, y=4)


class TestMemoryTileCache:
    """Test cases for MemoryTileCache"""

    def test_miss_returns_none(self):
        assert MemoryTileCache().get(ADDR) is None

    def test_set_then_get(self):
        cache = MemoryTileCache()
        entry = CacheEntry(address=ADDR, data=b"png", mtime=100)
        cache.set(entry)
        assert cache.get(ADDR) == entry
        assert ADDR in cache
        assert len(cache) == 1
        assert cache.stats() == {"zooms": 1, "tiles": 1}

    def test_overwrite_last_write_wins(self):
        cache = MemoryTileCache()
        cache.set(CacheEntry(ADDR, b"one", 1))
        cache.set(CacheEntry(ADDR, b"two", 2))
        assert cache.get(ADDR).data == b"two"
        assert len(cache) == 1


class TestFileTileCache:
    """Test cases for FileTileCache"""

    def test_layout_and_sidecar(self, tmp_path):
        cache = FileTileCache(str(tmp_path))
        cache.set(CacheEntry(address=ADDR, data=b"\x89PNG-bytes", mtime=1700000000))

        png = tmp_path / "0" / "9" / "-3" / "4.png"
        assert cache.path_for(ADDR) == png
        assert png.read_bytes() == b"\x89PNG-bytes"
        meta = json.loads(png.with_suffix(".json").read_text())
        assert meta == {"layer": 0, "zoom": 9, "x": -3, "y": 4, "mtime": 1700000000}

    def test_round_trip(self, tmp_path):
        cache = FileTileCache(str(tmp_path))
        cache.set(CacheEntry(address=ADDR, data=b"abc", mtime=42))
        entry = cache.get(ADDR)
        assert entry == CacheEntry(address=ADDR, data=b"abc", mtime=42)

    def test_miss_returns_none(self, tmp_path):
        assert FileTileCache(str(tmp_path / "nothing")).get(ADDR) is None

    def test_missing_sidecar_uses_file_mtime(self, tmp_path):
        cache = FileTileCache(str(tmp_path))
        png = cache.path_for(ADDR)
        png.parent.mkdir(parents=True)
        png.write_bytes(b"abc")
        os.utime(png, (1234, 1234))

        assert cache.get(ADDR).mtime == 1234

    def test_no_temp_files_left(self, tmp_path):
        cache = FileTileCache(str(tmp_path))
        cache.set(CacheEntry(ADDR, b"abc", 1))
        names = sorted(p.name for p in cache.path_for(ADDR).parent.iterdir())
        assert names == ["4.json", "4.png"]

    def test_concurrent_writes_same_key(self, tmp_path):
        """Parallel writers never leave a torn file behind"""
        cache = FileTileCache(str(tmp_path))
        payloads = [bytes([i]) * 4096 for i in range(8)]

        threads = [threading.Thread(target=cache.set, args=(CacheEntry(ADDR, p, i),)) for i, p in enumerate(payloads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert cache.get(ADDR).data in payloads

    def test_read_error_raises_cache_io_error(self, tmp_path):
        """A path component that is a file is an I/O error, not a miss"""
        (tmp_path / "0").write_text("not a directory")
        with pytest.raises(CacheIOError):
            FileTileCache(str(tmp_path)).get(ADDR)

    def test_write_error_raises_cache_io_error(self, tmp_path):
        (tmp_path / "0").write_text("not a directory")
        with pytest.raises(CacheIOError):
            FileTileCache(str(tmp_path)).set(CacheEntry(ADDR, b"x", 1))

    def test_stats(self, tmp_path):
        cache = FileTileCache(str(tmp_path))
        assert cache.stats() == {"zooms": 0, "tiles": 0}
        cache.set(CacheEntry(ADDR, b"x", 1))
        cache.set(CacheEntry(TileAddress(0, 10, 0, 0), b"y", 1))
        cache.set(CacheEntry(TileAddress(0, 10, 0, 1), b"z", 1))
        assert cache.stats() == {"zooms": 2, "tiles": 3}
