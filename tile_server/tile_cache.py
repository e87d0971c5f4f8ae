from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

from common.types import CacheEntry, TileAddress
from tile_server.errors import CacheIOError


class TileCache:
    """
    Key -> encoded tile store, keyed by TileAddress.

    Implementations must tolerate concurrent `set` calls for the same key
    (last write wins). No eviction or invalidation happens at this layer.
    """

    def get(self, address: TileAddress) -> Optional[CacheEntry]:
        raise NotImplementedError

    def set(self, entry: CacheEntry) -> None:
        raise NotImplementedError

    def stats(self) -> Dict[str, int]:
        return {}


class MemoryTileCache(TileCache):
    """Process-local cache; used by tests and throwaway servers."""

    def __init__(self) -> None:
        self._entries: Dict[TileAddress, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, address: TileAddress) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(address)

    def set(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[entry.address] = entry

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, address: object) -> bool:
        with self._lock:
            return address in self._entries

    def stats(self) -> Dict[str, int]:
        with self._lock:
            zooms = {a.zoom for a in self._entries}
            return {"zooms": len(zooms), "tiles": len(self._entries)}


class FileTileCache(TileCache):
    """
    Tiles on disk, one PNG plus a JSON sidecar per address:

        root/
          └─ {layer}/
              └─ {z}/
                  └─ {x}/
                      ├─ {y}.png   (encoded tile)
                      └─ {y}.json  ({"layer", "zoom", "x", "y", "mtime"})

    Writes go to a temp file in the target directory followed by os.replace,
    so readers never see a partial PNG and concurrent writers do not corrupt
    each other. The PNG is replaced after the sidecar; a PNG without sidecar
    falls back to the file's own mtime.
    """

    def __init__(self, root: str = "data/tiles"):
        self.root = Path(root)

    # -------- public API --------

    def path_for(self, address: TileAddress) -> Path:
        return self.root / str(address.layer_id) / str(address.zoom) / str(address.x) / f"{address.y}.png"

    def get(self, address: TileAddress) -> Optional[CacheEntry]:
        png = self.path_for(address)
        try:
            data = png.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheIOError(f"Cannot read {png}: {e}") from e
        return CacheEntry(address=address, data=data, mtime=self._read_mtime(png))

    def set(self, entry: CacheEntry) -> None:
        png = self.path_for(entry.address)
        meta = dict(entry.address.to_dict(), mtime=int(entry.mtime))
        meta["layer"] = meta.pop("layer_id")
        try:
            png.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write(png.with_suffix(".json"), json.dumps(meta).encode("utf-8"))
            self._atomic_write(png, entry.data)
        except OSError as e:
            raise CacheIOError(f"Cannot write {png}: {e}") from e

    def stats(self) -> Dict[str, int]:
        if not self.root.exists():
            return {"zooms": 0, "tiles": 0}
        zooms = set()
        tiles = 0
        for png in self.root.glob("*/*/*/*.png"):
            zooms.add(png.parent.parent.name)
            tiles += 1
        return {"zooms": len(zooms), "tiles": tiles}

    # -------- internals --------

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except BaseException:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise

    @staticmethod
    def _read_mtime(png: Path) -> int:
        sidecar = png.with_suffix(".json")
        try:
            return int(json.loads(sidecar.read_text())["mtime"])
        except (OSError, ValueError, KeyError, TypeError):
            pass
        try:
            return int(png.stat().st_mtime)
        except OSError as e:
            raise CacheIOError(f"Cannot stat {png}: {e}") from e
