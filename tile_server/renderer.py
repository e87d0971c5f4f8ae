"""
Tile composer: serves a tile from cache, renders it from map blocks at the
finest zoom, or stitches it from its four children one zoom level finer.

Depth policy: only a zoom-12 tile may render its children fresh (zoom-13 leaf
renders). Coarser tiles assemble from whatever children are already cached,
so the pyramid has to be warmed bottom-up.
"""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, List, Optional

from PIL import Image

from common.logging_setup import fields, get_logger
from common.types import MAX_ZOOM, QUADRANT_OFFSETS, CacheEntry, Layer, TileAddress
from common.utils import unix_now
from tile_server import raster
from tile_server.errors import DecodeError, InvalidTileCoords, InvalidZoom, NoLayerFound
from tile_server.layers import LayerRegistry
from tile_server.leaf import LeafRenderer, SyntheticBlockRenderer
from tile_server.tile_cache import FileTileCache, TileCache

if TYPE_CHECKING:
    from tile_server.config import Settings


log = get_logger(__name__)

# Children of tiles below this zoom are read from cache only.
FRESH_CHILDREN_ZOOM = MAX_ZOOM - 1


class TileRenderer:
    """
    Args:
        leaf_renderer: renders max-zoom tiles from map blocks.
        tile_cache: persistent store for composed tiles (zoom < MAX_ZOOM).
        layers: read-only layer registry.
        cache_empty_results: cache composites whose four children were all
            empty (avoids recomputing void areas at the cost of a cache slot).
        max_workers: >1 resolves the four children in a shared thread pool.
        heal_corrupt_entries: treat undecodable cache entries as misses and
            overwrite them, instead of raising DecodeError.
    """

    def __init__(
        self,
        leaf_renderer: LeafRenderer,
        tile_cache: TileCache,
        layers: LayerRegistry,
        *,
        cache_empty_results: bool = True,
        max_workers: int = 1,
        heal_corrupt_entries: bool = False,
    ):
        self.leaf_renderer = leaf_renderer
        self.tile_cache = tile_cache
        self.layers = layers
        self.cache_empty_results = bool(cache_empty_results)
        self.max_workers = max(1, int(max_workers))
        self.heal_corrupt_entries = bool(heal_corrupt_entries)
        self._pool: Optional[ThreadPoolExecutor] = None
        self._pool_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: "Settings") -> "TileRenderer":
        """File-backed cache and synthetic leaf renderer, as configured."""
        return cls(
            SyntheticBlockRenderer(world_radius=settings.world_radius, seed=settings.seed),
            FileTileCache(settings.cache_root),
            settings.layer_registry(),
            cache_empty_results=settings.cache_empty_results,
            max_workers=settings.max_workers,
            heal_corrupt_entries=settings.heal_corrupt_entries,
        )

    # ----------------------------
    # Public API
    # ----------------------------
    def render(self, address: TileAddress) -> Optional[bytes]:
        """
        PNG bytes for `address`, or None when the area has no content.

        Cached bytes are returned unchanged. With `heal_corrupt_entries` they
        are decoded first, and an undecodable entry is re-rendered and
        overwritten.
        """
        entry = self.tile_cache.get(address)
        if entry is not None:
            if not self.heal_corrupt_entries:
                return entry.data
            try:
                raster.decode_tile(entry.data)
                return entry.data
            except DecodeError:
                pass

        img = self.render_image(address, cache_only=False)
        if img is None:
            return None
        return raster.encode_png(img)

    def render_image(self, address: TileAddress, cache_only: bool = False) -> Optional[Image.Image]:
        """
        Raster for `address`, or None when nothing is available.

        With `cache_only` a cache miss returns None instead of rendering.
        A corrupt entry read in heal mode counts as a miss, so with
        `cache_only` it is skipped (quadrant left blank) and stays in the
        cache until that tile is rendered fresh again, e.g. by warm-up.
        """
        img = self._cached_image(address, cache_only)
        if img is not None:
            return img

        if cache_only:
            return None

        layer = self._validate(address)
        log.debug("RenderImage", extra=fields(layer=address.layer_id, zoom=address.zoom, x=address.x, y=address.y))

        if address.zoom == MAX_ZOOM:
            return self._render_leaf(address, layer)
        return self._render_composite(address)

    def close(self) -> None:
        with self._pool_lock:
            if self._pool is not None:
                self._pool.shutdown(wait=True)
                self._pool = None

    def __enter__(self) -> "TileRenderer":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ----------------------------
    # Internals
    # ----------------------------
    def _cached_image(self, address: TileAddress, cache_only: bool = False) -> Optional[Image.Image]:
        entry = self.tile_cache.get(address)
        if entry is None:
            return None
        try:
            return raster.decode_tile(entry.data)
        except DecodeError as e:
            if not self.heal_corrupt_entries:
                raise
            if cache_only:
                log.warning(
                    "Corrupt cached child skipped; re-warm it to repair",
                    extra=fields(error=str(e), **address.to_dict()),
                )
            else:
                log.warning("Corrupt cache entry, re-rendering", extra=fields(error=str(e), **address.to_dict()))
            return None

    def _validate(self, address: TileAddress) -> Layer:
        layer = self.layers.get(address.layer_id)
        if layer is None:
            raise NoLayerFound(address.layer_id)
        if not address.zoom_in_range:
            raise InvalidZoom(address.zoom)
        if not address.in_grid():
            raise InvalidTileCoords(address.zoom, address.x, address.y)
        return layer

    def _render_leaf(self, address: TileAddress, layer: Layer) -> Optional[Image.Image]:
        # max zoom tiles are not cached here; they follow the world data
        mbr = address.block_range().clamp_y(layer.y_from, layer.y_to)
        return self.leaf_renderer.render(mbr.pos1, mbr.pos2)

    def _render_composite(self, address: TileAddress) -> Optional[Image.Image]:
        children_cache_only = address.zoom < FRESH_CHILDREN_ZOOM
        children = self._resolve_children(list(address.quadrants()), children_cache_only)

        img = raster.blank_tile()
        filled = 0
        for child, offset in zip(children, QUADRANT_OFFSETS):
            if raster.paste_quadrant(img, child, offset):
                filled += 1

        if filled or self.cache_empty_results:
            self._store(address, img)

        if not filled:
            return None
        return img

    def _resolve_children(self, quads: List[TileAddress], cache_only: bool) -> List[Optional[Image.Image]]:
        if self.max_workers == 1:
            return [self.render_image(q, cache_only) for q in quads]

        pool = self._executor()
        futures = [pool.submit(self.render_image, q, cache_only) for q in quads]
        # join all four before compositing; first failure in quadrant order wins
        errors = [f.exception() for f in futures]
        for err in errors:
            if err is not None:
                raise err
        return [f.result() for f in futures]

    def _executor(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="tile-child")
            return self._pool

    def _store(self, address: TileAddress, img: Image.Image) -> None:
        entry = CacheEntry(address=address, data=raster.encode_png(img), mtime=unix_now())
        try:
            self.tile_cache.set(entry)
        except Exception as e:
            log.warning(
                "Tile cache write failed",
                extra=fields(error=str(e), **address.to_dict()),
            )
