from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterator, Tuple


MIN_ZOOM = 1
MAX_ZOOM = 13

# Map block coordinate bounds along X/Z. Tile y at max zoom is -(z + 1), so the
# usable tile grid at MAX_ZOOM spans [MIN_COORD - 1, MAX_COORD].
MIN_COORD = -2047
MAX_COORD = 2047

TILE_SIZE = 256


@dataclass(frozen=True)
class MapBlockCoords:
    """Position of a map block (16^3 voxels) in block space."""
    x: int
    y: int
    z: int

    def with_y(self, y: int) -> "MapBlockCoords":
        return MapBlockCoords(self.x, int(y), self.z)


@dataclass(frozen=True)
class MapBlockRange:
    """Inclusive block volume between two corners."""
    pos1: MapBlockCoords
    pos2: MapBlockCoords

    def clamp_y(self, y_from: int, y_to: int) -> "MapBlockRange":
        return MapBlockRange(self.pos1.with_y(y_from), self.pos2.with_y(y_to))


@dataclass(frozen=True)
class TileAddress:
    """
    Identifies a single tile in the pyramid.

    Attributes:
        layer_id: id of the layer in the LayerRegistry.
        zoom: pyramid level, 1 (coarsest) .. 13 (one map block per tile).
        x, y: tile column/row at `zoom`.

    Construction does not validate; the renderer checks zoom and grid bounds
    only when it is about to compute something.
    """
    layer_id: int
    zoom: int
    x: int
    y: int

    @property
    def scale(self) -> int:
        """Number of max-zoom tiles along one edge of this tile."""
        return 2 ** (MAX_ZOOM - self.zoom)

    @property
    def zoom_in_range(self) -> bool:
        return MIN_ZOOM <= self.zoom <= MAX_ZOOM

    def in_grid(self) -> bool:
        if not self.zoom_in_range:
            return False
        lo = (MIN_COORD - 1) // self.scale
        hi = MAX_COORD // self.scale
        return lo <= self.x <= hi and lo <= self.y <= hi

    def quadrants(self) -> "QuadrantSet":
        if self.zoom >= MAX_ZOOM:
            raise ValueError(f"zoom {self.zoom} has no finer level")
        z = self.zoom + 1
        x = self.x * 2
        y = self.y * 2
        return QuadrantSet(
            upper_left=TileAddress(self.layer_id, z, x, y),
            upper_right=TileAddress(self.layer_id, z, x + 1, y),
            lower_left=TileAddress(self.layer_id, z, x, y + 1),
            lower_right=TileAddress(self.layer_id, z, x + 1, y + 1),
        )

    def block_range(self) -> MapBlockRange:
        """
        Map block volume covered by this tile (Y left at 0; callers clamp it
        to the layer's vertical bounds).
        """
        scale = self.scale
        x1 = self.x * scale
        z1 = (self.y * scale * -1) - 1
        x2 = x1 + scale - 1
        z2 = z1 - (scale - 1)
        return MapBlockRange(MapBlockCoords(x1, 0, z1), MapBlockCoords(x2, 0, z2))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class QuadrantSet:
    """The four tiles one zoom level finer that subdivide a parent tile."""
    upper_left: TileAddress
    upper_right: TileAddress
    lower_left: TileAddress
    lower_right: TileAddress

    def __iter__(self) -> Iterator[TileAddress]:
        return iter((self.upper_left, self.upper_right, self.lower_left, self.lower_right))


# Pixel offsets of each quadrant in the parent raster, in QuadrantSet order.
QUADRANT_OFFSETS: Tuple[Tuple[int, int], ...] = (
    (0, 0),
    (TILE_SIZE // 2, 0),
    (0, TILE_SIZE // 2),
    (TILE_SIZE // 2, TILE_SIZE // 2),
)


@dataclass(frozen=True)
class Layer:
    """
    Layer configuration.

    Attributes:
        id: numeric layer id used in tile addresses.
        name: display name.
        y_from, y_to: vertical map block bounds rendered for this layer.
    """
    id: int
    name: str
    y_from: int
    y_to: int

    def __post_init__(self) -> None:
        if self.y_from > self.y_to:
            raise ValueError(f"layer {self.id}: from ({self.y_from}) > to ({self.y_to})")

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "from": self.y_from, "to": self.y_to}


@dataclass(frozen=True)
class CacheEntry:
    """Encoded tile as persisted by a tile cache."""
    address: TileAddress
    data: bytes
    mtime: int
