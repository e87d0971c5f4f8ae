"""Exception hierarchy for the tile renderer."""

from __future__ import annotations


class TileError(Exception):
    """Base exception for all tile rendering errors."""

    code = "tile_error"


class NoLayerFound(TileError):
    """The tile address names a layer that is not configured."""

    code = "no_layer_found"

    def __init__(self, layer_id: int) -> None:
        self.layer_id = layer_id
        super().__init__(f"No layer found: {layer_id}")


class InvalidZoom(TileError):
    """Zoom outside the supported pyramid levels."""

    code = "invalid_zoom"

    def __init__(self, zoom: int) -> None:
        self.zoom = zoom
        super().__init__(f"Invalid zoom: {zoom}")


class InvalidTileCoords(TileError):
    """x/y outside the tile grid of the requested zoom."""

    code = "invalid_tile_coords"

    def __init__(self, zoom: int, x: int, y: int) -> None:
        self.zoom = zoom
        self.x = x
        self.y = y
        super().__init__(f"Tile {x},{y} is outside the grid at zoom {zoom}")


class CacheIOError(TileError):
    """Tile cache lookup or write failed."""

    code = "cache_io_error"


class DecodeError(TileError):
    """A cached tile could not be decoded as an image."""

    code = "decode_error"


class RenderError(TileError):
    """Leaf renderer failure."""

    code = "render_error"
