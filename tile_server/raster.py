"""
Raster helpers for tile compositing.

Tiles are Pillow images in RGBA mode (straight alpha), TILE_SIZE x TILE_SIZE.
Quadrants are stitched with `paste` (replace), not alpha blending.
"""
from __future__ import annotations

import io
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from common.types import TILE_SIZE
from tile_server.errors import DecodeError


QUADRANT_SIZE = TILE_SIZE // 2


def blank_tile() -> Image.Image:
    """Fully transparent tile."""
    return Image.new("RGBA", (TILE_SIZE, TILE_SIZE), (0, 0, 0, 0))


def encode_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def decode_tile(data: bytes) -> Image.Image:
    """
    Decode PNG bytes into a fresh TILE_SIZE RGBA raster.

    Images of a different size are drawn at the origin: smaller ones leave the
    remainder transparent, larger ones are clipped.
    """
    try:
        src = Image.open(io.BytesIO(data))
        src.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Cannot decode cached tile ({len(data)} bytes): {e}") from e

    if src.mode != "RGBA":
        src = src.convert("RGBA")
    if src.size == (TILE_SIZE, TILE_SIZE):
        return src.copy()
    img = blank_tile()
    img.paste(src, (0, 0))
    return img


def downsample(img: Image.Image, size: int = QUADRANT_SIZE) -> Image.Image:
    """Lanczos resize of a child tile to quadrant size."""
    if img.mode != "RGBA":
        img = img.convert("RGBA")
    return img.resize((size, size), Image.Resampling.LANCZOS)


def paste_quadrant(dest: Image.Image, child: Optional[Image.Image], offset: Tuple[int, int]) -> bool:
    """
    Downsample `child` into the quadrant of `dest` at `offset`.
    Returns False (and leaves the quadrant transparent) when `child` is None.
    """
    if child is None:
        return False
    dest.paste(downsample(child), offset)
    return True
