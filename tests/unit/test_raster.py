"""
Unit tests for raster helpers and the synthetic leaf renderer
"""

import io
import os
import struct
import sys
import zlib

import numpy as np
import pytest
from PIL import Image

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.types import MapBlockCoords
from tile_server import raster
from tile_server.errors import DecodeError
from tile_server.leaf import SyntheticBlockRenderer


def _png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class TestRaster:
    """Test cases for encode/decode/downsample"""

    def test_blank_tile_is_transparent(self):
        arr = np.asarray(raster.blank_tile())
        assert arr.shape == (256, 256, 4)
        assert not arr.any()

    def test_decode_converts_to_rgba(self):
        """RGB input comes back as a 256x256 RGBA raster"""
        img = raster.decode_tile(_png(Image.new("RGB", (256, 256), (10, 20, 30))))
        assert img.mode == "RGBA"
        assert img.size == (256, 256)
        assert img.getpixel((5, 5)) == (10, 20, 30, 255)

    def test_decode_small_image_drawn_at_origin(self):
        """Smaller cached images fill the top-left corner only"""
        img = raster.decode_tile(_png(Image.new("RGBA", (64, 64), (255, 0, 0, 255))))
        assert img.size == (256, 256)
        assert img.getpixel((0, 0)) == (255, 0, 0, 255)
        assert img.getpixel((63, 63)) == (255, 0, 0, 255)
        assert img.getpixel((64, 64)) == (0, 0, 0, 0)

    def test_decode_large_image_clipped(self):
        img = raster.decode_tile(_png(Image.new("RGBA", (300, 300), (0, 255, 0, 255))))
        assert img.size == (256, 256)
        assert img.getpixel((255, 255)) == (0, 255, 0, 255)

    @pytest.mark.parametrize("data", [b"", b"not a png", b"\x89PNG\r\n\x1a\n garbage"])
    def test_decode_garbage_raises(self, data):
        with pytest.raises(DecodeError):
            raster.decode_tile(data)

    def test_decode_oversized_header_raises(self):
        """A tiny PNG declaring a 20000x20000 canvas is rejected, not allocated"""
        def chunk(kind: bytes, body: bytes) -> bytes:
            return struct.pack(">I", len(body)) + kind + body + struct.pack(">I", zlib.crc32(kind + body))

        data = (
            b"\x89PNG\r\n\x1a\n"
            + chunk(b"IHDR", struct.pack(">IIBBBBB", 20000, 20000, 8, 6, 0, 0, 0))
            + chunk(b"IEND", b"")
        )
        assert len(data) == 45
        with pytest.raises(DecodeError):
            raster.decode_tile(data)

    def test_paste_quadrant(self):
        """Child is shrunk to 128x128 and replaces the quadrant pixels"""
        dest = raster.blank_tile()
        child = Image.new("RGBA", (256, 256), (0, 0, 255, 255))

        assert raster.paste_quadrant(dest, child, (128, 128)) is True
        arr = np.asarray(dest)
        assert (arr[128:, 128:] == (0, 0, 255, 255)).all()
        assert not arr[:128, :].any()
        assert not arr[:, :128].any()

    def test_paste_missing_child_leaves_quadrant_blank(self):
        dest = raster.blank_tile()
        assert raster.paste_quadrant(dest, None, (0, 0)) is False
        assert not np.asarray(dest).any()


class TestSyntheticBlockRenderer:
    """Test cases for the demo leaf renderer"""

    def test_deterministic(self):
        r = SyntheticBlockRenderer(world_radius=8, seed=7)
        p1, p2 = MapBlockCoords(1, -2, -3), MapBlockCoords(1, 10, -3)
        a = np.asarray(r.render(p1, p2))
        b = np.asarray(r.render(p1, p2))
        assert a.shape == (256, 256, 4)
        assert (a == b).all()
        assert (a[..., 3] == 255).all()

    def test_seed_changes_output(self):
        p1, p2 = MapBlockCoords(1, 0, 1), MapBlockCoords(1, 0, 1)
        a = np.asarray(SyntheticBlockRenderer(seed=1).render(p1, p2))
        b = np.asarray(SyntheticBlockRenderer(seed=2).render(p1, p2))
        assert (a != b).any()

    def test_void_outside_radius(self):
        r = SyntheticBlockRenderer(world_radius=4)
        assert r.render(MapBlockCoords(5, 0, 0), MapBlockCoords(5, 0, 0)) is None
        assert r.render(MapBlockCoords(0, 0, -5), MapBlockCoords(0, 0, -5)) is None
        assert r.render(MapBlockCoords(4, 0, -4), MapBlockCoords(4, 0, -4)) is not None
