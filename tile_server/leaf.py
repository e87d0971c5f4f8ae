"""
Leaf (max zoom) renderers.

A leaf renderer turns a map block volume into one tile raster. Real
deployments plug in a renderer backed by world data; the synthetic renderer
here produces deterministic imagery for demos, warm-up runs and tests.
"""
from __future__ import annotations

import hashlib
from typing import Optional

import numpy as np
from PIL import Image

from common.types import MapBlockCoords, TILE_SIZE


class LeafRenderer:
    """Interface: render(pos1, pos2) -> RGBA image, or None for a void area."""

    def render(self, pos1: MapBlockCoords, pos2: MapBlockCoords) -> Optional[Image.Image]:
        raise NotImplementedError


class SyntheticBlockRenderer(LeafRenderer):
    """
    Generate a textured tile per block column.

    Columns with |x| or |z| beyond `world_radius` are void and render as None.
    Output depends only on (x, z, vertical span, seed), so repeated renders of
    the same volume are pixel-identical.
    """

    def __init__(self, world_radius: int = 64, seed: int = 1234, grid: int = 16):
        self.world_radius = int(world_radius)
        self.seed = int(seed)
        self.grid = max(1, int(grid))

    def is_void(self, pos1: MapBlockCoords, pos2: MapBlockCoords) -> bool:
        xs = (pos1.x, pos2.x)
        zs = (pos1.z, pos2.z)
        r = self.world_radius
        # void only when the whole volume is outside the generated square
        return min(xs) > r or max(xs) < -r or min(zs) > r or max(zs) < -r

    def render(self, pos1: MapBlockCoords, pos2: MapBlockCoords) -> Optional[Image.Image]:
        if self.is_void(pos1, pos2):
            return None

        digest = hashlib.sha256(f"{self.seed}:{pos1.x}:{pos1.z}".encode()).digest()
        rng = np.random.default_rng(int.from_bytes(digest[:8], "little"))
        base_rgb = np.frombuffer(digest[8:11], dtype=np.uint8).astype(np.float32)

        # taller layers render brighter
        span = max(1, abs(pos2.y - pos1.y) + 1)
        gain = min(1.5, 0.75 + span / 32.0)

        h = w = TILE_SIZE
        noise = rng.normal(0.0, 18.0, size=(h, w, 1)).astype(np.float32)
        rgb = np.clip(base_rgb[None, None, :] * gain + noise, 0, 255).astype(np.uint8)

        step = max(1, w // self.grid)
        rgb[::step, :, :] = 60
        rgb[:, ::step, :] = 60

        alpha = np.full((h, w, 1), 255, dtype=np.uint8)
        return Image.fromarray(np.concatenate([rgb, alpha], axis=2))
