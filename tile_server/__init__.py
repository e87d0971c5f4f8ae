"""
Tile Server: tile pyramid renderer and cache

- Serves 256x256 PNG tiles for (layer, zoom 1..13, x, y)
- Zoom 13 tiles are rendered from map blocks by a leaf renderer (not cached here)
- Zoom 1..12 tiles are stitched from four cached children and cached as PNG
- HTTP: /api/tile/{layer}/{x}/{y}/{zoom}, /api/layers, /health
- CLI: python -m tile_server.warmup (bottom-up cache warm-up)
"""
from .renderer import TileRenderer

__all__ = ["TileRenderer"]
