#!/usr/bin/env python3
"""
Warm the tile cache bottom-up for a rectangular area.

Coarse tiles are only ever assembled from cached children, so a cold pyramid
serves blank tiles above zoom 12. This walks zoom 12 (rendered from map
blocks) and then every coarser zoom down to --min-zoom, so each level finds
its children already cached. Tiles that are already cached are left as is.

The area is given in max-zoom tile coordinates (one tile per map block column).

Examples:
  python -m tile_server.warmup --layer 0 --from-x -64 --to-x 63 --from-y -64 --to-y 63
  python -m tile_server.warmup --config config/params.yaml --layer 0 --from-x 0 --to-x 15 --from-y 0 --to-y 15 --min-zoom 6
"""
from __future__ import annotations

import argparse
from typing import Dict, Iterator, Optional, Tuple

from common.logging_setup import fields, get_logger, setup_logging
from common.types import MAX_COORD, MAX_ZOOM, MIN_COORD, MIN_ZOOM, TileAddress
from common.utils import RateTimer
from tile_server.config import DEFAULT_CONFIG_PATH, load_config
from tile_server.renderer import TileRenderer


log = get_logger(__name__)


def tiles_at_zoom(
    layer_id: int,
    zoom: int,
    x_range: Tuple[int, int],
    y_range: Tuple[int, int],
) -> Iterator[TileAddress]:
    """Tiles at `zoom` covering the max-zoom rectangle [x0..x1] x [y0..y1]."""
    scale = 2 ** (MAX_ZOOM - zoom)
    x0, x1 = sorted(x_range)
    y0, y1 = sorted(y_range)
    for x in range(x0 // scale, x1 // scale + 1):
        for y in range(y0 // scale, y1 // scale + 1):
            yield TileAddress(layer_id=layer_id, zoom=zoom, x=x, y=y)


def warm_pyramid(
    renderer: TileRenderer,
    layer_id: int,
    x_range: Tuple[int, int],
    y_range: Tuple[int, int],
    *,
    min_zoom: int = MIN_ZOOM,
) -> Dict[int, Dict[str, int]]:
    """
    Render zoom MAX_ZOOM-1 .. min_zoom for the area, finest first.

    Returns per-zoom counts: {zoom: {"tiles": n, "empty": m}}.
    """
    if not MIN_ZOOM <= min_zoom < MAX_ZOOM:
        raise ValueError(f"min_zoom must be in [{MIN_ZOOM}, {MAX_ZOOM - 1}], got {min_zoom}")

    summary: Dict[int, Dict[str, int]] = {}
    rt = RateTimer(window=100)
    for zoom in range(MAX_ZOOM - 1, min_zoom - 1, -1):
        n = empty = 0
        rate = 0.0
        for address in tiles_at_zoom(layer_id, zoom, x_range, y_range):
            if renderer.render_image(address, cache_only=False) is None:
                empty += 1
            n += 1
            rate = rt.tick()
        summary[zoom] = {"tiles": n, "empty": empty}
        log.info("Zoom level warmed", extra=fields(layer=layer_id, zoom=zoom, tiles=n, empty=empty, tiles_per_s=round(rate, 1)))
    return summary


def main(argv: Optional[list] = None) -> Dict[int, Dict[str, int]]:
    ap = argparse.ArgumentParser(description="Warm the tile pyramid bottom-up")
    ap.add_argument("--config", default=DEFAULT_CONFIG_PATH)
    ap.add_argument("--layer", type=int, default=0, help="Layer id")
    ap.add_argument("--from-x", type=int, required=True)
    ap.add_argument("--to-x", type=int, required=True)
    ap.add_argument("--from-y", type=int, required=True)
    ap.add_argument("--to-y", type=int, required=True)
    ap.add_argument("--min-zoom", type=int, default=MIN_ZOOM, help="Coarsest zoom to build")
    args = ap.parse_args(argv)

    for x, y in ((args.from_x, args.from_y), (args.to_x, args.to_y)):
        if not TileAddress(args.layer, MAX_ZOOM, x, y).in_grid():
            ap.error(f"tile ({x}, {y}) is outside the zoom {MAX_ZOOM} grid [{MIN_COORD - 1}, {MAX_COORD}]")

    settings = load_config(args.config)
    setup_logging(settings.log_level, force=True)

    with TileRenderer.from_settings(settings) as renderer:
        return warm_pyramid(
            renderer,
            args.layer,
            (args.from_x, args.to_x),
            (args.from_y, args.to_y),
            min_zoom=args.min_zoom,
        )


if __name__ == "__main__":
    main()
