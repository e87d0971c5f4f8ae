from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from common.logging_setup import fields, get_logger, setup_logging
from common.types import TileAddress
from common.utils import iso_now_ms
from tile_server.config import DEFAULT_CONFIG_PATH, Settings, load_config
from tile_server.errors import InvalidTileCoords, InvalidZoom, NoLayerFound, TileError
from tile_server.renderer import TileRenderer


log = get_logger(__name__)

_STATUS = {
    NoLayerFound: 404,
    InvalidZoom: 400,
    InvalidTileCoords: 400,
}


def _status_for(err: TileError) -> int:
    for cls, status in _STATUS.items():
        if isinstance(err, cls):
            return status
    return 500


def create_app(settings: Optional[Settings] = None, renderer: Optional[TileRenderer] = None) -> FastAPI:
    """
    Build the HTTP front end.

    `renderer` defaults to one built from `settings` (file cache + synthetic
    leaf renderer); tests pass their own.
    """
    settings = settings or Settings()
    renderer = renderer or TileRenderer.from_settings(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        renderer.close()

    app = FastAPI(title="Tile Pyramid API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.renderer = renderer

    # (Optional) CORS for map viewers served from elsewhere
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(TileError)
    async def tile_error_handler(request: Request, exc: TileError) -> JSONResponse:
        status = _status_for(exc)
        if status >= 500:
            log.error("Tile request failed", exc_info=exc, extra=fields(path=request.url.path, error=exc.code))
        else:
            log.info("Tile request rejected", extra=fields(path=request.url.path, error=exc.code))
        return JSONResponse({"error": exc.code, "detail": str(exc)}, status_code=status)

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "time": iso_now_ms(),
            "tiles": renderer.tile_cache.stats(),
            "layers": len(renderer.layers),
            "policy": {
                "cache_empty_results": renderer.cache_empty_results,
                "heal_corrupt_entries": renderer.heal_corrupt_entries,
                "max_workers": renderer.max_workers,
            },
        }

    @app.get("/api/layers")
    def layers():
        return renderer.layers.to_list()

    @app.get("/api/tile/{layer_id}/{x}/{y}/{zoom}")
    def tile(layer_id: int, x: int, y: int, zoom: int):
        """
        PNG tile for (layer, zoom, x, y).

        200 with image/png, or 204 when the area has no content.
        """
        data = renderer.render(TileAddress(layer_id=layer_id, zoom=zoom, x=x, y=y))
        if data is None:
            return Response(status_code=204)
        return Response(content=data, media_type="image/png", headers={"Cache-Control": "public, max-age=60"})

    return app


def main() -> None:
    settings = load_config(os.environ.get("TILES_CONFIG", DEFAULT_CONFIG_PATH))
    setup_logging(settings.log_level, force=True)
    log.info("Starting tile server", extra=fields(host=settings.host, port=settings.port, cache_root=settings.cache_root))
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


# -------- local dev entrypoint --------
if __name__ == "__main__":
    main()
