from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from tile_server.layers import DEFAULT_LAYERS, LayerRegistry


DEFAULT_CONFIG_PATH = "config/params.yaml"


def _defaults() -> Dict[str, Any]:
    return {
        "tiles": {
            "cache_root": "data/tiles",
            "cache_empty_results": True,
            "heal_corrupt_entries": False,
            "max_workers": 4,
        },
        "layers": [dict(d) for d in DEFAULT_LAYERS],
        "leaf": {"world_radius": 64, "seed": 1234},
        "server": {"host": "0.0.0.0", "port": 8080},
        "logging": {"level": "INFO"},
    }


@dataclass(frozen=True)
class Settings:
    cache_root: str = "data/tiles"
    cache_empty_results: bool = True
    heal_corrupt_entries: bool = False
    max_workers: int = 4
    layers: List[Dict[str, Any]] = field(default_factory=lambda: [dict(d) for d in DEFAULT_LAYERS])
    world_radius: int = 64
    seed: int = 1234
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, P: Optional[Dict[str, Any]]) -> "Settings":
        D = _defaults()
        P = P or {}
        tiles = {**D["tiles"], **(P.get("tiles") or {})}
        leaf = {**D["leaf"], **(P.get("leaf") or {})}
        server = {**D["server"], **(P.get("server") or {})}
        logging_cfg = {**D["logging"], **(P.get("logging") or {})}
        layers = P.get("layers")
        return cls(
            cache_root=str(tiles["cache_root"]),
            cache_empty_results=bool(tiles["cache_empty_results"]),
            heal_corrupt_entries=bool(tiles["heal_corrupt_entries"]),
            max_workers=int(tiles["max_workers"]),
            layers=list(layers) if layers else D["layers"],
            world_radius=int(leaf["world_radius"]),
            seed=int(leaf["seed"]),
            host=str(server["host"]),
            port=int(server["port"]),
            log_level=str(logging_cfg["level"]).upper(),
        )

    def layer_registry(self) -> LayerRegistry:
        return LayerRegistry.from_config(self.layers)


def load_config(path: str = DEFAULT_CONFIG_PATH) -> Settings:
    """Read YAML config; a missing file yields the built-in defaults."""
    if not Path(path).exists():
        return Settings.from_dict(None)
    with open(path, "r") as f:
        return Settings.from_dict(yaml.safe_load(f))
