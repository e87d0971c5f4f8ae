from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from common.types import Layer


DEFAULT_LAYERS: List[Dict[str, Any]] = [
    {"id": 0, "name": "Base", "from": -2, "to": 10},
]


def layer_from_dict(d: Mapping[str, Any]) -> Layer:
    """
    Build a Layer from its config form:
        {id: 0, name: "Base", from: -2, to: 10}
    """
    try:
        return Layer(
            id=int(d["id"]),
            name=str(d.get("name", f"layer-{d['id']}")),
            y_from=int(d["from"]),
            y_to=int(d["to"]),
        )
    except KeyError as e:
        raise ValueError(f"layer config missing key {e.args[0]!r}: {dict(d)}") from e


class LayerRegistry:
    """
    Read-only, ordered lookup of layers by id.

    Built once from configuration and handed to the renderer; absence of a
    layer is reported at request time by the renderer, not here.
    """

    def __init__(self, layers: Iterable[Layer]):
        self._layers: Dict[int, Layer] = {}
        for layer in layers:
            if layer.id in self._layers:
                raise ValueError(f"duplicate layer id {layer.id}")
            self._layers[layer.id] = layer

    @classmethod
    def from_config(cls, items: Optional[Iterable[Mapping[str, Any]]]) -> "LayerRegistry":
        return cls(layer_from_dict(d) for d in (items if items is not None else DEFAULT_LAYERS))

    def get(self, layer_id: int) -> Optional[Layer]:
        return self._layers.get(layer_id)

    def __contains__(self, layer_id: object) -> bool:
        return layer_id in self._layers

    def __iter__(self) -> Iterator[Layer]:
        return iter(self._layers.values())

    def __len__(self) -> int:
        return len(self._layers)

    def to_list(self) -> List[Dict[str, Any]]:
        return [layer.to_dict() for layer in self]
