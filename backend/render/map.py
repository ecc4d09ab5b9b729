from __future__ import annotations

from typing import Any, Protocol


class MapRenderer(Protocol):
    """
    What a layer needs from the map: push geometry, toggle, zoom-range, paint.
    """

    def set_layer_geometry(self, layer_id: str, fc: dict[str, Any]) -> None: ...

    def bound_geometry(self, layer_id: str) -> dict[str, Any] | None: ...

    def set_layer_visibility(self, layer_id: str, visible: bool) -> None: ...

    def set_layer_zoom_range(self, layer_id: str, min_zoom: float, max_zoom: float) -> None: ...

    def set_layer_paint_property(self, layer_id: str, key: str, value: Any) -> None: ...

    def remove_layer(self, layer_id: str) -> None: ...
