from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from agg.weights import WEIGHT_PROPERTY
from render.map import MapRenderer


@dataclass
class _LayerRender:
    geometry: dict[str, Any] | None = None
    visible: bool = True
    min_zoom: float = 0.0
    max_zoom: float = 24.0
    paint: dict[str, Any] = field(default_factory=dict)
    # How many times geometry was pushed (lets callers see redundant pushes).
    geometry_pushes: int = 0


class PlotlyMapRenderer(MapRenderer):
    """
    Keeps per-layer render state and turns it into a Plotly `densitymapbox` figure dict.
    """

    def __init__(self, *, map_style: str = "carto-positron"):
        self.map_style = map_style
        self._layers: dict[str, _LayerRender] = {}

    def _layer(self, layer_id: str) -> _LayerRender:
        return self._layers.setdefault(layer_id, _LayerRender())

    def set_layer_geometry(self, layer_id: str, fc: dict[str, Any]) -> None:
        lr = self._layer(layer_id)
        lr.geometry = fc
        lr.geometry_pushes += 1

    def bound_geometry(self, layer_id: str) -> dict[str, Any] | None:
        lr = self._layers.get(layer_id)
        return lr.geometry if lr is not None else None

    def geometry_pushes(self, layer_id: str) -> int:
        lr = self._layers.get(layer_id)
        return lr.geometry_pushes if lr is not None else 0

    def set_layer_visibility(self, layer_id: str, visible: bool) -> None:
        self._layer(layer_id).visible = bool(visible)

    def set_layer_zoom_range(self, layer_id: str, min_zoom: float, max_zoom: float) -> None:
        lr = self._layer(layer_id)
        lr.min_zoom = float(min_zoom)
        lr.max_zoom = float(max_zoom)

    def set_layer_paint_property(self, layer_id: str, key: str, value: Any) -> None:
        self._layer(layer_id).paint[key] = value

    def remove_layer(self, layer_id: str) -> None:
        self._layers.pop(layer_id, None)

    def trace(self, layer_id: str, *, name: str | None = None, view_zoom: float | None = None) -> dict[str, Any]:
        lr = self._layer(layer_id)
        weight = lr.paint.get("heatmap-weight") or {}
        prop = weight.get("property") if isinstance(weight, dict) else None
        prop = prop or WEIGHT_PROPERTY

        lons: list[float] = []
        lats: list[float] = []
        z: list[float] = []
        for f in (lr.geometry or {}).get("features") or []:
            lon, lat = f["geometry"]["coordinates"]
            lons.append(lon)
            lats.append(lat)
            z.append(float(f["properties"].get(prop) or 0.0))

        in_range = view_zoom is None or lr.min_zoom <= float(view_zoom) <= lr.max_zoom
        return {
            "type": "densitymapbox",
            "name": name or layer_id,
            "lon": lons,
            "lat": lats,
            "z": z,
            "zmin": 0.0,
            "zmax": 1.0,
            "radius": int(lr.paint.get("heatmap-radius") or 30),
            "opacity": float(lr.paint.get("heatmap-opacity", 1.0)),
            "visible": bool(lr.visible and in_range),
            "showscale": False,
            "hoverinfo": "skip",
        }

    def figure(
        self,
        layer_ids: list[str] | None = None,
        *,
        center: dict[str, float] | None = None,
        zoom: float | None = None,
        meta: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        ids = layer_ids if layer_ids is not None else list(self._layers.keys())
        return {
            "data": [self.trace(lid, view_zoom=zoom) for lid in ids],
            "layout": {
                "mapbox": {
                    "center": center or {"lat": 0.0, "lon": 0.0},
                    "zoom": float(zoom) if zoom is not None else 1.0,
                    "style": self.map_style,
                },
                "showlegend": False,
                "meta": meta or {},
            },
        }
