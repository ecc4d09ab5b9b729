from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from catalog.registry import Catalog, get_catalog
from engine.duckdb import DuckDBQueryExecutor
from engine.types import QueryExecutor
from layers.heatmap import HeatmapLayer
from render.plotly_map import PlotlyMapRenderer
from sources.geohash_grid import GeohashGridSource
from sync.lifecycle import RequestLifecycle
from sync.types import LayerSyncState, SyncStatus, ViewportState
from telemetry.inspector import RequestInspector
from telemetry.singleton import get_store

logger = logging.getLogger(__name__)


@dataclass
class LayerSyncService:
    """
    Owns the heatmap layers of one map and their sync state.

    Only non-superseded results are stored, so a slow stale response can never replace
    the state produced by a newer fetch.
    """

    catalog: Catalog
    executor: QueryExecutor
    inspector: RequestInspector = field(default_factory=RequestInspector)
    renderer: PlotlyMapRenderer = field(default_factory=PlotlyMapRenderer)
    lifecycle: RequestLifecycle | None = None
    _layers: dict[str, HeatmapLayer] = field(default_factory=dict, repr=False)
    _states: dict[str, LayerSyncState] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if self.lifecycle is None:
            self.lifecycle = RequestLifecycle(self.inspector)

    def layer(self, layer_id: str) -> HeatmapLayer:
        layer = self._layers.get(layer_id)
        if layer is not None:
            return layer
        descriptor = self.catalog.get_layer(layer_id)
        source = GeohashGridSource(descriptor.source, catalog=self.catalog, executor=self.executor)
        layer = HeatmapLayer(
            descriptor,
            source=source,
            lifecycle=self.lifecycle,
            renderer=self.renderer,
            weight_source_property=descriptor.style.weightBy,
        )
        self._layers[layer_id] = layer
        return layer

    def state(self, layer_id: str) -> LayerSyncState:
        return self._states.get(layer_id) or LayerSyncState()

    async def sync(self, layer_id: str, viewport: ViewportState) -> dict[str, Any]:
        layer = self.layer(layer_id)
        errors: list[str] = []
        prev = self.state(layer_id)

        new = await layer.sync_data(prev, viewport, on_error=errors.append)
        if new.status is not SyncStatus.SUPERSEDED:
            self._states[layer_id] = new
        current = self.state(layer_id)
        layer.sync_with_map(current)

        center = None
        if viewport.extent is not None:
            b = viewport.extent
            center = {"lon": (b.min_lon + b.max_lon) / 2.0, "lat": (b.min_lat + b.max_lat) / 2.0}
        meta = {
            "layerId": layer_id,
            "precision": current.metadata.precision if current.metadata else None,
            "features": len((current.geometry or {}).get("features") or []),
        }
        return {
            "layerId": layer_id,
            "fetched": new.metadata is not prev.metadata and new.status is SyncStatus.IDLE,
            "superseded": new.status is SyncStatus.SUPERSEDED,
            "status": self.lifecycle.status(layer_id).value,
            "precision": meta["precision"],
            "error": errors[0] if errors else None,
            "plot": self.renderer.figure([layer_id], center=center, zoom=viewport.zoom, meta=meta),
        }

    def remove(self, layer_id: str) -> bool:
        """
        Destroy a layer: unbind it from the renderer and drop its cached geometry.

        Returns False when the layer was never synced.
        """
        layer = self._layers.pop(layer_id, None)
        if layer is not None:
            layer.destroy()
        return self._states.pop(layer_id, None) is not None or layer is not None


@lru_cache(maxsize=1)
def get_service() -> LayerSyncService:
    return LayerSyncService(
        catalog=get_catalog(),
        executor=DuckDBQueryExecutor(),
        inspector=RequestInspector(store_factory=get_store),
    )
