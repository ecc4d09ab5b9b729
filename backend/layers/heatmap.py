from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable

from agg.geojson import empty_feature_collection
from agg.precision import precision_for_zoom
from agg.weights import WEIGHT_PROPERTY, normalize_weights
from errors import HeatgridError
from layers.style import HeatmapStyle
from layers.types import LayerDescriptor
from render.map import MapRenderer
from sources.geohash_grid import GeohashGridSource
from sync.lifecycle import RequestLifecycle
from sync.refresh import has_extent, next_metadata, should_refetch
from sync.types import FetchMetadata, LayerSyncState, SyncStatus, ViewportState

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[str], None]


class HeatmapLayer:
    """
    Keeps one heatmap layer's data in sync with the map view.

    `sync_data` runs on every render tick and fetches only when the view changed enough
    (precision, time range, refresh tick, or extent leaving the last fetched area).
    `sync_with_map` pushes the cached geometry and styling to the renderer.
    """

    type = "HEATMAP"

    def __init__(
        self,
        descriptor: LayerDescriptor,
        *,
        source: GeohashGridSource,
        lifecycle: RequestLifecycle,
        renderer: MapRenderer,
        style: HeatmapStyle | None = None,
        weight_source_property: str = "docCount",
    ):
        self.descriptor = descriptor
        self.source = source
        self.style = style or HeatmapStyle(descriptor.style)
        self.weight_source_property = weight_source_property
        self._lifecycle = lifecycle
        self._renderer = renderer

    @property
    def id(self) -> str:
        return self.descriptor.id

    def display_name(self) -> str:
        return self.descriptor.label or self.source.display_name()

    def is_visible(self) -> bool:
        return self.descriptor.visible

    async def sync_data(
        self,
        state: LayerSyncState,
        viewport: ViewportState,
        *,
        on_error: ErrorCallback | None = None,
    ) -> LayerSyncState:
        """
        Fetch new data when needed and return the layer's next state.

        Returns `state` itself when nothing had to be fetched. A fetch that was superseded
        while in flight returns `state` marked SUPERSEDED; callers must not store it.
        """
        if not self.is_visible() or not self.descriptor.show_at_zoom(viewport.zoom):
            return state
        if not has_extent(viewport):
            logger.debug("layer %s: no map extent yet, skipping sync", self.id)
            return state

        delta = self.style.precision_refinement_delta()
        if not should_refetch(state.metadata, viewport, refinement_delta=delta):
            return state

        precision = precision_for_zoom(viewport.zoom, delta)
        return await self._fetch_new_data(state, next_metadata(viewport, precision), on_error)

    async def _fetch_new_data(
        self,
        state: LayerSyncState,
        metadata: FetchMetadata,
        on_error: ErrorCallback | None,
    ) -> LayerSyncState:
        token = self._lifecycle.begin(self.id, metadata, label=self.display_name())
        logger.info(
            "layer %s: fetch #%s precision=%s", self.id, token.seq, metadata.precision
        )
        try:
            fc = await self.source.get_geojson_points(
                precision=metadata.precision,
                extent=metadata.extent,
                time_range=metadata.time_range,
                inspector_request=self._lifecycle.request(token),
            )
        except Exception as e:
            if not self._lifecycle.fail(token, e):
                return replace(state, status=SyncStatus.SUPERSEDED)
            if isinstance(e, HeatgridError):
                message = str(e)
                logger.warning("layer %s: fetch #%s failed: %s", self.id, token.seq, message)
            else:
                message = f"Unexpected error while fetching data: {type(e).__name__}: {e}"
                logger.exception("layer %s: fetch #%s failed", self.id, token.seq)
            if on_error is not None:
                on_error(message)
            # Keep the previous geometry on screen.
            return replace(state, status=SyncStatus.IDLE, last_error=message)

        if not self._lifecycle.complete(token, fc):
            return replace(state, status=SyncStatus.SUPERSEDED)

        normalize_weights(fc, self.weight_source_property)
        self._renderer.set_layer_geometry(self.id, fc)
        return LayerSyncState(metadata=metadata, geometry=fc, status=SyncStatus.IDLE)

    def sync_with_map(self, state: LayerSyncState) -> None:
        """
        Push cached geometry (only if not already bound) and styling to the renderer.
        """
        fc = state.geometry
        bound = self._renderer.bound_geometry(self.id)
        if fc is None:
            if bound is None or bound.get("features"):
                self._renderer.set_layer_geometry(self.id, empty_feature_collection())
        elif fc is not bound:
            normalize_weights(fc, self.weight_source_property)
            self._renderer.set_layer_geometry(self.id, fc)

        self._renderer.set_layer_visibility(self.id, self.is_visible())
        for key, value in self.paint_properties().items():
            self._renderer.set_layer_paint_property(self.id, key, value)
        self._renderer.set_layer_zoom_range(self.id, self.descriptor.minZoom, self.descriptor.maxZoom)

    def paint_properties(self) -> dict[str, Any]:
        props = self.style.paint_properties(WEIGHT_PROPERTY)
        props["heatmap-opacity"] = self.descriptor.alpha
        return props

    def destroy(self) -> None:
        self._renderer.remove_layer(self.id)
