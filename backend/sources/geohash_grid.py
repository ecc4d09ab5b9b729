from __future__ import annotations

import logging
import time
from typing import Any, Protocol

from agg.geojson import transform
from agg.query import AggregationQuery, MetricSpec, build_query
from catalog.types import DataSource
from engine.types import QueryExecutor
from errors import BackendError, NotFoundError
from geo.aoi import BBox
from layers.types import SourceDescriptor
from sync.types import TimeRange
from telemetry.inspector import InspectorRequest

logger = logging.getLogger(__name__)


class DataSourceLookup(Protocol):
    def get_data_source(self, data_source_id: str) -> DataSource: ...


def request_stats(data_source: DataSource, query: AggregationQuery) -> dict[str, Any]:
    return {
        "dataSourceId": data_source.id,
        "dataSourceTitle": data_source.title,
        "geoField": query.bucket.field,
        "precision": query.bucket.precision,
        "metric": query.metric.type,
        "extent": query.extent.as_dict(),
        "timeRange": query.time_range.as_dict(),
    }


def response_stats(resp: dict[str, Any], *, query_ms: float) -> dict[str, Any]:
    hits = resp.get("hits") or {}
    total = hits.get("total")
    if isinstance(total, dict):
        total = total.get("value")
    return {
        "hitsTotal": total,
        "hits": len(hits.get("hits") or []),
        "queryTimeMs": resp.get("took"),
        "requestTimeMs": round(query_ms, 2),
    }


class GeohashGridSource:
    """
    Geohash-grid aggregation over one geo field of a data source.

    Produces the point FeatureCollection a heatmap layer renders.
    """

    type = "ES_GEOHASH_GRID"

    def __init__(
        self,
        descriptor: SourceDescriptor,
        *,
        catalog: DataSourceLookup,
        executor: QueryExecutor,
    ):
        self.descriptor = descriptor
        self._catalog = catalog
        self._executor = executor

    def display_name(self) -> str:
        return f"geohash_grid {self.descriptor.dataSourceId}"

    def metrics(self) -> list[MetricSpec]:
        return [MetricSpec(type=m.type, field=m.field) for m in self.descriptor.metrics]

    async def get_geojson_points(
        self,
        *,
        precision: int,
        extent: BBox,
        time_range: TimeRange,
        inspector_request: InspectorRequest | None = None,
    ) -> dict[str, Any]:
        try:
            data_source = self._catalog.get_data_source(self.descriptor.dataSourceId)
        except NotFoundError as e:
            raise NotFoundError(f"Unable to find data source {self.descriptor.dataSourceId}") from e

        # SchemaError (missing/mistyped geo field, bad metric) propagates as-is.
        query = build_query(
            data_source,
            self.descriptor.geoField,
            precision,
            extent,
            time_range,
            metrics=self.metrics(),
        )

        if inspector_request is not None:
            inspector_request.record_stats(request_stats(data_source, query))
            inspector_request.record_body(query.to_dsl())

        t0 = time.perf_counter()
        try:
            resp = await self._executor.execute(data_source, query)
        except Exception as e:
            raise BackendError(f"Search request failed, error: {e}") from e
        if inspector_request is not None and isinstance(resp, dict):
            inspector_request.record_stats(
                response_stats(resp, query_ms=(time.perf_counter() - t0) * 1000.0)
            )

        fc = transform(query, resp)
        logger.debug(
            "%s precision=%s -> %d features",
            self.display_name(),
            precision,
            len(fc["features"]),
        )
        return fc
