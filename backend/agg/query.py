from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from agg.precision import MAX_PRECISION, MIN_PRECISION
from catalog.types import GEO_FIELD_TYPES, DataSource
from errors import SchemaError
from geo.aoi import BBox
from sync.types import TimeRange

METRIC_TYPES = ("count", "avg", "sum", "min", "max", "cardinality", "top_hits")
# Metrics that aggregate numbers and therefore need a numeric field.
_NUMERIC_METRICS = ("avg", "sum", "min", "max")

# Aggregation ids inside the request body (the response is keyed by them).
METRIC_AGG_ID = "1"
GRID_AGG_ID = "2"
CENTROID_AGG_ID = "3"


@dataclass(frozen=True)
class MetricSpec:
    type: str = "count"
    field: str | None = None


@dataclass(frozen=True)
class GridBucketSpec:
    field: str
    precision: int
    # The extent filter already lives in the query; the grid must not clip again.
    collar_filtered: bool = False
    use_centroid: bool = True
    # Precision is driven by zoom + style, never picked by the backend.
    auto_precision: bool = False


@dataclass(frozen=True)
class AggregationQuery:
    """
    One metric + one geohash grid, scoped by an extent filter AND a time filter.
    """

    data_source_id: str
    metric: MetricSpec
    bucket: GridBucketSpec
    extent: BBox
    time_range: TimeRange
    filters: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    def aggs_dsl(self) -> dict[str, Any]:
        sub: dict[str, Any] = {}
        if self.bucket.use_centroid:
            sub[CENTROID_AGG_ID] = {"geo_centroid": {"field": self.bucket.field}}
        metric = _metric_dsl(self.metric)
        if metric is not None:
            sub[METRIC_AGG_ID] = metric

        grid: dict[str, Any] = {
            "geohash_grid": {"field": self.bucket.field, "precision": self.bucket.precision}
        }
        if sub:
            grid["aggs"] = sub
        return {GRID_AGG_ID: grid}

    def to_dsl(self) -> dict[str, Any]:
        """
        Search request body.
        """
        return {
            "size": 0,
            "query": {"bool": {"filter": [dict(f) for f in self.filters]}},
            "aggs": self.aggs_dsl(),
        }


def _metric_dsl(metric: MetricSpec) -> dict[str, Any] | None:
    if metric.type == "count":
        # doc_count of each bucket is the value.
        return None
    if metric.type == "top_hits":
        return {"top_hits": {"size": 1, "_source": {"includes": [metric.field]}}}
    return {metric.type: {"field": metric.field}}


def create_extent_filter(extent: BBox, geo_field: str, geo_field_type: str) -> dict[str, Any]:
    """
    Filter documents to the extent (corners clamped to valid lon/lat).
    """
    b = extent.clamped()
    top_left = [b.min_lon, b.max_lat]
    bottom_right = [b.max_lon, b.min_lat]
    if geo_field_type == "geo_shape":
        return {
            "geo_shape": {
                geo_field: {
                    "shape": {"type": "envelope", "coordinates": [top_left, bottom_right]},
                    "relation": "INTERSECTS",
                }
            }
        }
    return {"geo_bounding_box": {geo_field: {"top_left": top_left, "bottom_right": bottom_right}}}


def create_time_filter(data_source: DataSource, time_range: TimeRange) -> dict[str, Any]:
    if not data_source.timeFieldName:
        # Not time-based: keep the filter pair complete with a no-op.
        return {"match_all": {}}
    return {
        "range": {
            data_source.timeFieldName: {
                "gte": time_range.from_,
                "lte": time_range.to,
                "format": "strict_date_optional_time",
            }
        }
    }


def _validate_metric(data_source: DataSource, metric: MetricSpec) -> None:
    if metric.type not in METRIC_TYPES:
        raise SchemaError(f"Unsupported metric aggregation {metric.type!r}")
    if metric.type == "count":
        return
    if not metric.field:
        raise SchemaError(f"Metric aggregation {metric.type!r} requires a field")
    spec = data_source.field(metric.field)
    if spec is None:
        raise SchemaError(
            f"Data source {data_source.title} no longer contains the field {metric.field}"
        )
    if metric.type in _NUMERIC_METRICS and spec.type != "number":
        raise SchemaError(
            f"Metric aggregation {metric.type!r} needs a number field, "
            f"{metric.field} is {spec.type}"
        )


def build_query(
    data_source: DataSource,
    geo_field: str,
    precision: int,
    extent: BBox,
    time_range: TimeRange,
    *,
    metrics: Sequence[MetricSpec] | None = None,
) -> AggregationQuery:
    metrics = list(metrics) if metrics else [MetricSpec()]
    if len(metrics) != 1:
        # The GeoJSON conversion carries a single metric value per bucket.
        raise SchemaError(
            f"Geohash grid supports exactly one metric aggregation, got {len(metrics)}"
        )
    metric = metrics[0]
    _validate_metric(data_source, metric)

    spec = data_source.field(geo_field)
    if spec is None:
        raise SchemaError(
            f"Data source {data_source.title} no longer contains the geo field {geo_field}"
        )
    if spec.type not in GEO_FIELD_TYPES:
        raise SchemaError(f"Field {geo_field} is {spec.type}, expected a geo field")

    p = int(precision)
    if not MIN_PRECISION <= p <= MAX_PRECISION:
        raise SchemaError(f"Precision {p} outside [{MIN_PRECISION}, {MAX_PRECISION}]")

    filters = (
        create_extent_filter(extent, geo_field, spec.type),
        create_time_filter(data_source, time_range),
    )
    return AggregationQuery(
        data_source_id=data_source.id,
        metric=metric,
        bucket=GridBucketSpec(field=geo_field, precision=p),
        extent=extent,
        time_range=time_range,
        filters=filters,
    )
