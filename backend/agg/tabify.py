from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from agg.query import CENTROID_AGG_ID, GRID_AGG_ID, METRIC_AGG_ID, AggregationQuery
from errors import MalformedResponseError


@dataclass(frozen=True)
class BucketRow:
    geohash: str
    # (lon, lat) of the documents' centroid; None when the backend did not compute one.
    centroid: tuple[float, float] | None
    doc_count: int
    metric_value: Any


def tabify(query: AggregationQuery, resp: Any) -> list[BucketRow]:
    """
    Flatten the grid aggregation of a search response into one row per bucket.

    Keeps backend order and zero-count buckets.
    """
    if not isinstance(resp, dict):
        raise MalformedResponseError(f"Expected a response object, got {type(resp).__name__}")
    aggs = resp.get("aggregations")
    if aggs is None:
        # No matching documents: some backends omit aggregations entirely.
        return []
    if not isinstance(aggs, dict):
        raise MalformedResponseError("Response `aggregations` is not an object")
    grid = aggs.get(GRID_AGG_ID)
    if not isinstance(grid, dict) or not isinstance(grid.get("buckets"), list):
        raise MalformedResponseError(f"Response is missing buckets for aggregation {GRID_AGG_ID}")

    rows: list[BucketRow] = []
    for i, bucket in enumerate(grid["buckets"]):
        if not isinstance(bucket, dict) or "key" not in bucket:
            raise MalformedResponseError(f"Bucket #{i} has no key")
        try:
            doc_count = int(bucket.get("doc_count") or 0)
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(f"Bucket {bucket['key']!r} has an invalid doc_count") from e
        rows.append(
            BucketRow(
                geohash=str(bucket["key"]),
                centroid=_centroid(bucket) if query.bucket.use_centroid else None,
                doc_count=doc_count,
                metric_value=_metric_value(query, bucket, doc_count),
            )
        )
    return rows


def _sub_agg(bucket: dict[str, Any], agg_id: str) -> dict[str, Any] | None:
    agg = bucket.get(agg_id)
    if agg is None:
        return None
    if not isinstance(agg, dict):
        raise MalformedResponseError(
            f"Bucket {bucket.get('key')!r} has a non-object sub-aggregation {agg_id}"
        )
    return agg


def _centroid(bucket: dict[str, Any]) -> tuple[float, float] | None:
    loc = (_sub_agg(bucket, CENTROID_AGG_ID) or {}).get("location")
    if loc is None:
        return None
    try:
        return float(loc["lon"]), float(loc["lat"])
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedResponseError(f"Bucket {bucket.get('key')!r} has an invalid centroid") from e


def _metric_value(query: AggregationQuery, bucket: dict[str, Any], doc_count: int) -> Any:
    metric = query.metric
    if metric.type == "count":
        return doc_count
    agg = _sub_agg(bucket, METRIC_AGG_ID)
    if agg is None:
        raise MalformedResponseError(
            f"Bucket {bucket.get('key')!r} is missing the {metric.type} metric"
        )
    if metric.type != "top_hits":
        return agg.get("value")
    outer = agg.get("hits", {})
    hits = (outer.get("hits") or []) if isinstance(outer, dict) else None
    if not isinstance(hits, list) or not all(isinstance(h, dict) for h in hits):
        raise MalformedResponseError(f"Bucket {bucket.get('key')!r} has malformed top hits")
    if not hits:
        return None
    source = hits[0].get("_source") or {}
    if not isinstance(source, dict):
        raise MalformedResponseError(f"Bucket {bucket.get('key')!r} has a non-object hit _source")
    return source.get(metric.field)
