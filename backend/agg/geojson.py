from __future__ import annotations

from typing import Any

from agg.query import AggregationQuery
from agg.tabify import BucketRow, tabify
from errors import MalformedResponseError
from geo import geohash


def empty_feature_collection() -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": []}


def _cell_meta(geohash_key: str) -> dict[str, Any]:
    try:
        cell = geohash.decode_bbox(geohash_key)
        center = list(geohash.decode_center(geohash_key))
    except ValueError as e:
        raise MalformedResponseError(f"Bucket key {geohash_key!r} is not a geohash: {e}") from e
    return {
        "center": center,
        "rectangle": [
            [cell.min_lon, cell.min_lat],
            [cell.max_lon, cell.min_lat],
            [cell.max_lon, cell.max_lat],
            [cell.min_lon, cell.max_lat],
        ],
    }


def rows_to_feature_collection(rows: list[BucketRow]) -> dict[str, Any]:
    """
    One Point per bucket, placed at the centroid (cell centre as fallback), lon/lat order.
    """
    features: list[dict[str, Any]] = []
    for row in rows:
        meta = _cell_meta(row.geohash)
        lon, lat = row.centroid if row.centroid is not None else meta["center"]
        features.append(
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [lon, lat]},
                "properties": {
                    "geohash": row.geohash,
                    "geohashMeta": meta,
                    "docCount": row.doc_count,
                    "metricValue": row.metric_value,
                },
            }
        )
    return {"type": "FeatureCollection", "features": features}


def transform(query: AggregationQuery, resp: Any) -> dict[str, Any]:
    return rows_to_feature_collection(tabify(query, resp))
