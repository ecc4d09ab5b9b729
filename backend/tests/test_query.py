from __future__ import annotations

import pytest

from agg.query import MetricSpec, build_query
from catalog.types import DataSource, FieldSpec
from errors import SchemaError
from geo.aoi import BBox
from sync.types import TimeRange


EXTENT = BBox(min_lon=-10, min_lat=-10, max_lon=10, max_lat=10)
TR = TimeRange(from_="2025-06-01T00:00:00", to="2025-06-02T00:00:00")


def test_query_has_one_metric_and_one_grid_bucket(data_source):
    q = build_query(data_source, "location", 2, EXTENT, TR)
    assert q.metric == MetricSpec(type="count")
    assert q.bucket.field == "location"
    assert q.bucket.precision == 2
    assert q.bucket.collar_filtered is False
    assert q.bucket.use_centroid is True
    assert q.bucket.auto_precision is False

    dsl = q.to_dsl()
    assert dsl["size"] == 0
    grid = dsl["aggs"]["2"]
    assert grid["geohash_grid"] == {"field": "location", "precision": 2}
    # Count uses doc_count, so only the centroid sub-aggregation is present.
    assert grid["aggs"] == {"3": {"geo_centroid": {"field": "location"}}}


def test_filters_are_extent_and_time(data_source):
    q = build_query(data_source, "location", 2, EXTENT, TR)
    extent_filter, time_filter = q.to_dsl()["query"]["bool"]["filter"]
    assert extent_filter == {
        "geo_bounding_box": {"location": {"top_left": [-10, 10], "bottom_right": [10, -10]}}
    }
    assert time_filter == {
        "range": {
            "timestamp": {
                "gte": "2025-06-01T00:00:00",
                "lte": "2025-06-02T00:00:00",
                "format": "strict_date_optional_time",
            }
        }
    }


def test_extent_filter_clamps_to_valid_coordinates(data_source):
    wide = BBox(min_lon=-200, min_lat=-95, max_lon=200, max_lat=95)
    q = build_query(data_source, "location", 1, wide, TR)
    f = q.filters[0]["geo_bounding_box"]["location"]
    assert f == {"top_left": [-180, 90], "bottom_right": [180, -90]}


def test_geo_shape_field_uses_envelope():
    ds = DataSource(id="s", title="Shapes", fields={"area": FieldSpec(type="geo_shape")})
    q = build_query(ds, "area", 3, EXTENT, TR)
    shape = q.filters[0]["geo_shape"]["area"]["shape"]
    assert shape == {"type": "envelope", "coordinates": [[-10, 10], [10, -10]]}
    # No time field: the time slot still holds a filter.
    assert q.filters[1] == {"match_all": {}}


def test_non_count_metric_adds_sub_aggregation(data_source):
    q = build_query(data_source, "location", 2, EXTENT, TR, metrics=[MetricSpec("avg", "bytes")])
    assert q.to_dsl()["aggs"]["2"]["aggs"]["1"] == {"avg": {"field": "bytes"}}


def test_missing_geo_field_is_schema_error(data_source):
    with pytest.raises(SchemaError, match="no longer contains the geo field where"):
        build_query(data_source, "where", 2, EXTENT, TR)


def test_non_geo_field_is_schema_error(data_source):
    with pytest.raises(SchemaError, match="expected a geo field"):
        build_query(data_source, "host", 2, EXTENT, TR)


def test_multiple_metrics_are_rejected(data_source):
    with pytest.raises(SchemaError, match="exactly one metric"):
        build_query(
            data_source,
            "location",
            2,
            EXTENT,
            TR,
            metrics=[MetricSpec("count"), MetricSpec("sum", "bytes")],
        )


@pytest.mark.parametrize(
    "metric",
    [MetricSpec("median", "bytes"), MetricSpec("sum"), MetricSpec("avg", "host"), MetricSpec("max", "nope")],
)
def test_invalid_metrics_are_rejected(data_source, metric):
    with pytest.raises(SchemaError):
        build_query(data_source, "location", 2, EXTENT, TR, metrics=[metric])
