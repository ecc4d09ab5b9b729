from __future__ import annotations

import math

from agg.weights import normalize_weights


def _fc(*values):
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [0, 0]}, "properties": {"docCount": v}}
            for v in values
        ],
    }


def _weights(fc):
    return [f["properties"]["normalizedWeight"] for f in fc["features"]]


def test_weights_scale_by_maximum():
    fc = normalize_weights(_fc(5, 10, 2))
    assert _weights(fc) == [0.5, 1.0, 0.2]
    assert max(_weights(fc)) == 1.0


def test_all_zero_collection_gets_zero_weights():
    fc = normalize_weights(_fc(0, 0, 0))
    assert _weights(fc) == [0.0, 0.0, 0.0]
    assert not any(math.isnan(w) or math.isinf(w) for w in _weights(fc))


def test_empty_collection_is_fine():
    assert normalize_weights(_fc())["features"] == []


def test_other_source_property_and_bad_values():
    fc = {
        "type": "FeatureCollection",
        "features": [
            {"properties": {"metricValue": 4.0}},
            {"properties": {"metricValue": None}},
            {"properties": {"metricValue": -2.0}},
            {"properties": {}},
        ],
    }
    normalize_weights(fc, "metricValue")
    assert _weights(fc) == [1.0, 0.0, 0.0, 0.0]
