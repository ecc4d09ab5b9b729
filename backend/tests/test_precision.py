from __future__ import annotations

from agg.precision import MAX_PRECISION, MIN_PRECISION, ZOOM_TO_PRECISION, precision_for_zoom


def test_precision_is_monotonic_in_zoom():
    zooms = [z / 4.0 for z in range(0, 4 * 24 + 1)]
    values = [precision_for_zoom(z) for z in zooms]
    assert values == sorted(values)


def test_precision_is_deterministic():
    assert precision_for_zoom(7.3, 1) == precision_for_zoom(7.3, 1)


def test_precision_rounds_zoom_then_adds_delta():
    assert precision_for_zoom(3.0) == ZOOM_TO_PRECISION[3]
    assert precision_for_zoom(3.4) == ZOOM_TO_PRECISION[3]
    assert precision_for_zoom(3.5) == ZOOM_TO_PRECISION[4]
    assert precision_for_zoom(3.0, 2) == ZOOM_TO_PRECISION[3] + 2


def test_precision_clamps_out_of_range_zoom_and_delta():
    assert precision_for_zoom(-3.0) == ZOOM_TO_PRECISION[0]
    assert precision_for_zoom(40.0) == ZOOM_TO_PRECISION[-1]
    assert precision_for_zoom(21.0, 5) == MAX_PRECISION
    assert precision_for_zoom(0.0, -4) == MIN_PRECISION
