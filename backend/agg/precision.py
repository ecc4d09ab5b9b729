from __future__ import annotations

import math

# Geohash precision per integer map zoom (index = zoom). Non-decreasing.
ZOOM_TO_PRECISION: tuple[int, ...] = (
    1, 2, 2, 2, 3, 3, 4, 4, 4, 5, 5, 6, 6, 6, 7, 7, 8, 8, 8, 9, 9, 10,
)

MIN_PRECISION = 1
# Largest precision the backend's geohash_grid aggregation accepts.
MAX_PRECISION = 12


def precision_for_zoom(zoom: float, refinement_delta: int = 0) -> int:
    """
    Map a (fractional) map zoom to a grid precision.

    Zoom is rounded half-up to the nearest integer and clamped to the table; the style's
    refinement delta is added and the result clamped to the valid precision range.
    """
    z = int(math.floor(float(zoom) + 0.5))
    z = max(0, min(len(ZOOM_TO_PRECISION) - 1, z))
    p = ZOOM_TO_PRECISION[z] + int(refinement_delta)
    return max(MIN_PRECISION, min(MAX_PRECISION, p))
