from __future__ import annotations

import math
from typing import Any

WEIGHT_PROPERTY = "normalizedWeight"


def _numeric(v: Any) -> float:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return 0.0
    f = float(v)
    return f if math.isfinite(f) else 0.0


def normalize_weights(
    fc: dict[str, Any],
    source_property: str = "docCount",
    *,
    weight_property: str = WEIGHT_PROPERTY,
) -> dict[str, Any]:
    """
    Scale `source_property` by the collection maximum into `weight_property` (in place).

    Max starts at 0, so an empty or all-zero collection gets weight 0 everywhere rather
    than dividing by zero. Missing or non-numeric values count as 0.
    """
    features = fc.get("features") or []
    max_value = 0.0
    for f in features:
        max_value = max(max_value, _numeric(f["properties"].get(source_property)))
    for f in features:
        v = _numeric(f["properties"].get(source_property))
        # Negative values (e.g. a `min` metric) floor at 0.
        f["properties"][weight_property] = max(0.0, v / max_value) if max_value > 0 else 0.0
    return fc
