from __future__ import annotations

from typing import Any

from layers.types import StyleDescriptor

_REFINEMENT_DELTA: dict[str, int] = {"coarse": 0, "fine": 1, "most_fine": 2}
# Finer grids mean denser points, so the kernel radius shrinks (pixels).
_REFINEMENT_RADIUS: dict[str, int] = {"coarse": 64, "fine": 32, "most_fine": 16}


class HeatmapStyle:
    type = "HEATMAP"

    def __init__(self, descriptor: StyleDescriptor | None = None):
        self.descriptor = descriptor or StyleDescriptor()

    @property
    def refinement(self) -> str:
        return self.descriptor.refinement

    def precision_refinement_delta(self) -> int:
        return _REFINEMENT_DELTA[self.refinement]

    def paint_properties(self, weight_property: str) -> dict[str, Any]:
        return {
            "heatmap-radius": _REFINEMENT_RADIUS[self.refinement],
            "heatmap-weight": {"type": "identity", "property": weight_property},
        }
