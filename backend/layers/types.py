from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

MetricType = Literal["count", "avg", "sum", "min", "max", "cardinality", "top_hits"]
Refinement = Literal["coarse", "fine", "most_fine"]
WeightSource = Literal["docCount", "metricValue"]


class MetricDescriptor(BaseModel):
    type: MetricType = "count"
    field: str | None = None


class SourceDescriptor(BaseModel):
    type: Literal["ES_GEOHASH_GRID"] = "ES_GEOHASH_GRID"
    dataSourceId: str
    geoField: str
    # One metric only; multi-metric grids are not supported.
    metrics: list[MetricDescriptor] = Field(default_factory=lambda: [MetricDescriptor()])


class StyleDescriptor(BaseModel):
    type: Literal["HEATMAP"] = "HEATMAP"
    refinement: Refinement = "coarse"
    # Feature property scaled into the heatmap weight.
    weightBy: WeightSource = "docCount"


class LayerDescriptor(BaseModel):
    """
    The durable definition of a layer. Sync state is never persisted with it.
    """

    id: str
    type: Literal["HEATMAP"] = "HEATMAP"
    label: str | None = None
    source: SourceDescriptor
    style: StyleDescriptor = Field(default_factory=StyleDescriptor)
    minZoom: float = Field(default=0.0, ge=0.0, le=24.0)
    maxZoom: float = Field(default=24.0, ge=0.0, le=24.0)
    alpha: float = Field(default=0.75, ge=0.0, le=1.0)
    visible: bool = True

    def show_at_zoom(self, zoom: float) -> bool:
        return self.minZoom <= float(zoom) <= self.maxZoom
