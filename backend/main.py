import logging
import os

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from api.layer_sync import get_service
from errors import NotFoundError
from geo.aoi import BBox
from geo.tiles import expand_to_tile_boundaries
from sync.types import TimeRange, ViewportState
from telemetry.singleton import get_store

logging.basicConfig(
    level=(os.getenv("HEATGRID_LOG_LEVEL") or "INFO").strip().upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ApiBbox(BaseModel):
    minLon: float
    minLat: float
    maxLon: float
    maxLat: float


class ApiTimeRange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(default="now-15m", alias="from")
    to: str = "now"


class ApiSyncRequest(BaseModel):
    zoom: float = Field(ge=0.0, le=24.0)
    # Absent until the map has rendered once.
    bbox: ApiBbox | None = None
    timeRange: ApiTimeRange = Field(default_factory=ApiTimeRange)
    refreshTimerTick: float | None = None
    # Grow the viewport to tile edges so small pans reuse the fetched data.
    bufferToTiles: bool = True


def viewport_from_request(body: ApiSyncRequest) -> ViewportState:
    extent = None
    if body.bbox is not None:
        extent = BBox(
            min_lon=body.bbox.minLon,
            min_lat=body.bbox.minLat,
            max_lon=body.bbox.maxLon,
            max_lat=body.bbox.maxLat,
        ).normalized()
        if body.bufferToTiles:
            extent = expand_to_tile_boundaries(extent, body.zoom)
    return ViewportState(
        zoom=body.zoom,
        extent=extent,
        time_range=TimeRange(from_=body.timeRange.from_, to=body.timeRange.to),
        refresh_timer_tick=body.refreshTimerTick,
    )


@app.get("/layers")
def list_layers():
    service = get_service()
    return {"layers": [d.model_dump() for d in service.catalog.list_layers()]}


@app.post("/layers/{layer_id}/sync")
async def sync_layer(layer_id: str, body: ApiSyncRequest):
    service = get_service()
    try:
        service.layer(layer_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return await service.sync(layer_id, viewport_from_request(body))


@app.delete("/layers/{layer_id}")
def remove_layer(layer_id: str):
    service = get_service()
    try:
        service.catalog.get_layer(layer_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"layerId": layer_id, "removed": service.remove(layer_id)}


@app.get("/inspector/requests")
def inspector_requests(layerId: str | None = None):
    service = get_service()
    return {"requests": [r.as_dict() for r in service.inspector.requests(layerId)]}


@app.get("/telemetry/summary")
def telemetry_summary(layerId: str | None = None, sinceMs: int | None = None):
    store = get_store()
    if store is None:
        return {"enabled": False, "summary": []}
    return {"enabled": True, "summary": store.summary(layer_id=layerId, since_ms=sinceMs)}


@app.get("/telemetry/recent")
def telemetry_recent(layerId: str | None = None, limit: int = 50):
    store = get_store()
    if store is None:
        return {"enabled": False, "requests": []}
    return {"enabled": True, "requests": store.recent(layer_id=layerId, limit=limit)}
