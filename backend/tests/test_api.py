from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.layer_sync import get_service
from catalog.registry import clear_catalog_cache
from main import app

EUROPE = {"minLon": -10.0, "minLat": 35.0, "maxLon": 30.0, "maxLat": 60.0}
YEAR_2025 = {"from": "2025-01-01T00:00:00Z", "to": "2025-12-31T23:59:59Z"}


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("HEATGRID_CATALOG_PATH", raising=False)
    monkeypatch.setenv("HEATGRID_TELEMETRY", "0")
    clear_catalog_cache()
    get_service.cache_clear()
    yield TestClient(app)
    get_service.cache_clear()
    clear_catalog_cache()


def test_list_layers(client):
    resp = client.get("/layers")
    assert resp.status_code == 200
    ids = [layer["id"] for layer in resp.json()["layers"]]
    assert ids == ["web-logs-heatmap", "web-logs-bytes"]


def test_sync_fetches_then_skips_unchanged_view(client):
    body = {"zoom": 4.0, "bbox": EUROPE, "timeRange": YEAR_2025}

    first = client.post("/layers/web-logs-heatmap/sync", json=body)
    assert first.status_code == 200
    payload = first.json()
    assert payload["fetched"] is True
    assert payload["superseded"] is False
    assert payload["error"] is None
    assert payload["status"] == "IDLE"
    assert payload["precision"] == 3

    [trace] = payload["plot"]["data"]
    assert trace["type"] == "densitymapbox"
    assert trace["radius"] == 64
    assert trace["visible"] is True
    assert len(trace["z"]) > 0
    assert max(trace["z"]) == 1.0
    assert all(0.0 <= z <= 1.0 for z in trace["z"])

    second = client.post("/layers/web-logs-heatmap/sync", json=body)
    assert second.status_code == 200
    assert second.json()["fetched"] is False
    assert second.json()["plot"]["data"][0]["z"] == trace["z"]


def test_sync_refetches_on_time_range_change(client):
    body = {"zoom": 4.0, "bbox": EUROPE, "timeRange": YEAR_2025}
    client.post("/layers/web-logs-heatmap/sync", json=body)

    body["timeRange"] = {"from": "2024-01-01T00:00:00Z", "to": "2024-12-31T23:59:59Z"}
    resp = client.post("/layers/web-logs-heatmap/sync", json=body)
    payload = resp.json()
    assert payload["fetched"] is True
    assert payload["plot"]["data"][0]["z"] == []


def test_sync_without_bbox_does_nothing(client):
    resp = client.post("/layers/web-logs-heatmap/sync", json={"zoom": 4.0})
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["fetched"] is False
    assert payload["precision"] is None
    assert payload["plot"]["data"][0]["z"] == []


def test_sync_unknown_layer_is_404(client):
    resp = client.post("/layers/nope/sync", json={"zoom": 4.0, "bbox": EUROPE})
    assert resp.status_code == 404


def test_inspector_lists_requests(client):
    client.post(
        "/layers/web-logs-bytes/sync",
        json={"zoom": 6.0, "bbox": EUROPE, "timeRange": YEAR_2025},
    )
    resp = client.get("/inspector/requests", params={"layerId": "web-logs-bytes"})
    assert resp.status_code == 200
    [req] = resp.json()["requests"]
    assert req["status"] == "ok"
    assert req["accepted"] is True
    assert req["stats"]["precision"] == 5
    assert req["stats"]["metric"] == "sum"
    assert req["body"]["aggs"]["2"]["geohash_grid"]["precision"] == 5


def test_telemetry_summary_disabled(client):
    resp = client.get("/telemetry/summary")
    assert resp.json() == {"enabled": False, "summary": []}


def test_telemetry_recent_disabled(client):
    resp = client.get("/telemetry/recent", params={"layerId": "web-logs-heatmap"})
    assert resp.json() == {"enabled": False, "requests": []}


def test_bytes_layer_weights_by_metric_value(client):
    assert get_service().layer("web-logs-bytes").weight_source_property == "metricValue"
    assert get_service().layer("web-logs-heatmap").weight_source_property == "docCount"


def test_delete_layer_drops_cached_geometry(client):
    body = {"zoom": 4.0, "bbox": EUROPE, "timeRange": YEAR_2025}
    client.post("/layers/web-logs-heatmap/sync", json=body)

    resp = client.delete("/layers/web-logs-heatmap")
    assert resp.status_code == 200
    assert resp.json() == {"layerId": "web-logs-heatmap", "removed": True}
    assert get_service().renderer.bound_geometry("web-logs-heatmap") is None

    again = client.post("/layers/web-logs-heatmap/sync", json=body)
    assert again.json()["fetched"] is True

    assert client.delete("/layers/web-logs-bytes").json()["removed"] is False
    assert client.delete("/layers/nope").status_code == 404
