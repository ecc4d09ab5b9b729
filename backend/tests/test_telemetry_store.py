from __future__ import annotations

from telemetry.config import TelemetrySettings
from telemetry.inspector import RequestInspector
from telemetry.singleton import get_store, reset_store


def _enable(monkeypatch, path):
    monkeypatch.setenv("HEATGRID_TELEMETRY_PATH", str(path))
    monkeypatch.setenv("HEATGRID_TELEMETRY", "1")


def test_settings_default_to_disabled(monkeypatch):
    monkeypatch.delenv("HEATGRID_TELEMETRY", raising=False)
    monkeypatch.delenv("HEATGRID_TELEMETRY_PATH", raising=False)
    settings = TelemetrySettings.from_env()
    assert settings.enabled is False
    assert settings.path.name == "requests.duckdb"
    assert get_store() is None


def test_settings_ignore_bad_batch_size(monkeypatch):
    monkeypatch.setenv("HEATGRID_TELEMETRY_BATCH", "lots")
    assert TelemetrySettings.from_env().batch_size == 100


def test_inspector_requests_are_persisted(tmp_path, monkeypatch):
    _enable(monkeypatch, tmp_path / "requests.duckdb")
    inspector = RequestInspector(store_factory=get_store)

    inspector.start("heat", "Heat").record_stats({"precision": 3, "hitsTotal": 12}).ok()
    stale = inspector.start("heat", "Heat")
    stale.seq = 2
    stale.accepted = False
    stale.error("Search request failed, error: boom")
    inspector.start("bytes", "Bytes").ok()

    store = get_store()
    assert store.flush(timeout_s=2.0)

    # Use the store's connection; DuckDB allows one writer per file.
    n = int(store.conn.execute("select count(*) from requests").fetchone()[0])
    assert n == 3

    by_layer = {s["layerId"]: s for s in store.summary()}
    assert by_layer["heat"]["n"] == 2
    assert by_layer["heat"]["errors"] == 1
    assert by_layer["heat"]["discarded"] == 1
    assert by_layer["bytes"]["errors"] == 0

    [latest, first] = store.recent(layer_id="heat")
    assert latest["seq"] == 2
    assert latest["status"] == "error"
    assert latest["error"].startswith("Search request failed")
    assert first["stats"] == {"precision": 3, "hitsTotal": 12}
    reset_store()


def test_reset_store_deletes_db(tmp_path, monkeypatch):
    db_path = tmp_path / "requests.duckdb"
    _enable(monkeypatch, db_path)

    store = get_store()
    assert store is not None
    assert store.path.resolve() == db_path.resolve()
    assert get_store() is store

    reset_store()
    assert not db_path.exists()


def test_changed_path_reopens_store(tmp_path, monkeypatch):
    _enable(monkeypatch, tmp_path / "a.duckdb")
    first = get_store()
    _enable(monkeypatch, tmp_path / "b.duckdb")
    second = get_store()
    assert second is not first
    assert second.path.name == "b.duckdb"
    reset_store()
