from __future__ import annotations

from geo.aoi import BBox
from sync.lifecycle import RequestLifecycle
from sync.types import FetchMetadata, SyncStatus, TimeRange
from telemetry.inspector import RequestInspector


def _meta(precision: int) -> FetchMetadata:
    return FetchMetadata(
        precision=precision,
        time_range=TimeRange(from_="now-15m", to="now"),
        refresh_timer_tick=None,
        extent=BBox(min_lon=0, min_lat=0, max_lon=1, max_lat=1),
    )


def test_tokens_increase_per_layer():
    lc = RequestLifecycle(RequestInspector())
    a1 = lc.begin("a", _meta(1), label="A")
    a2 = lc.begin("a", _meta(2), label="A")
    b1 = lc.begin("b", _meta(1), label="B")
    assert (a1.seq, a2.seq, b1.seq) == (1, 2, 1)
    assert not lc.is_current(a1)
    assert lc.is_current(a2)
    assert lc.is_current(b1)


def test_superseded_completion_is_rejected_but_reported():
    inspector = RequestInspector()
    lc = RequestLifecycle(inspector)
    first = lc.begin("a", _meta(1), label="A")
    first_req = lc.request(first)
    second = lc.begin("a", _meta(2), label="A")

    assert lc.complete(first, {"type": "FeatureCollection", "features": []}) is False
    assert first_req.status == "ok"
    assert first_req.accepted is False
    # The newer fetch is still live.
    assert lc.status("a") is SyncStatus.FETCHING
    assert lc.pending("a").precision == 2

    assert lc.complete(second, {"type": "FeatureCollection", "features": []}) is True
    assert lc.status("a") is SyncStatus.IDLE
    [current] = inspector.requests("a")
    assert current.seq == 2
    assert current.status == "ok"
    assert current.accepted is True
    assert current.response == {"type": "FeatureCollection", "features": 0}


def test_fail_marks_inspector_request_as_error():
    inspector = RequestInspector()
    lc = RequestLifecycle(inspector)
    token = lc.begin("a", _meta(1), label="A")
    assert lc.fail(token, RuntimeError("boom")) is True
    [req] = inspector.requests("a")
    assert req.status == "error"
    assert req.error_message == "boom"
    assert lc.status("a") is SyncStatus.IDLE


def test_stale_failure_does_not_clear_live_fetch():
    lc = RequestLifecycle(RequestInspector())
    first = lc.begin("a", _meta(1), label="A")
    lc.begin("a", _meta(2), label="A")
    assert lc.fail(first, RuntimeError("late")) is False
    assert lc.status("a") is SyncStatus.FETCHING


def test_begin_resets_previous_inspector_records():
    inspector = RequestInspector()
    lc = RequestLifecycle(inspector)
    t1 = lc.begin("a", _meta(1), label="A")
    lc.complete(t1, None)
    lc.begin("a", _meta(2), label="A")
    assert [r.seq for r in inspector.requests("a")] == [2]
