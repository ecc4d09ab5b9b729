from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


class InspectorSink(Protocol):
    """
    Request-inspection collaborator. Purely observational.
    """

    def reset(self, layer_id: str) -> None: ...

    def start(self, layer_id: str, label: str) -> "InspectorRequest": ...


@dataclass
class InspectorRequest:
    """
    One recorded backend request for a layer.

    Methods return `self` so calls can be chained (`req.record_stats(...).ok(...)`).
    """

    layer_id: str
    label: str
    seq: int = 0
    status: str = "pending"
    accepted: bool = True
    stats: dict[str, Any] = field(default_factory=dict)
    body: dict[str, Any] | None = None
    response: Any = None
    error_message: str | None = None
    started_at: float = field(default_factory=time.perf_counter, repr=False)
    duration_ms: float | None = None
    _on_finish: Callable[["InspectorRequest"], None] | None = field(default=None, repr=False)

    def record_stats(self, stats: dict[str, Any]) -> "InspectorRequest":
        self.stats.update(stats or {})
        return self

    def record_body(self, body: dict[str, Any]) -> "InspectorRequest":
        self.body = body
        return self

    def ok(self, payload: Any = None) -> "InspectorRequest":
        self.response = payload
        self._finish("ok")
        return self

    def error(self, err: BaseException | str) -> "InspectorRequest":
        self.error_message = str(err)
        self._finish("error")
        return self

    def _finish(self, status: str) -> None:
        if self.status != "pending":
            return
        self.status = status
        self.duration_ms = round((time.perf_counter() - self.started_at) * 1000.0, 2)
        if self._on_finish is not None:
            self._on_finish(self)

    def as_dict(self) -> dict[str, Any]:
        return {
            "layerId": self.layer_id,
            "label": self.label,
            "seq": self.seq,
            "status": self.status,
            "accepted": self.accepted,
            "durationMs": self.duration_ms,
            "stats": dict(self.stats),
            "body": self.body,
            "error": self.error_message,
        }


class RequestInspector(InspectorSink):
    """
    In-memory request inspector.

    Keeps the current request records per layer (`reset` drops the previous ones) and
    forwards every finished request to the DuckDB telemetry store when one is configured.
    """

    def __init__(self, *, store_factory: Callable[[], Any] | None = None):
        self._records: dict[str, list[InspectorRequest]] = {}
        self._store_factory = store_factory

    def reset(self, layer_id: str) -> None:
        self._records.pop(layer_id, None)

    def start(self, layer_id: str, label: str) -> InspectorRequest:
        req = InspectorRequest(layer_id=layer_id, label=label, _on_finish=self._finished)
        self._records.setdefault(layer_id, []).append(req)
        return req

    def requests(self, layer_id: str | None = None) -> list[InspectorRequest]:
        if layer_id is not None:
            return list(self._records.get(layer_id, []))
        return [r for recs in self._records.values() for r in recs]

    def _finished(self, req: InspectorRequest) -> None:
        level = logging.INFO if req.status == "ok" else logging.WARNING
        logger.log(
            level,
            "request %s layer=%s seq=%s status=%s accepted=%s %.2fms",
            req.label,
            req.layer_id,
            req.seq,
            req.status,
            req.accepted,
            req.duration_ms or 0.0,
        )
        store = self._store_factory() if self._store_factory is not None else None
        if store is None:
            return
        store.record_request(req)
