from __future__ import annotations

import json
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import duckdb

from telemetry.inspector import InspectorRequest
from telemetry.sql import (
    CREATE_REQUESTS_TABLE_SQL,
    INSERT_REQUESTS_SQL,
    RECENT_SQL_TEMPLATE,
    SUMMARY_SQL_TEMPLATE,
)

logger = logging.getLogger(__name__)

Row = tuple[Any, ...]


def _float_or_none(v: Any) -> float | None:
    return None if v is None else float(v)


def _where(layer_id: str | None, since_ms: int | None) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if layer_id:
        clauses.append("layer_id = ?")
        params.append(layer_id)
    if since_ms is not None:
        clauses.append("ts_ms >= ?")
        params.append(int(since_ms))
    return (f"WHERE {' AND '.join(clauses)}" if clauses else ""), params


@dataclass
class TelemetryStore:
    """
    DuckDB log of finished layer requests.

    `record_request` only enqueues; a single writer thread inserts rows in batches, so
    recording never waits on disk I/O. Reads share the writer's connection (DuckDB holds a
    file lock per process).
    """

    path: Path
    conn: duckdb.DuckDBPyConnection
    batch_size: int = 100
    flush_interval_s: float = 0.25
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _rows: "queue.Queue[Row]" = field(default_factory=lambda: queue.Queue(maxsize=10_000), repr=False)
    _written: threading.Condition = field(default_factory=threading.Condition, repr=False)
    _enqueued: int = field(default=0, repr=False)
    _persisted: int = field(default=0, repr=False)
    _closing: threading.Event = field(default_factory=threading.Event, repr=False)
    _writer: threading.Thread | None = field(default=None, repr=False)

    @classmethod
    def open(cls, path: Path, *, batch_size: int = 100, flush_interval_ms: int = 250) -> "TelemetryStore":
        path.parent.mkdir(parents=True, exist_ok=True)
        store = cls(
            path=path,
            conn=duckdb.connect(str(path)),
            batch_size=batch_size,
            flush_interval_s=flush_interval_ms / 1000.0,
        )
        with store._lock:
            store.conn.execute(CREATE_REQUESTS_TABLE_SQL)
        store._writer = threading.Thread(
            target=store._write_loop, name="telemetry-writer", daemon=True
        )
        store._writer.start()
        logger.info("request telemetry at %s", path)
        return store

    def record_request(self, req: InspectorRequest) -> None:
        row: Row = (
            int(time.time() * 1000),
            req.layer_id,
            req.label,
            int(req.seq),
            req.status,
            bool(req.accepted),
            _float_or_none(req.duration_ms),
            req.error_message,
            json.dumps(req.stats, ensure_ascii=False, default=str),
        )
        try:
            self._rows.put_nowait(row)
        except queue.Full:
            logger.warning("telemetry queue full, dropping request row for %s", req.layer_id)
            return
        with self._written:
            self._enqueued += 1

    def flush(self, *, timeout_s: float = 2.0) -> bool:
        """
        Block until every row enqueued so far is persisted. Returns False on timeout.
        """
        with self._written:
            target = self._enqueued
            return self._written.wait_for(lambda: self._persisted >= target, timeout=timeout_s)

    def query(self, sql: str, params: list[Any] | None = None) -> list[Row]:
        with self._lock:
            return self.conn.execute(sql, params or []).fetchall()

    def summary(self, *, layer_id: str | None = None, since_ms: int | None = None) -> list[dict[str, Any]]:
        where_sql, params = _where(layer_id, since_ms)
        return [
            {
                "layerId": layer_v,
                "n": int(n),
                "errors": int(n_error),
                "discarded": int(n_discarded),
                "avgMs": _float_or_none(avg_ms),
                "p95Ms": _float_or_none(p95),
            }
            for layer_v, n, n_error, n_discarded, avg_ms, p95 in self.query(
                SUMMARY_SQL_TEMPLATE.format(where_sql=where_sql), params
            )
        ]

    def recent(self, *, layer_id: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        where_sql, params = _where(layer_id, None)
        rows = self.query(RECENT_SQL_TEMPLATE.format(where_sql=where_sql), [*params, int(limit)])
        return [
            {
                "tsMs": ts_ms,
                "layerId": layer_v,
                "label": label,
                "seq": seq,
                "status": status,
                "accepted": accepted,
                "durationMs": duration_ms,
                "error": error,
                "stats": json.loads(stats_json or "{}"),
            }
            for ts_ms, layer_v, label, seq, status, accepted, duration_ms, error, stats_json in rows
        ]

    def close(self, *, delete: bool = False, timeout_s: float = 2.0) -> None:
        self._closing.set()
        if self._writer is not None and self._writer.is_alive():
            self._writer.join(timeout=timeout_s)
        self._writer = None
        with self._lock:
            self.conn.close()
        if delete:
            self.path.unlink(missing_ok=True)

    def _insert(self, batch: list[Row]) -> None:
        if not batch:
            return
        with self._lock:
            self.conn.executemany(INSERT_REQUESTS_SQL, batch)
            self.conn.execute("CHECKPOINT")
        with self._written:
            self._persisted += len(batch)
            self._written.notify_all()
        batch.clear()

    def _write_loop(self) -> None:
        batch: list[Row] = []
        deadline = time.monotonic() + self.flush_interval_s
        while not self._closing.is_set():
            try:
                batch.append(self._rows.get(timeout=0.05))
            except queue.Empty:
                pass
            # Insert as soon as the queue runs dry, or on size/interval under load.
            if batch and (
                self._rows.empty()
                or len(batch) >= self.batch_size
                or time.monotonic() >= deadline
            ):
                self._insert(batch)
                deadline = time.monotonic() + self.flush_interval_s

        while True:
            try:
                batch.append(self._rows.get_nowait())
            except queue.Empty:
                break
        self._insert(batch)
