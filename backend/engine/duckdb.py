from __future__ import annotations

import asyncio
import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any

import duckdb

from agg.query import CENTROID_AGG_ID, GRID_AGG_ID, METRIC_AGG_ID, AggregationQuery
from catalog.registry import resolve_repo_path
from catalog.types import DataSource
from engine import datemath
from engine.duckdb_common import duckdb_path, duckdb_threads, quote_ident
from engine.types import QueryExecutor
from errors import BackendError
from geo import geohash

logger = logging.getLogger(__name__)


def _geohash_udf(lat: float, lon: float, precision: int) -> str:
    return geohash.encode(lat, lon, precision)


class DuckDBQueryExecutor(QueryExecutor):
    """
    Runs geohash-grid aggregations in DuckDB.

    Documents live in a table of the executor's database or in a CSV/Parquet file read on
    query. Queries run in a worker thread so the event loop is never blocked.
    """

    def __init__(
        self,
        *,
        path: str | None = None,
        threads: int | None = None,
        now: datetime | None = None,
    ):
        self.path = path or duckdb_path()
        # Fixed clock for date math (tests); None means wall clock per query.
        self._now = now
        self._lock = threading.RLock()
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = duckdb.connect(
            database=self.path,
            read_only=False,
            config={"threads": int(threads or duckdb_threads())},
        )
        self.conn.create_function(
            "geohash_encode", _geohash_udf, ["DOUBLE", "DOUBLE", "INTEGER"], "VARCHAR"
        )

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    async def execute(self, data_source: DataSource, query: AggregationQuery) -> dict[str, Any]:
        return await asyncio.to_thread(self.execute_sync, data_source, query)

    def execute_sync(self, data_source: DataSource, query: AggregationQuery) -> dict[str, Any]:
        t0 = time.perf_counter()
        sql, params = self._grid_sql(data_source, query)
        try:
            with self._lock:
                rows = self.conn.execute(sql, params).fetchall()
        except duckdb.Error as e:
            raise BackendError(str(e)) from e
        took_ms = (time.perf_counter() - t0) * 1000.0
        logger.debug(
            "grid query on %s precision=%s: %d buckets in %.2fms",
            data_source.id,
            query.bucket.precision,
            len(rows),
            took_ms,
        )
        return _to_response(query, rows, took_ms=took_ms)

    def _relation(self, data_source: DataSource) -> tuple[str, list[Any]]:
        if data_source.table:
            return quote_ident(data_source.table), []
        if data_source.path:
            p = resolve_repo_path(data_source.path)
            if p.suffix.lower() == ".parquet":
                return "read_parquet(?)", [str(p)]
            return "read_csv_auto(?)", [str(p)]
        raise BackendError(f"Data source {data_source.id} has neither a table nor a path")

    def _grid_sql(self, data_source: DataSource, query: AggregationQuery) -> tuple[str, list[Any]]:
        geo = query.bucket.field
        spec = data_source.field(geo)
        if spec is None or spec.type != "geo_point":
            raise BackendError(f"Grid aggregation over {geo} needs a geo_point field")
        lon = quote_ident(f"{geo}_lon")
        lat = quote_ident(f"{geo}_lat")

        relation, params = self._relation(data_source)
        b = query.extent.clamped()

        select = [
            f"geohash_encode({lat}, {lon}, {int(query.bucket.precision)}) AS cell",
            "COUNT(*) AS doc_count",
            f"AVG({lat}) AS c_lat",
            f"AVG({lon}) AS c_lon",
            f"{self._metric_expr(data_source, query)} AS metric",
        ]

        where = [f"{lon} BETWEEN ? AND ?", f"{lat} BETWEEN ? AND ?"]
        where_params: list[Any] = [b.min_lon, b.max_lon, b.min_lat, b.max_lat]
        if data_source.timeFieldName:
            now = self._now
            where.append(f"CAST({quote_ident(data_source.timeFieldName)} AS TIMESTAMP) BETWEEN ? AND ?")
            where_params += [
                datemath.resolve(query.time_range.from_, now=now),
                datemath.resolve(query.time_range.to, now=now),
            ]

        # Same bucket order as the search backend: biggest cells first.
        sql = (
            f"SELECT {', '.join(select)} FROM {relation} "
            f"WHERE {' AND '.join(where)} "
            "GROUP BY cell ORDER BY doc_count DESC, cell"
        )
        return sql, params + where_params

    def _metric_expr(self, data_source: DataSource, query: AggregationQuery) -> str:
        m = query.metric
        if m.type == "count":
            return "NULL"
        col = quote_ident(m.field or "")
        if m.type == "cardinality":
            return f"COUNT(DISTINCT {col})"
        if m.type == "top_hits":
            if data_source.timeFieldName:
                return f"arg_max({col}, {quote_ident(data_source.timeFieldName)})"
            return f"any_value({col})"
        return f"{m.type.upper()}({col})"


def _to_response(query: AggregationQuery, rows: list[tuple], *, took_ms: float) -> dict[str, Any]:
    buckets: list[dict[str, Any]] = []
    total = 0
    for cell, doc_count, c_lat, c_lon, metric in rows:
        total += int(doc_count)
        bucket: dict[str, Any] = {"key": cell, "doc_count": int(doc_count)}
        if query.bucket.use_centroid:
            bucket[CENTROID_AGG_ID] = {
                "location": {"lat": float(c_lat), "lon": float(c_lon)},
                "count": int(doc_count),
            }
        if query.metric.type == "top_hits":
            bucket[METRIC_AGG_ID] = {
                "hits": {"hits": [{"_source": {query.metric.field: metric}}]}
            }
        elif query.metric.type != "count":
            bucket[METRIC_AGG_ID] = {"value": metric}
        buckets.append(bucket)

    return {
        "took": int(round(took_ms)),
        "timed_out": False,
        "hits": {"total": total, "max_score": None, "hits": []},
        "aggregations": {GRID_AGG_ID: {"buckets": buckets}},
    }
