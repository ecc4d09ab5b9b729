from __future__ import annotations

from typing import Any, Protocol

from agg.query import AggregationQuery
from catalog.types import DataSource


class QueryExecutor(Protocol):
    """
    Query execution interface.

    Implementations raise `errors.BackendError` (or let their client errors escape);
    the geohash-grid source wraps whatever comes out into a `BackendError`.
    """

    async def execute(self, data_source: DataSource, query: AggregationQuery) -> dict[str, Any]: ...
