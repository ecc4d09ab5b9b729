from __future__ import annotations

import os


def duckdb_threads() -> int:
    raw = (os.getenv("HEATGRID_DUCKDB_THREADS") or "").strip()
    if raw:
        try:
            return max(1, int(raw))
        except ValueError:
            pass
    return max(1, int(os.cpu_count() or 1))


def duckdb_path() -> str:
    """
    Database file for the query executor; empty means an in-memory database.
    """
    return (os.getenv("HEATGRID_DUCKDB_PATH") or "").strip() or ":memory:"


def quote_ident(name: str) -> str:
    return '"' + str(name).replace('"', '""') + '"'
