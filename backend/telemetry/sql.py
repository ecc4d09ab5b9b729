from __future__ import annotations

CREATE_REQUESTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS requests (
  ts_ms BIGINT,
  layer_id TEXT,
  label TEXT,
  seq BIGINT,
  status TEXT,
  accepted BOOLEAN,
  duration_ms DOUBLE,
  error TEXT,
  stats_json TEXT
);
"""

INSERT_REQUESTS_SQL = """
INSERT INTO requests
  (ts_ms, layer_id, label, seq, status, accepted, duration_ms, error, stats_json)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

# Discarded = finished after a newer fetch of the same layer had started.
SUMMARY_SQL_TEMPLATE = """
SELECT
  layer_id,
  COUNT(*) AS n,
  COUNT(*) FILTER (WHERE status = 'error') AS n_error,
  COUNT(*) FILTER (WHERE NOT accepted) AS n_discarded,
  AVG(duration_ms) AS avg_ms,
  quantile_cont(duration_ms, 0.95) AS p95_ms
FROM requests
{where_sql}
GROUP BY layer_id
ORDER BY layer_id
"""

RECENT_SQL_TEMPLATE = """
SELECT ts_ms, layer_id, label, seq, status, accepted, duration_ms, error, stats_json
FROM requests
{where_sql}
ORDER BY ts_ms DESC, seq DESC
LIMIT ?
"""
