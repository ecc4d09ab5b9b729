from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_OFF_VALUES = {"", "0", "false", "no", "off"}


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        return max(1, int(raw)) if raw else default
    except ValueError:
        return default


@dataclass(frozen=True)
class TelemetrySettings:
    """
    Request telemetry settings, read from `HEATGRID_TELEMETRY*` env vars.

    Telemetry is off unless `HEATGRID_TELEMETRY` is set to a truthy value.
    """

    enabled: bool
    path: Path
    batch_size: int = 100
    flush_interval_ms: int = 250

    @classmethod
    def from_env(cls) -> "TelemetrySettings":
        raw_path = (os.getenv("HEATGRID_TELEMETRY_PATH") or "").strip()
        return cls(
            enabled=(os.getenv("HEATGRID_TELEMETRY") or "0").strip().lower() not in _OFF_VALUES,
            path=Path(raw_path) if raw_path else _repo_root() / "data" / "telemetry" / "requests.duckdb",
            batch_size=_env_int("HEATGRID_TELEMETRY_BATCH", 100),
            flush_interval_ms=_env_int("HEATGRID_TELEMETRY_FLUSH_MS", 250),
        )
