from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from geo.aoi import BBox


@dataclass(frozen=True)
class TimeRange:
    """
    Time filter bounds.

    Values are absolute ISO-8601 timestamps or date-math expressions (`now-15m`, `now/d`),
    passed to the backend as-is.
    """

    from_: str
    to: str

    def as_dict(self) -> dict[str, str]:
        return {"from": self.from_, "to": self.to}


@dataclass(frozen=True)
class ViewportState:
    """
    Map state at one render tick (read-only input to a sync call).

    `extent` is the fetch buffer and stays None until the map has rendered once.
    """

    zoom: float
    time_range: TimeRange
    extent: BBox | None = None
    refresh_timer_tick: float | None = None


@dataclass(frozen=True)
class FetchMetadata:
    """
    Parameters of the last accepted fetch. Replaced wholesale, never mutated.
    """

    precision: int
    time_range: TimeRange
    refresh_timer_tick: float | None
    extent: BBox | None


class SyncStatus(str, Enum):
    IDLE = "IDLE"
    FETCHING = "FETCHING"
    SUPERSEDED = "SUPERSEDED"


@dataclass(frozen=True)
class LayerSyncState:
    """
    Everything a layer remembers between sync calls.

    Passed into and returned from `HeatmapLayer.sync_data`; a new value is produced on
    every transition.
    """

    metadata: FetchMetadata | None = None
    geometry: dict[str, Any] | None = None
    status: SyncStatus = SyncStatus.IDLE
    last_error: str | None = None
