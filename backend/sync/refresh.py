from __future__ import annotations

from agg.precision import precision_for_zoom
from geo.aoi import BBox
from sync.types import FetchMetadata, ViewportState


def has_extent(current: ViewportState) -> bool:
    """
    The map reports no extent before its first render; syncing must wait for one.
    """
    return current.extent is not None


def update_due_to_extent(previous: BBox | None, current: BBox | None) -> bool:
    """
    Refetch when the new extent is not covered by the extent of the last fetch.
    """
    if current is None:
        return False
    if previous is None:
        return True
    if previous == current:
        return False
    return not previous.contains(current)


def should_refetch(
    previous: FetchMetadata | None,
    current: ViewportState,
    *,
    refinement_delta: int = 0,
) -> bool:
    """
    Decide whether `current` needs new data, given the metadata of the last accepted fetch.

    Pure predicate. Callers must check `has_extent` first; without an extent this returns
    False (nothing can be fetched yet).
    """
    if not has_extent(current):
        return False
    if previous is None:
        return True

    target_precision = precision_for_zoom(current.zoom, refinement_delta)
    if target_precision != previous.precision:
        return True

    if current.time_range != previous.time_range:
        return True

    # Manual refresh: a tick that differs from the one we last fetched with.
    if current.refresh_timer_tick is not None and current.refresh_timer_tick != previous.refresh_timer_tick:
        return True

    return update_due_to_extent(previous.extent, current.extent)


def next_metadata(current: ViewportState, precision: int) -> FetchMetadata:
    return FetchMetadata(
        precision=int(precision),
        time_range=current.time_range,
        refresh_timer_tick=current.refresh_timer_tick,
        extent=current.extent,
    )
