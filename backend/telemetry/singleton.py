from __future__ import annotations

import threading

from telemetry.config import TelemetrySettings
from telemetry.store import TelemetryStore

_STORE: TelemetryStore | None = None
_STORE_LOCK = threading.RLock()


def get_store() -> TelemetryStore | None:
    """
    Process-wide telemetry store, or None while telemetry is disabled.

    Settings are re-read on every call; a changed path reopens the store.
    """
    global _STORE
    settings = TelemetrySettings.from_env()
    if not settings.enabled:
        return None
    with _STORE_LOCK:
        if _STORE is not None and _STORE.path.resolve() != settings.path.resolve():
            _STORE.close()
            _STORE = None
        if _STORE is None:
            _STORE = TelemetryStore.open(
                settings.path,
                batch_size=settings.batch_size,
                flush_interval_ms=settings.flush_interval_ms,
            )
        return _STORE


def reset_store() -> None:
    """
    Close the store and delete its database file.
    """
    global _STORE
    with _STORE_LOCK:
        if _STORE is not None:
            _STORE.close(delete=True)
            _STORE = None
        else:
            TelemetrySettings.from_env().path.unlink(missing_ok=True)
