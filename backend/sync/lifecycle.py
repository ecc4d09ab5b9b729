from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sync.types import FetchMetadata, SyncStatus
from telemetry.inspector import InspectorRequest, InspectorSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestToken:
    """
    Identifies one fetch attempt. `seq` increases per layer; the highest one is live.
    """

    layer_id: str
    seq: int


@dataclass
class _Pending:
    token: RequestToken
    metadata: FetchMetadata
    request: InspectorRequest


class RequestLifecycle:
    """
    Tracks in-flight fetches per layer and decides which responses may be accepted.

    A newer `begin` supersedes any earlier fetch for the same layer. The earlier call is not
    cancelled; when it finishes, `complete`/`fail` report it to the inspector and return
    False so the caller discards the result.
    """

    def __init__(self, inspector: InspectorSink):
        self._inspector = inspector
        self._seq: dict[str, int] = {}
        self._pending: dict[str, _Pending] = {}
        self._requests: dict[RequestToken, InspectorRequest] = {}

    def begin(self, layer_id: str, metadata: FetchMetadata, *, label: str) -> RequestToken:
        seq = self._seq.get(layer_id, 0) + 1
        self._seq[layer_id] = seq
        token = RequestToken(layer_id=layer_id, seq=seq)

        prev = self._pending.get(layer_id)
        if prev is not None:
            logger.info("layer %s: fetch #%s superseded by #%s", layer_id, prev.token.seq, seq)

        self._inspector.reset(layer_id)
        request = self._inspector.start(layer_id, label)
        request.seq = seq
        self._pending[layer_id] = _Pending(token=token, metadata=metadata, request=request)
        self._requests[token] = request
        return token

    def is_current(self, token: RequestToken) -> bool:
        return self._seq.get(token.layer_id) == token.seq

    def request(self, token: RequestToken) -> InspectorRequest:
        """
        Inspector record of a fetch, for attaching request/response stats.
        """
        return self._requests[token]

    def pending(self, layer_id: str) -> FetchMetadata | None:
        p = self._pending.get(layer_id)
        return p.metadata if p is not None else None

    def status(self, layer_id: str) -> SyncStatus:
        return SyncStatus.FETCHING if layer_id in self._pending else SyncStatus.IDLE

    def complete(self, token: RequestToken, result: Any = None) -> bool:
        """
        Finish a fetch successfully. Returns True when the result may be accepted.
        """
        accepted = self._finish(token)
        request = self._requests.pop(token, None)
        if request is not None:
            request.accepted = accepted
            request.ok(_payload_summary(result))
        if not accepted:
            logger.warning("layer %s: discarding stale response of fetch #%s", token.layer_id, token.seq)
        return accepted

    def fail(self, token: RequestToken, error: BaseException | str) -> bool:
        """
        Finish a fetch with an error. Returns True when the error belongs to the live fetch.
        """
        accepted = self._finish(token)
        request = self._requests.pop(token, None)
        if request is not None:
            request.accepted = accepted
            request.error(error)
        return accepted

    def _finish(self, token: RequestToken) -> bool:
        if not self.is_current(token):
            return False
        self._pending.pop(token.layer_id, None)
        return True


def _payload_summary(result: Any) -> Any:
    if isinstance(result, dict) and result.get("type") == "FeatureCollection":
        return {"type": "FeatureCollection", "features": len(result.get("features") or [])}
    return result
