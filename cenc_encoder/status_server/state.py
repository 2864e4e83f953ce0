"""Last known run state, shared between the run and the status server."""

import threading
from datetime import datetime, timezone
from typing import Any

from ..shared.exceptions import EncodingPipelineError
from ..shared.models import EncodingRunResult, EncodingStatus


class RunStatusTracker:
    """Thread-safe holder of the state reported by ``GET /status``.

    States: idle -> running -> finished | failed
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state: dict[str, Any] = {
            "state": "idle",
            "encoding_id": None,
            "encoding_status": None,
            "error": None,
            "updated_at": _now(),
        }

    def begin(self) -> None:
        self._update(state="running", encoding_id=None, encoding_status=None, error=None)

    def set_encoding(self, encoding_id: str) -> None:
        self._update(encoding_id=encoding_id, encoding_status=EncodingStatus.CREATED.value)

    def observe(self, status: EncodingStatus) -> None:
        self._update(encoding_status=status.value)

    def finish(self, result: EncodingRunResult) -> None:
        self._update(
            state="finished",
            encoding_id=result.encoding_id,
            encoding_status=result.status.value,
        )

    def fail(self, error: Exception) -> None:
        if isinstance(error, EncodingPipelineError):
            summary = {"error_code": error.error_code, "error_message": error.message}
        else:
            summary = {"error_code": "UNEXPECTED_ERROR", "error_message": str(error)}
        self._update(state="failed", error=summary)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._state)

    def _update(self, **changes: Any) -> None:
        with self._lock:
            self._state.update(changes, updated_at=_now())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
