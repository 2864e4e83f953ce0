"""Status server.

Read-only HTTP surface: a static liveness page and the last known run state.
No authentication and no control operations.
"""

from typing import Any, Optional

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict

from .state import RunStatusTracker


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    model_config = ConfigDict(extra="forbid")

    status: str = "ok"


class RunErrorResponse(BaseModel):
    error_code: str
    error_message: str


class RunStatusResponse(BaseModel):
    """Last known state of the encoding run."""

    model_config = ConfigDict(extra="forbid")

    state: str
    encoding_id: Optional[str] = None
    encoding_status: Optional[str] = None
    error: Optional[RunErrorResponse] = None
    updated_at: str


router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return "Working..."


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get("/status", response_model=RunStatusResponse)
async def run_status(request: Request) -> dict[str, Any]:
    """Return the state of the current or last run.

    Returns:
        RunStatusResponse; state is 'idle' before any run started
    """
    tracker: RunStatusTracker = request.app.state.tracker
    return tracker.snapshot()


def create_app(tracker: RunStatusTracker | None = None) -> FastAPI:
    """Build the status application around a tracker."""
    app = FastAPI(title="CENC Encoder Status", version="1.0.0")
    app.state.tracker = tracker or RunStatusTracker()
    app.include_router(router)
    return app


def serve(app: FastAPI, port: int, host: str = "0.0.0.0", log_level: str = "info") -> None:
    """Run the status server until interrupted."""
    uvicorn.run(app, host=host, port=port, log_level=log_level)
