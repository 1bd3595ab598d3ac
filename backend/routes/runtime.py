"""Runtime routes: UI events in, derived state and log out."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from backend.models.runtime import (
    DiagnosticResponse,
    LogResponse,
    StateResponse,
    UIEventRequest,
    UIEventResponse,
)
from backend.services.session import RuntimeSession

router = APIRouter(prefix="/api", tags=["runtime"])


def get_session(request: Request) -> RuntimeSession:
    return request.app.state.session


@router.get("/state", response_model=StateResponse)
async def get_state(session: RuntimeSession = Depends(get_session)) -> StateResponse:
    """Current derived state."""
    state = session.runtime.state
    return StateResponse(state=state.to_dict(), raw_count=state.raw_count)


@router.get("/log", response_model=LogResponse)
async def get_log(session: RuntimeSession = Depends(get_session)) -> LogResponse:
    """Full event log, oldest first, in persisted format."""
    return LogResponse(events=[e.to_dict() for e in session.runtime.snapshot_log()])


@router.post("/events", response_model=UIEventResponse)
def post_event(req: UIEventRequest, session: RuntimeSession = Depends(get_session)) -> UIEventResponse:
    """
    Emit one UI event onto the runtime channel.

    Malformed details never fail the request: the normalizer classifies
    them and the outcome shows up in diagnostics.
    Declared sync so the persisting dispatch runs in the threadpool.
    """
    navigated = session.emit(req.name, req.detail)
    state = session.runtime.state
    return UIEventResponse(state=state.to_dict(), raw_count=state.raw_count, navigated=navigated)


@router.post("/clear", response_model=StateResponse)
def clear_log(session: RuntimeSession = Depends(get_session)) -> StateResponse:
    """Truncate the event log to empty."""
    session.runtime.clear()
    state = session.runtime.state
    return StateResponse(state=state.to_dict(), raw_count=state.raw_count)


@router.get("/diagnostics", response_model=list[DiagnosticResponse])
async def get_diagnostics(
    stage: str | None = None,
    limit: int = Query(default=50, ge=1, le=1000),
    session: RuntimeSession = Depends(get_session),
) -> list[DiagnosticResponse]:
    """Most recent diagnostic stage records, oldest first."""
    records = session.runtime.diagnostics.records(stage=stage, limit=limit)
    return [DiagnosticResponse(**r.to_dict()) for r in records]
