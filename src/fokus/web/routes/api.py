"""API routes for the focus engine and the shared timer."""

from __future__ import annotations

from datetime import date as date_type
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from fokus.focus import MAX_TARGET_MINUTES, FocusEngine
from fokus.shared import SharedTimerReconciler
from fokus.storage import SessionStore

router = APIRouter(tags=["api"])


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database_connected: bool
    database_size_mb: float
    shared_store_available: bool
    shared_synced: bool


class FocusStateResponse(BaseModel):
    """Local focus engine state."""
    is_active: bool
    is_paused: bool
    is_complete: bool
    is_tab_visible: bool
    remaining_seconds: int
    target_seconds: int
    points_earned: int
    tab_switches: int
    task_id: str | None
    remaining_display: str


class FocusSessionResponse(BaseModel):
    """Finished focus session."""
    id: str
    task_id: str | None
    start_time: str
    end_time: str | None
    target_minutes: int
    duration_minutes: int
    completed: bool
    points_earned: int
    tab_switches: int


class StartFocusRequest(BaseModel):
    target_minutes: int = Field(gt=0, le=MAX_TARGET_MINUTES)
    task_id: str | None = None


class VisibilityRequest(BaseModel):
    visible: bool


class PenaltyResponse(BaseModel):
    penalized: bool
    state: FocusStateResponse


class TimerResponse(BaseModel):
    """Shared timer as seen by this server."""
    status: str | None
    duration_ms: int
    remaining_ms: int
    remaining_display: str
    updated_by: str | None
    last_updated: int | None
    is_synced: bool
    is_updating: bool
    store_available: bool
    error: str | None


class DurationRequest(BaseModel):
    duration_ms: int = Field(ge=0)


def _engine(request: Request) -> FocusEngine:
    return request.app.state.engine


def _reconciler(request: Request) -> SharedTimerReconciler:
    return request.app.state.reconciler


def _focus_state(engine: FocusEngine) -> FocusStateResponse:
    return FocusStateResponse(**engine.state.to_dict())


def _session_response(session) -> FocusSessionResponse:
    data = session.to_db_dict()
    data.pop("date")
    return FocusSessionResponse(**data)


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """API health check."""
    reconciler = _reconciler(request)
    try:
        db = request.app.state.db
        size = await db.get_size_mb()

        return HealthResponse(
            status="healthy",
            database_connected=db.is_connected,
            database_size_mb=size,
            shared_store_available=reconciler.store_available,
            shared_synced=reconciler.is_synced,
        )
    except Exception as e:
        return HealthResponse(
            status=f"unhealthy: {e}",
            database_connected=False,
            database_size_mb=0,
            shared_store_available=reconciler.store_available,
            shared_synced=reconciler.is_synced,
        )


# Local focus engine

@router.get("/focus", response_model=FocusStateResponse)
async def get_focus(request: Request) -> FocusStateResponse:
    """Current focus session state."""
    return _focus_state(_engine(request))


@router.post("/focus/start", response_model=FocusStateResponse)
async def start_focus(request: Request, body: StartFocusRequest) -> FocusStateResponse:
    """Start a focus session."""
    engine = _engine(request)
    if not await engine.start(body.target_minutes, task_id=body.task_id):
        raise HTTPException(status_code=409, detail="Focus session already active")
    return _focus_state(engine)


@router.post("/focus/pause", response_model=FocusStateResponse)
async def pause_focus(request: Request) -> FocusStateResponse:
    engine = _engine(request)
    if not await engine.pause():
        raise HTTPException(status_code=409, detail="No running focus session")
    return _focus_state(engine)


@router.post("/focus/resume", response_model=FocusStateResponse)
async def resume_focus(request: Request) -> FocusStateResponse:
    engine = _engine(request)
    if not await engine.resume():
        raise HTTPException(status_code=409, detail="No paused focus session")
    return _focus_state(engine)


@router.post("/focus/visibility", response_model=PenaltyResponse)
async def set_visibility(request: Request, body: VisibilityRequest) -> PenaltyResponse:
    """Report that the focus view was hidden or shown again."""
    engine = _engine(request)
    penalized = await engine.set_visibility(body.visible)
    return PenaltyResponse(penalized=penalized, state=_focus_state(engine))


@router.post("/focus/stop", response_model=FocusSessionResponse)
async def stop_focus(request: Request) -> FocusSessionResponse:
    """Finish the session, save it and award its points."""
    session = await _engine(request).stop()
    if session is None:
        raise HTTPException(status_code=409, detail="No active focus session")
    return _session_response(session)


@router.post("/focus/reset", response_model=FocusStateResponse)
async def reset_focus(request: Request) -> FocusStateResponse:
    """Discard the session without saving it."""
    engine = _engine(request)
    await engine.reset()
    return _focus_state(engine)


@router.get("/focus/sessions", response_model=list[FocusSessionResponse])
async def get_sessions(
    request: Request,
    date: str | None = Query(None, description="Date in YYYY-MM-DD format"),
    limit: int = Query(20, ge=1, le=500),
) -> list[FocusSessionResponse]:
    """Finished sessions for a date, or the most recent ones."""
    store = SessionStore(request.app.state.db)

    if date:
        try:
            day = date_type.fromisoformat(date)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid date: {date}")
        sessions = await store.list_for_date(day)
    else:
        sessions = await store.list_recent(limit)

    return [_session_response(s) for s in sessions]


# Shared timer

async def _timer_command(request: Request, command: str, *args: Any) -> TimerResponse:
    reconciler = _reconciler(request)
    if not reconciler.store_available:
        raise HTTPException(status_code=503, detail=reconciler.error)

    if reconciler.is_updating:
        raise HTTPException(status_code=409, detail="Another timer update is in progress")

    if not await getattr(reconciler, command)(*args):
        status = reconciler.timer.status.value if reconciler.timer else "idle"
        detail = reconciler.error or f"Cannot {command} while {status}"
        raise HTTPException(status_code=409, detail=detail)

    return TimerResponse(**reconciler.snapshot())


@router.get("/timer", response_model=TimerResponse)
async def get_timer(request: Request) -> TimerResponse:
    """Shared timer with its projected remaining time."""
    reconciler = _reconciler(request)
    reconciler.refresh()
    return TimerResponse(**reconciler.snapshot())


@router.post("/timer/duration", response_model=TimerResponse)
async def set_timer_duration(request: Request, body: DurationRequest) -> TimerResponse:
    return await _timer_command(request, "set_duration", body.duration_ms)


@router.post("/timer/start", response_model=TimerResponse)
async def start_timer(request: Request) -> TimerResponse:
    return await _timer_command(request, "start")


@router.post("/timer/pause", response_model=TimerResponse)
async def pause_timer(request: Request) -> TimerResponse:
    return await _timer_command(request, "pause")


@router.post("/timer/resume", response_model=TimerResponse)
async def resume_timer(request: Request) -> TimerResponse:
    return await _timer_command(request, "resume")


@router.post("/timer/reset", response_model=TimerResponse)
async def reset_timer(request: Request) -> TimerResponse:
    return await _timer_command(request, "reset")


@router.post("/timer/stop", response_model=TimerResponse)
async def stop_timer(request: Request) -> TimerResponse:
    return await _timer_command(request, "stop")
