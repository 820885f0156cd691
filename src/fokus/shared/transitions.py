"""Next-state derivation for shared timer commands.

Each command maps the current record and the proposing client's clock to a
complete next record, or to None when the command is not legal in the
current status. Nothing here touches the store.
"""

from __future__ import annotations

from typing import Any

from fokus.shared.models import SharedTimer, TimerStatus


def _next(timer: SharedTimer, now: int, client_id: str | None, **changes: Any) -> SharedTimer:
    changes["last_updated"] = now
    if client_id is not None:
        changes["updated_by"] = client_id
    return timer.model_copy(update=changes)


def set_duration(
    timer: SharedTimer, duration_ms: int, now: int, client_id: str | None = None
) -> SharedTimer | None:
    if timer.status is TimerStatus.RUNNING or duration_ms < 0:
        return None
    return _next(timer, now, client_id, status=TimerStatus.IDLE, duration_ms=int(duration_ms))


def start(timer: SharedTimer, now: int, client_id: str | None = None) -> SharedTimer | None:
    if timer.duration_ms <= 0 or timer.status is TimerStatus.RUNNING:
        return None
    return _next(
        timer,
        now,
        client_id,
        status=TimerStatus.RUNNING,
        started_at=now,
        paused_at=None,
        paused_duration_ms=0,
    )


def pause(timer: SharedTimer, now: int, client_id: str | None = None) -> SharedTimer | None:
    if timer.status is not TimerStatus.RUNNING or timer.started_at is None:
        return None
    return _next(timer, now, client_id, status=TimerStatus.PAUSED, paused_at=now)


def resume(timer: SharedTimer, now: int, client_id: str | None = None) -> SharedTimer | None:
    if timer.status is not TimerStatus.PAUSED:
        return None
    paused_for = 0
    if timer.paused_at is not None:
        # Clamped: the pausing client's clock may run ahead of ours
        paused_for = max(0, now - timer.paused_at)
    return _next(
        timer,
        now,
        client_id,
        status=TimerStatus.RUNNING,
        paused_at=None,
        paused_duration_ms=timer.paused_duration_ms + paused_for,
    )


def reset(timer: SharedTimer, now: int, client_id: str | None = None) -> SharedTimer:
    return _next(
        timer,
        now,
        client_id,
        status=TimerStatus.IDLE,
        started_at=None,
        paused_at=None,
        paused_duration_ms=0,
    )


def stop(timer: SharedTimer, now: int, client_id: str | None = None) -> SharedTimer:
    return _next(timer, now, client_id, status=TimerStatus.COMPLETED)
