"""Time arithmetic shared by the focus engine and the shared timer.

Shared timer records carry wall-clock epoch milliseconds so that every client
projects the same countdown from the same record. The local focus engine only
needs a monotonic clock for its penalty debounce.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable

MS_PER_SECOND = 1000

# Clock callables used throughout the engines; tests inject fakes
MillisClock = Callable[[], int]
SecondsClock = Callable[[], float]


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def running_remaining_ms(
    duration_ms: int,
    started_at: int,
    paused_duration_ms: int,
    at: int,
) -> int:
    """Remaining countdown at instant ``at``, never below zero.

    ``at`` is ``now`` for a running timer and ``paused_at`` for a paused one.
    """
    elapsed = at - started_at - paused_duration_ms
    return max(0, duration_ms - elapsed)


def elapsed_whole_minutes(target_seconds: int, remaining_seconds: int) -> int:
    """Whole minutes elapsed in a countdown of ``target_seconds``."""
    return max(0, target_seconds - remaining_seconds) // 60


def points_for(
    target_seconds: int,
    remaining_seconds: int,
    points_per_minute: int,
    forfeited: int = 0,
) -> int:
    """Points earned so far, less forfeited penalty points, clamped at zero."""
    base = elapsed_whole_minutes(target_seconds, remaining_seconds) * points_per_minute
    return max(0, base - forfeited)


def minutes_seconds_to_ms(minutes: int, seconds: int = 0) -> int:
    """Convert a minutes/seconds pair to milliseconds."""
    return (minutes * 60 + seconds) * MS_PER_SECOND


def format_countdown(ms: int) -> str:
    """Format a remaining duration as MM:SS (H:MM:SS past an hour).

    Partial seconds round up so the display only reads 00:00 at zero.
    """
    total_seconds = math.ceil(max(0, ms) / MS_PER_SECOND)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def format_seconds(seconds: int) -> str:
    """Format whole seconds as MM:SS (H:MM:SS past an hour)."""
    return format_countdown(seconds * MS_PER_SECOND)
