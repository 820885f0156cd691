"""Focus session record and the per-tick projection of a running session."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fokus.core.clock import format_seconds


@dataclass
class FocusSession:
    """A single focus run, persisted once when it ends.

    ``duration_minutes`` is the elapsed whole minutes, not the target.
    """
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    task_id: str | None = None
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    target_minutes: int = 0
    duration_minutes: int = 0
    completed: bool = False
    points_earned: int = 0
    tab_switches: int = 0

    def format_duration(self) -> str:
        """Format elapsed time as human-readable string."""
        hours, mins = divmod(self.duration_minutes, 60)
        if hours > 0:
            return f"{hours}h {mins}m"
        return f"{mins}m"

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> FocusSession:
        """Create from database row."""
        return cls(
            id=row["id"],
            task_id=row.get("task_id"),
            start_time=datetime.fromisoformat(row["start_time"]),
            end_time=datetime.fromisoformat(row["end_time"]) if row.get("end_time") else None,
            target_minutes=row.get("target_minutes", 0),
            duration_minutes=row.get("duration_minutes", 0),
            completed=bool(row.get("completed", False)),
            points_earned=row.get("points_earned", 0),
            tab_switches=row.get("tab_switches", 0),
        )

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dictionary for database storage."""
        return {
            "id": self.id,
            "task_id": self.task_id,
            "date": self.start_time.date().isoformat(),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "target_minutes": self.target_minutes,
            "duration_minutes": self.duration_minutes,
            "completed": self.completed,
            "points_earned": self.points_earned,
            "tab_switches": self.tab_switches,
        }


@dataclass
class LocalFocusState:
    """Snapshot of the focus engine, recomputed on every tick."""
    is_active: bool = False
    is_paused: bool = False
    is_complete: bool = False
    is_tab_visible: bool = True
    remaining_seconds: int = 0
    target_seconds: int = 0
    points_earned: int = 0
    tab_switches: int = 0
    task_id: str | None = None

    @property
    def remaining_display(self) -> str:
        """Format remaining time as MM:SS."""
        return format_seconds(self.remaining_seconds)

    @property
    def progress_percent(self) -> float:
        """Progress through the target duration (0-100)."""
        if self.target_seconds <= 0:
            return 0.0
        elapsed = self.target_seconds - self.remaining_seconds
        return min(100.0, max(0.0, (elapsed / self.target_seconds) * 100))

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_active": self.is_active,
            "is_paused": self.is_paused,
            "is_complete": self.is_complete,
            "is_tab_visible": self.is_tab_visible,
            "remaining_seconds": self.remaining_seconds,
            "target_seconds": self.target_seconds,
            "points_earned": self.points_earned,
            "tab_switches": self.tab_switches,
            "task_id": self.task_id,
            "remaining_display": self.remaining_display,
        }
