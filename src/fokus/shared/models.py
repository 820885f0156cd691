"""Canonical shared timer record as stored under the remote timer key."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from fokus.core.clock import now_ms, running_remaining_ms

logger = logging.getLogger(__name__)

DEFAULT_TIMER_ID = "default"

# (duration_ms, status, started_at, paused_at, paused_duration_ms)
ComparisonKey = tuple[int, str, int | None, int | None, int]


class TimerStatus(str, Enum):
    """Lifecycle of the shared timer."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class SharedTimer(BaseModel):
    """The single timer record every client mirrors.

    Times are epoch milliseconds. ``paused_duration_ms`` is the cumulative
    time spent paused, so while running

        remaining = duration_ms - (now - started_at - paused_duration_ms)

    and while paused the same formula is frozen at ``paused_at``.
    """

    model_config = ConfigDict(populate_by_name=True)

    timer_id: str = Field(default=DEFAULT_TIMER_ID, alias="timerId")
    duration_ms: int = Field(default=0, ge=0, alias="durationMs")
    started_at: int | None = Field(default=None, alias="startedAt")
    paused_at: int | None = Field(default=None, alias="pausedAt")
    paused_duration_ms: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("pausedDuration", "pausedDurationMs", "paused_duration_ms"),
        serialization_alias="pausedDuration",
    )
    status: TimerStatus = TimerStatus.IDLE
    updated_by: str | None = Field(default=None, alias="updatedBy")
    last_updated: int = Field(default_factory=now_ms, alias="lastUpdated")

    @field_validator("duration_ms", "paused_duration_ms", mode="before")
    @classmethod
    def _missing_as_zero(cls, value: Any) -> Any:
        if value is None:
            return 0
        if isinstance(value, float):
            return round(value)
        return value

    @field_validator("started_at", "paused_at", "last_updated", mode="before")
    @classmethod
    def _round_timestamps(cls, value: Any) -> Any:
        if isinstance(value, float):
            return round(value)
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _missing_status_is_idle(cls, value: Any) -> Any:
        return TimerStatus.IDLE if value is None else value

    @classmethod
    def idle(cls, timer_id: str = DEFAULT_TIMER_ID) -> SharedTimer:
        """A fresh timer, used when no record exists yet."""
        return cls(timer_id=timer_id)

    @classmethod
    def decode(cls, data: Any, timer_id: str = DEFAULT_TIMER_ID) -> SharedTimer:
        """Decode a remote record. Missing or malformed records read as idle."""
        if data is None:
            return cls.idle(timer_id)
        if not isinstance(data, dict):
            logger.warning(f"Ignoring non-object shared timer record: {data!r}")
            return cls.idle(timer_id)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Malformed shared timer record, treating as idle: {e}")
            return cls.idle(timer_id)

    def to_record(self) -> dict[str, Any]:
        """Encode for the remote store (camelCase keys)."""
        return self.model_dump(by_alias=True, mode="json")

    def comparison_key(self) -> ComparisonKey:
        """Fields that define the timer's meaning, without volatile metadata."""
        return (
            self.duration_ms,
            self.status.value,
            self.started_at,
            self.paused_at,
            self.paused_duration_ms,
        )

    def remaining_ms(self, now: int) -> int:
        """Project the remaining time at ``now``."""
        if self.status is TimerStatus.RUNNING and self.started_at is not None:
            return running_remaining_ms(
                self.duration_ms, self.started_at, self.paused_duration_ms, now
            )
        if (
            self.status is TimerStatus.PAUSED
            and self.started_at is not None
            and self.paused_at is not None
        ):
            return running_remaining_ms(
                self.duration_ms, self.started_at, self.paused_duration_ms, self.paused_at
            )
        return self.duration_ms
