"""Local focus session engine: countdown, pause, tab-switch penalties and points."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from fokus.core.clock import SecondsClock, elapsed_whole_minutes, points_for
from fokus.core.config import FocusConfig
from fokus.focus.models import FocusSession, LocalFocusState

if TYPE_CHECKING:
    from fokus.focus.rewards import RewardLedger
    from fokus.storage.sessions import SessionStore

logger = logging.getLogger(__name__)

MAX_TARGET_MINUTES = 999

# Looks a task up by id; returns None (or an awaitable of None) when unknown
TaskLookup = Callable[[str], Any]


def valid_target_minutes(minutes: Any) -> bool:
    """Whether ``minutes`` is an acceptable focus target."""
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        return False
    return 0 < minutes <= MAX_TARGET_MINUTES


class FocusEngine:
    """Countdown state machine for one focus session at a time.

    States: idle -> running <-> paused -> complete, and back to idle via
    stop() or reset(). Only stop() persists the session. Points reach the
    reward ledger exactly once per session, either when the countdown
    completes or when the session is stopped, whichever happens first.

    Usage:
        engine = FocusEngine(config.focus, session_store=store, ledger=ledger)
        engine.on_complete = lambda session: print("done!")

        await engine.start(25, task_id="write-report")
        await engine.set_visibility(False)  # tab hidden: penalty
        await engine.pause()
        await engine.resume()
        session = await engine.stop()
    """

    def __init__(
        self,
        config: FocusConfig | None = None,
        session_store: SessionStore | None = None,
        ledger: RewardLedger | None = None,
        task_lookup: TaskLookup | None = None,
        clock: SecondsClock = time.monotonic,
        autotick: bool = True,
    ):
        self.config = config or FocusConfig()
        self._store = session_store
        self._ledger = ledger
        self._task_lookup = task_lookup
        self._clock = clock
        self._autotick = autotick

        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

        # Callbacks
        self.on_tick: Callable[[LocalFocusState], Awaitable[None] | None] | None = None
        self.on_complete: Callable[[FocusSession], Awaitable[None] | None] | None = None
        self.on_penalty: Callable[[LocalFocusState], Awaitable[None] | None] | None = None

        self._tab_visible = True
        self._reset_state()

    def _reset_state(self) -> None:
        self._active = False
        self._paused = False
        self._complete = False
        self._target_seconds = 0
        self._remaining_seconds = 0
        self._points = 0
        self._forfeited = 0
        self._tab_switches = 0
        self._last_penalty_at: float | None = None
        self._session: FocusSession | None = None
        self._awarded = False

    @property
    def state(self) -> LocalFocusState:
        """Current projection of the engine (a fresh copy)."""
        return LocalFocusState(
            is_active=self._active,
            is_paused=self._paused,
            is_complete=self._complete,
            is_tab_visible=self._tab_visible,
            remaining_seconds=self._remaining_seconds,
            target_seconds=self._target_seconds,
            points_earned=self._points,
            tab_switches=self._tab_switches,
            task_id=self._session.task_id if self._session else None,
        )

    @property
    def session(self) -> FocusSession | None:
        """The in-flight session, if any."""
        return self._session

    @property
    def is_ticking(self) -> bool:
        return self._task is not None and not self._task.done()

    def _should_tick(self) -> bool:
        return (
            self._active
            and not self._paused
            and self._tab_visible
            and not self._complete
        )

    async def start(self, target_minutes: int, task_id: str | None = None) -> bool:
        """Start a session counting down from ``target_minutes``.

        Returns False without touching state when the target is out of range
        or a session is already active.
        """
        if not valid_target_minutes(target_minutes):
            logger.warning(f"Rejected focus target of {target_minutes!r} minutes")
            return False
        if self._active:
            logger.warning("Focus session already active")
            return False

        resolved_task_id = await self._resolve_task(task_id)

        async with self._lock:
            if self._active:
                return False

            self._reset_state()
            self._active = True
            self._target_seconds = target_minutes * 60
            self._remaining_seconds = self._target_seconds
            self._session = FocusSession(
                task_id=resolved_task_id,
                target_minutes=target_minutes,
            )

        logger.info(f"Focus session started: {target_minutes} min")
        self._ensure_ticking()
        return True

    async def pause(self) -> bool:
        """Pause a running session. Ignored unless running and not complete."""
        async with self._lock:
            if not self._active or self._paused or self._complete:
                return False
            self._paused = True

        await self._cancel_ticker()
        logger.info("Focus session paused")
        return True

    async def resume(self) -> bool:
        """Resume a paused session. Ignored unless paused and not complete."""
        async with self._lock:
            if not self._active or not self._paused or self._complete:
                return False
            self._paused = False

        logger.info("Focus session resumed")
        self._ensure_ticking()
        return True

    async def tick(self) -> LocalFocusState:
        """Advance the countdown by one second.

        Does nothing unless the session is running, visible and not complete.
        """
        award: int | None = None
        async with self._lock:
            if not self._should_tick():
                return self.state

            self._remaining_seconds = max(0, self._remaining_seconds - 1)
            self._points = self._compute_points()

            completed_now = self._remaining_seconds == 0
            if completed_now:
                self._complete = True
                if not self._awarded:
                    self._awarded = True
                    award = self._points
            state = self.state
            session = self._session

        await self._fire(self.on_tick, state)

        if completed_now:
            logger.info(f"Focus session complete: {state.points_earned} points")
            if award is not None:
                await self._deposit(award)
            await self._fire(self.on_complete, session)

        return state

    async def set_visibility(self, visible: bool) -> bool:
        """Record a visibility change. Returns True if a penalty was applied.

        Hiding a running session counts a tab switch and costs
        ``tab_switch_penalty`` points, unless the previous penalty was less
        than ``penalty_debounce_seconds`` ago. Ticking halts while hidden.
        """
        penalized = False
        async with self._lock:
            if (
                not visible
                and self._active
                and not self._paused
                and not self._complete
            ):
                now = self._clock()
                last = self._last_penalty_at
                if last is None or now - last > self.config.penalty_debounce_seconds:
                    before = self._points
                    self._points = max(0, self._points - self.config.tab_switch_penalty)
                    self._forfeited += before - self._points
                    self._tab_switches += 1
                    self._last_penalty_at = now
                    penalized = True

            self._tab_visible = visible
            state = self.state

        if penalized:
            logger.info(
                f"Tab switch #{state.tab_switches}: points now {state.points_earned}"
            )
            await self._fire(self.on_penalty, state)

        if visible:
            self._ensure_ticking()
        else:
            await self._cancel_ticker()

        return penalized

    async def stop(self) -> FocusSession | None:
        """Finish the session: persist it, award its points, return to idle.

        Legal while running or paused, including after completion.
        Returns the finished session, or None if no session was active.
        """
        async with self._lock:
            if not self._active or self._session is None:
                return None

            session = self._session
            session.end_time = datetime.now()
            session.duration_minutes = elapsed_whole_minutes(
                self._target_seconds, self._remaining_seconds
            )
            session.completed = self._complete
            session.points_earned = int(self._points)
            session.tab_switches = self._tab_switches

            already_awarded = self._awarded
            self._reset_state()

        await self._cancel_ticker()
        await self._persist(session)
        if not already_awarded:
            await self._deposit(session.points_earned)

        logger.info(
            f"Focus session stopped after {session.format_duration()} "
            f"({'complete' if session.completed else 'incomplete'}, "
            f"{session.points_earned} points)"
        )
        return session

    async def reset(self) -> None:
        """Abandon the session without persisting it or awarding points."""
        async with self._lock:
            was_active = self._active
            self._reset_state()

        await self._cancel_ticker()
        if was_active:
            logger.info("Focus session discarded")

    def _compute_points(self) -> int:
        return points_for(
            self._target_seconds,
            self._remaining_seconds,
            self.config.reward_points_per_minute,
            self._forfeited,
        )

    def _ensure_ticking(self) -> None:
        if not self._autotick or not self._should_tick() or self.is_ticking:
            return
        self._task = asyncio.create_task(self._tick_loop())

    async def _cancel_ticker(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _tick_loop(self) -> None:
        """Tick once per interval while the session should be counting down."""
        try:
            while self._should_tick():
                await asyncio.sleep(self.config.tick_interval_seconds)
                await self.tick()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in focus tick loop: {e}")

    async def _resolve_task(self, task_id: str | None) -> str | None:
        if task_id is None or self._task_lookup is None:
            return task_id
        try:
            task = self._task_lookup(task_id)
            if inspect.isawaitable(task):
                task = await task
        except Exception as e:
            logger.error(f"Task lookup failed for {task_id}: {e}")
            return None
        if task is None:
            logger.debug(f"Unknown task {task_id}, session has no task")
            return None
        return task_id

    async def _persist(self, session: FocusSession) -> None:
        if self._store is None:
            return
        try:
            await self._store.save(session)
        except Exception as e:
            logger.error(f"Failed to save focus session {session.id}: {e}")

    async def _deposit(self, points: int) -> None:
        if self._ledger is None:
            return
        try:
            # Shielded so that stopping mid-deposit cannot drop the award
            await asyncio.shield(self._ledger.deposit(int(points)))
        except Exception as e:
            logger.error(f"Failed to deposit {points} points: {e}")

    async def _fire(self, callback: Callable[[Any], Any] | None, arg: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(arg)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error(f"Error in focus callback: {e}")
