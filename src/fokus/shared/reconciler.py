"""Client-side mirror of the shared timer with optimistic, echo-suppressed writes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from fokus.core.clock import MillisClock, format_countdown, now_ms
from fokus.core.config import SharedTimerConfig
from fokus.shared import transitions
from fokus.shared.models import ComparisonKey, SharedTimer, TimerStatus
from fokus.shared.store import RemoteStore

logger = logging.getLogger(__name__)

Derive = Callable[[SharedTimer, int], "SharedTimer | None"]


class SharedTimerReconciler:
    """Keeps a local, smoothly counting copy of the canonical shared timer.

    The store is the authority. This client applies incoming records whose
    comparison key changed, unless one of its own writes is in flight, and
    proposes new records for user commands. Each command is applied locally
    before the write is acknowledged and rolled back if the write fails.

    Usage:
        async with SharedTimerReconciler(store, config.shared) as timer:
            timer.on_tick = lambda ms: print(format_countdown(ms))
            await timer.set_duration(25 * 60 * 1000)
            await timer.start()
    """

    def __init__(
        self,
        store: RemoteStore,
        config: SharedTimerConfig | None = None,
        clock: MillisClock = now_ms,
    ):
        self.store = store
        self.config = config or SharedTimerConfig()
        self.key = self.config.timer_key
        self._clock = clock

        self._timer: SharedTimer | None = None
        self._confirmed: SharedTimer | None = None
        self._last_key: ComparisonKey | None = None
        self._deferred: SharedTimer | None = None
        self._remaining_ms = 0
        self._completion_key: ComparisonKey | None = None

        self._updating = False
        self._write_seq = 0
        self._release_handle: asyncio.TimerHandle | None = None
        self._refresh_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._connected = False
        self._synced = asyncio.Event()

        self.store_available = store.available
        self.is_synced = False
        self.error: str | None = None
        if not self.store_available:
            self.error = "Remote store not configured"

        # Callbacks
        self.on_change: Callable[[SharedTimer], Any] | None = None
        self.on_tick: Callable[[int], Any] | None = None
        self.on_complete: Callable[[SharedTimer], Any] | None = None

    async def __aenter__(self) -> SharedTimerReconciler:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def timer(self) -> SharedTimer | None:
        """The timer as currently displayed (may include an unacknowledged write)."""
        return self._timer

    @property
    def remaining_ms(self) -> int:
        return self._remaining_ms

    @property
    def is_updating(self) -> bool:
        """Whether a write is in flight; commands are rejected meanwhile."""
        return self._updating

    async def connect(self) -> bool:
        """Subscribe to the timer record and start the refresh loop."""
        if not self.store_available:
            logger.warning("Shared timer disabled: remote store not configured")
            return False
        if self._connected:
            return True

        try:
            await self.store.subscribe(self.key, self._on_remote_change, self._on_remote_error)
        except Exception as e:
            logger.error(f"Failed to subscribe to shared timer: {e}")
            self.error = "Failed to initialize store connection"
            return False

        self._connected = True
        self._refresh_task = asyncio.create_task(self._refresh_loop())
        logger.info(f"Shared timer connected ({self.key})")
        return True

    async def close(self) -> None:
        """Stop refreshing, drop pending timers and unsubscribe."""
        if self._release_handle:
            self._release_handle.cancel()
            self._release_handle = None

        tasks = [t for t in (self._refresh_task, *self._background) if t]
        self._refresh_task = None
        self._background.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._connected:
            self._connected = False
            try:
                await self.store.unsubscribe()
            except Exception as e:
                logger.error(f"Failed to unsubscribe from shared timer: {e}")
            logger.info("Shared timer disconnected")

    async def wait_until_synced(self, timeout: float | None = None) -> bool:
        """Wait for the first notification from the store."""
        if not self._connected:
            return False
        try:
            await asyncio.wait_for(self._synced.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    # Commands

    async def set_duration(self, duration_ms: int) -> bool:
        return await self._propose(
            "set_duration",
            lambda t, now: transitions.set_duration(t, duration_ms, now, self.config.client_id),
        )

    async def start(self) -> bool:
        return await self._propose(
            "start", lambda t, now: transitions.start(t, now, self.config.client_id)
        )

    async def pause(self) -> bool:
        return await self._propose(
            "pause", lambda t, now: transitions.pause(t, now, self.config.client_id)
        )

    async def resume(self) -> bool:
        return await self._propose(
            "resume", lambda t, now: transitions.resume(t, now, self.config.client_id)
        )

    async def reset(self) -> bool:
        return await self._propose(
            "reset", lambda t, now: transitions.reset(t, now, self.config.client_id)
        )

    async def stop(self) -> bool:
        return await self._propose(
            "stop", lambda t, now: transitions.stop(t, now, self.config.client_id)
        )

    def refresh(self) -> int:
        """Recompute the remaining time from the current record.

        The first refresh that sees a running timer at zero proposes the
        transition to completed.
        """
        timer = self._timer
        if timer is None:
            self._remaining_ms = 0
            return 0

        remaining = timer.remaining_ms(self._clock())
        self._remaining_ms = remaining

        if (
            timer.status is TimerStatus.RUNNING
            and remaining == 0
            and not self._updating
            and self._completion_key != timer.comparison_key()
        ):
            self._completion_key = timer.comparison_key()
            self._spawn(self._complete_elapsed())

        return remaining

    def snapshot(self) -> dict[str, Any]:
        """Current view for display or serialization."""
        timer = self._timer
        return {
            "status": timer.status.value if timer else None,
            "duration_ms": timer.duration_ms if timer else 0,
            "remaining_ms": self._remaining_ms,
            "remaining_display": format_countdown(self._remaining_ms),
            "updated_by": timer.updated_by if timer else None,
            "last_updated": timer.last_updated if timer else None,
            "is_synced": self.is_synced,
            "is_updating": self._updating,
            "store_available": self.store_available,
            "error": self.error,
        }

    # Store notifications

    def _on_remote_change(self, data: Any) -> None:
        self.is_synced = True
        self.error = None
        self._synced.set()

        incoming = SharedTimer.decode(data, timer_id=self.config.timer_id)
        if self._updating:
            # Re-evaluated once the in-flight write is released
            self._deferred = incoming
            return
        self._apply_remote(incoming)

    def _on_remote_error(self, exc: Exception) -> None:
        logger.error(f"Shared timer listener error: {exc}")
        self.error = "Failed to sync with server"
        self.is_synced = False

    def _apply_remote(self, incoming: SharedTimer) -> None:
        key = incoming.comparison_key()
        if key == self._last_key:
            # Duplicate delivery, metadata churn or the echo of our own write
            self._confirmed = incoming
            return

        self._last_key = key
        self._confirmed = incoming
        self._show(incoming)

    def _show(self, timer: SharedTimer) -> None:
        previous = self._timer
        self._timer = timer
        self.refresh()
        self._notify(self.on_change, timer)
        if timer.status is TimerStatus.COMPLETED and (
            previous is None or previous.status is not TimerStatus.COMPLETED
        ):
            self._notify(self.on_complete, timer)

    # Writes

    async def _propose(self, command: str, derive: Derive) -> bool:
        if not self.store_available:
            return False
        if self._updating:
            logger.debug(f"Rejected {command}: a write is already in flight")
            return False
        self.error = None

        current = self._timer or SharedTimer.idle(self.config.timer_id)
        proposed = derive(current, self._clock())
        if proposed is None:
            logger.debug(f"Rejected {command} while {current.status.value}")
            return False

        return await self._commit(command, proposed)

    async def _commit(self, command: str, proposed: SharedTimer) -> bool:
        self._write_seq += 1
        seq = self._write_seq

        self._updating = True
        self._last_key = proposed.comparison_key()
        self._show(proposed)

        # Released on a timer armed before the write, whatever the write does
        if self._release_handle:
            self._release_handle.cancel()
        self._release_handle = asyncio.get_running_loop().call_later(
            self.config.write_release_ms / 1000, self._release_write
        )

        try:
            await asyncio.wait_for(
                self.store.write(self.key, proposed.to_record()),
                timeout=self.config.write_timeout_seconds,
            )
        except Exception as e:
            logger.error(f"Failed to update shared timer ({command}): {e!r}")
            self.error = "Failed to update timer"
            if seq == self._write_seq:
                self._rollback(self._confirmed)
                if self._release_handle:
                    self._release_handle.cancel()
                self._release_write()
            return False

        if seq == self._write_seq:
            self._confirmed = proposed
        logger.info(f"Shared timer {command} -> {proposed.status.value}")
        return True

    def _rollback(self, confirmed: SharedTimer | None) -> None:
        """Show the last record the store confirmed, which may be newer than
        the one the failed command started from."""
        self._last_key = confirmed.comparison_key() if confirmed else None
        if confirmed is None:
            self._timer = None
            self.refresh()
        elif self._timer is None or self._timer.comparison_key() != self._last_key:
            self._show(confirmed)

    def _release_write(self) -> None:
        self._release_handle = None
        self._updating = False
        deferred, self._deferred = self._deferred, None
        if deferred is not None:
            self._apply_remote(deferred)

    async def _complete_elapsed(self) -> None:
        if not await self.stop():
            # Let a later refresh try again
            self._completion_key = None

    # Loops and callbacks

    async def _refresh_loop(self) -> None:
        """Re-project the countdown at a fixed interval until closed."""
        interval = self.config.refresh_interval_ms / 1000
        while True:
            try:
                remaining = self.refresh()
                self._notify(self.on_tick, remaining)
            except Exception as e:
                logger.error(f"Error in shared timer refresh: {e}")
            await asyncio.sleep(interval)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _notify(self, callback: Callable[[Any], Any] | None, arg: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(arg)
            if asyncio.iscoroutine(result):
                self._spawn(result)
        except Exception as e:
            logger.error(f"Error in shared timer callback: {e}")
