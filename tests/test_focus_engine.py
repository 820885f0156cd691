"""
Tests for the local focus engine (fokus/focus/engine.py).

The engine is driven manually (autotick=False) with a fake monotonic clock
for the tab-switch debounce.
"""

from __future__ import annotations

import asyncio

import pytest

from fokus.core.config import FocusConfig
from fokus.focus import FocusEngine, valid_target_minutes


@pytest.fixture()
def engine(focus_config, ledger, seconds_clock) -> FocusEngine:
    return FocusEngine(focus_config, ledger=ledger, clock=seconds_clock, autotick=False)


async def tick_n(engine: FocusEngine, n: int) -> None:
    for _ in range(n):
        await engine.tick()


class RecordingSessionStore:
    def __init__(self):
        self.saved = []

    async def save(self, session) -> None:
        self.saved.append(session)


# ── start ────────────────────────────────────────────────────────────────────

class TestStart:
    async def test_start_initializes_state(self, engine):
        assert await engine.start(25, task_id="write-report")
        state = engine.state
        assert state.is_active
        assert not state.is_paused
        assert not state.is_complete
        assert state.remaining_seconds == 25 * 60
        assert state.target_seconds == 25 * 60
        assert state.points_earned == 0
        assert state.tab_switches == 0
        assert engine.session.task_id == "write-report"
        assert engine.session.target_minutes == 25

    @pytest.mark.parametrize("minutes", [0, -5, 1000, 0.5, 25.0, None, "25", True])
    async def test_out_of_range_target_rejected(self, engine, minutes):
        assert not await engine.start(minutes)
        assert not engine.state.is_active
        assert engine.session is None

    async def test_upper_bound_accepted(self, engine):
        assert await engine.start(999)
        assert engine.state.remaining_seconds == 999 * 60

    async def test_start_while_active_rejected(self, engine):
        await engine.start(25)
        await tick_n(engine, 10)
        assert not await engine.start(5)
        assert engine.state.target_seconds == 25 * 60
        assert engine.state.remaining_seconds == 25 * 60 - 10

    async def test_unknown_task_leaves_session_without_task(self, focus_config):
        engine = FocusEngine(focus_config, task_lookup=lambda task_id: None, autotick=False)
        await engine.start(25, task_id="missing")
        assert engine.session.task_id is None

    async def test_async_task_lookup(self, focus_config):
        async def lookup(task_id):
            return {"id": task_id}

        engine = FocusEngine(focus_config, task_lookup=lookup, autotick=False)
        await engine.start(25, task_id="known")
        assert engine.session.task_id == "known"

    async def test_failing_task_lookup_is_not_fatal(self, focus_config):
        def lookup(task_id):
            raise RuntimeError("task service down")

        engine = FocusEngine(focus_config, task_lookup=lookup, autotick=False)
        assert await engine.start(25, task_id="x")
        assert engine.session.task_id is None

    def test_valid_target_minutes(self):
        assert valid_target_minutes(1)
        assert valid_target_minutes(999)
        assert not valid_target_minutes(0.5)
        assert not valid_target_minutes(999.5)
        assert not valid_target_minutes(False)


# ── tick ─────────────────────────────────────────────────────────────────────

class TestTick:
    async def test_counts_down_to_completion(self, engine):
        await engine.start(2)
        await tick_n(engine, 2 * 60)
        state = engine.state
        assert state.is_complete
        assert state.remaining_seconds == 0

        await tick_n(engine, 5)
        assert engine.state.remaining_seconds == 0
        assert engine.state.is_complete

    async def test_points_from_whole_minutes(self, ledger, seconds_clock):
        engine = FocusEngine(
            FocusConfig(reward_points_per_minute=10), ledger=ledger,
            clock=seconds_clock, autotick=False,
        )
        await engine.start(25)
        await tick_n(engine, 119)
        assert engine.state.points_earned == 10
        await engine.tick()
        assert engine.state.points_earned == 20

    async def test_tick_ignored_while_idle(self, engine):
        state = await engine.tick()
        assert not state.is_active
        assert state.remaining_seconds == 0

    async def test_completion_awards_once_and_fires_callback(self, engine, ledger):
        completed = []
        engine.on_complete = completed.append

        await engine.start(1)
        await tick_n(engine, 60)
        await tick_n(engine, 3)

        assert ledger.deposits == [1]
        assert len(completed) == 1
        assert completed[0].task_id is None

    async def test_stop_after_completion_does_not_award_again(self, engine, ledger):
        await engine.start(1)
        await tick_n(engine, 60)
        session = await engine.stop()

        assert session.completed
        assert session.points_earned == 1
        assert session.duration_minutes == 1
        assert ledger.deposits == [1]

    async def test_async_tick_callback(self, engine):
        seen = []

        async def on_tick(state):
            seen.append(state.remaining_seconds)

        engine.on_tick = on_tick
        await engine.start(1)
        await tick_n(engine, 3)
        assert seen == [59, 58, 57]

    async def test_callback_errors_are_contained(self, engine):
        def explode(state):
            raise ValueError("boom")

        engine.on_tick = explode
        await engine.start(1)
        await engine.tick()
        assert engine.state.remaining_seconds == 59


# ── pause / resume ───────────────────────────────────────────────────────────

class TestPauseResume:
    async def test_pause_preserves_remaining(self, engine):
        await engine.start(5)
        await tick_n(engine, 30)
        assert await engine.pause()

        await tick_n(engine, 100)
        assert engine.state.remaining_seconds == 5 * 60 - 30
        assert engine.state.is_paused

        assert await engine.resume()
        assert engine.state.remaining_seconds == 5 * 60 - 30
        await engine.tick()
        assert engine.state.remaining_seconds == 5 * 60 - 31

    async def test_illegal_calls_ignored(self, engine):
        assert not await engine.pause()
        assert not await engine.resume()

        await engine.start(5)
        assert not await engine.resume()
        await engine.pause()
        assert not await engine.pause()

    async def test_pause_ignored_after_completion(self, engine):
        await engine.start(1)
        await tick_n(engine, 60)
        assert not await engine.pause()


# ── tab visibility ───────────────────────────────────────────────────────────

class TestVisibility:
    @pytest.fixture()
    def engine(self, ledger, seconds_clock) -> FocusEngine:
        config = FocusConfig(reward_points_per_minute=10, tab_switch_penalty=5)
        return FocusEngine(config, ledger=ledger, clock=seconds_clock, autotick=False)

    async def test_hidden_applies_penalty(self, engine):
        penalties = []
        engine.on_penalty = penalties.append

        await engine.start(25)
        await tick_n(engine, 120)
        assert await engine.set_visibility(False)

        state = engine.state
        assert state.points_earned == 15
        assert state.tab_switches == 1
        assert not state.is_tab_visible
        assert len(penalties) == 1

    async def test_points_never_negative(self, engine):
        await engine.start(25)
        assert await engine.set_visibility(False)
        assert engine.state.points_earned == 0
        assert engine.state.tab_switches == 1

    async def test_penalty_survives_later_ticks(self, engine):
        await engine.start(25)
        await tick_n(engine, 120)
        await engine.set_visibility(False)
        await engine.set_visibility(True)
        await tick_n(engine, 60)
        assert engine.state.points_earned == 25

    async def test_debounce(self, engine, seconds_clock):
        await engine.start(25)
        await tick_n(engine, 300)

        assert await engine.set_visibility(False)
        await engine.set_visibility(True)

        seconds_clock.advance(1.0)
        assert not await engine.set_visibility(False)
        await engine.set_visibility(True)

        seconds_clock.advance(1.0)
        assert not await engine.set_visibility(False)
        await engine.set_visibility(True)

        seconds_clock.advance(0.5)
        assert await engine.set_visibility(False)

        assert engine.state.tab_switches == 2
        assert engine.state.points_earned == 50 - 10

    async def test_hidden_events_half_second_apart_penalized_once(self, engine, seconds_clock):
        await engine.start(25)
        await tick_n(engine, 600)

        await engine.set_visibility(False)
        seconds_clock.advance(0.5)
        await engine.set_visibility(False)
        assert engine.state.tab_switches == 1

        seconds_clock.advance(5.0)
        await engine.set_visibility(False)
        assert engine.state.tab_switches == 2

    async def test_no_ticking_while_hidden(self, engine):
        await engine.start(25)
        await engine.set_visibility(False)
        await tick_n(engine, 10)
        assert engine.state.remaining_seconds == 25 * 60

        await engine.set_visibility(True)
        await engine.tick()
        assert engine.state.remaining_seconds == 25 * 60 - 1

    async def test_no_penalty_while_paused(self, engine):
        await engine.start(25)
        await engine.pause()
        assert not await engine.set_visibility(False)
        assert engine.state.tab_switches == 0

    async def test_no_penalty_while_idle(self, engine):
        assert not await engine.set_visibility(False)

    async def test_no_penalty_after_completion(self, engine):
        await engine.start(1)
        await tick_n(engine, 60)
        assert not await engine.set_visibility(False)
        assert engine.state.points_earned == 10


# ── stop / reset ─────────────────────────────────────────────────────────────

class TestStopReset:
    async def test_stop_persists_and_awards(self, focus_config, ledger, seconds_clock):
        store = RecordingSessionStore()
        engine = FocusEngine(
            focus_config, session_store=store, ledger=ledger,
            clock=seconds_clock, autotick=False,
        )
        await engine.start(25, task_id="t1")
        await tick_n(engine, 3 * 60 + 10)
        await engine.set_visibility(False)
        await engine.set_visibility(True)

        session = await engine.stop()

        assert store.saved == [session]
        assert ledger.deposits == [0]
        assert session.duration_minutes == 3
        assert session.target_minutes == 25
        assert not session.completed
        assert session.tab_switches == 1
        assert session.end_time is not None
        assert not engine.state.is_active

    async def test_stop_while_paused(self, engine, ledger):
        await engine.start(25)
        await tick_n(engine, 120)
        await engine.pause()
        session = await engine.stop()
        assert session.points_earned == 2
        assert ledger.deposits == [2]

    async def test_stop_when_idle_returns_none(self, engine, ledger):
        assert await engine.stop() is None
        assert ledger.deposits == []

    async def test_reset_discards_without_award(self, focus_config, ledger):
        store = RecordingSessionStore()
        engine = FocusEngine(focus_config, session_store=store, ledger=ledger, autotick=False)
        await engine.start(25)
        await tick_n(engine, 120)
        await engine.reset()

        assert store.saved == []
        assert ledger.deposits == []
        assert not engine.state.is_active
        assert await engine.stop() is None

    async def test_ledger_failure_is_not_fatal(self, focus_config):
        class BrokenLedger:
            async def deposit(self, points):
                raise RuntimeError("ledger offline")

        engine = FocusEngine(focus_config, ledger=BrokenLedger(), autotick=False)
        await engine.start(25)
        session = await engine.stop()
        assert session is not None
        assert not engine.state.is_active


# ── automatic ticking ────────────────────────────────────────────────────────

class TestAutotick:
    async def test_ticks_on_its_own(self, ledger):
        engine = FocusEngine(FocusConfig(tick_interval_seconds=0.01), ledger=ledger)
        await engine.start(1)
        await asyncio.sleep(0.1)
        assert engine.state.remaining_seconds < 60
        assert engine.is_ticking

        await engine.pause()
        assert not engine.is_ticking
        paused_at = engine.state.remaining_seconds
        await asyncio.sleep(0.05)
        assert engine.state.remaining_seconds == paused_at

        await engine.reset()
        assert not engine.is_ticking
