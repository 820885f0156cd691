"""Test doubles and async helpers shared by the test modules."""

from __future__ import annotations

import asyncio

from fokus.focus.rewards import RewardLedger


class FakeClock:
    """Manually advanced clock, callable like time.monotonic or now_ms."""

    def __init__(self, start=0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, amount) -> None:
        self.now += amount


class RecordingLedger(RewardLedger):
    """Ledger that remembers every deposit."""

    def __init__(self):
        self.deposits: list[int] = []

    async def deposit(self, points: int) -> None:
        self.deposits.append(points)


async def settle(rounds: int = 5) -> None:
    """Let callbacks scheduled with call_soon run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def wait_released(reconciler, timeout: float = 1.0) -> None:
    """Wait until the reconciler accepts commands again."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while reconciler.is_updating:
        if loop.time() > deadline:
            raise AssertionError("write was never released")
        await asyncio.sleep(0.005)
    await settle()
