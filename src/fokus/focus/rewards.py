"""Reward ledger that receives points from finished focus sessions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fokus.storage.database import Database

logger = logging.getLogger(__name__)


class RewardLedger:
    """Accepts non-negative integer point deposits."""

    async def deposit(self, points: int) -> None:
        raise NotImplementedError


class DatabaseRewardLedger(RewardLedger):
    """Reward ledger backed by the ``reward_ledger`` table.

    Usage:
        ledger = DatabaseRewardLedger(db)
        await ledger.deposit(25)
        total = await ledger.balance()
    """

    def __init__(self, db: Database):
        self.db = db

    async def deposit(self, points: int) -> None:
        if points < 0:
            raise ValueError(f"Cannot deposit negative points: {points}")
        if points == 0:
            return
        await self.db.insert("reward_ledger", {"points": points})
        logger.info(f"Deposited {points} points")

    async def balance(self) -> int:
        """Total points deposited so far."""
        row = await self.db.fetch_one(
            "SELECT COALESCE(SUM(points), 0) AS total FROM reward_ledger"
        )
        return int(row["total"]) if row else 0
