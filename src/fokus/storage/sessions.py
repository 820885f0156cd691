"""Persistence for finished focus sessions."""

from __future__ import annotations

import logging
from datetime import date

from fokus.focus.models import FocusSession
from fokus.storage.database import Database

logger = logging.getLogger(__name__)


class SessionStore:
    """Append-only store of finished focus sessions."""

    def __init__(self, db: Database):
        self.db = db

    async def save(self, session: FocusSession) -> None:
        """Persist a finished session. Sessions are never updated afterward."""
        await self.db.insert("focus_sessions", session.to_db_dict())
        logger.debug(f"Saved focus session {session.id}")

    async def get(self, session_id: str) -> FocusSession | None:
        row = await self.db.fetch_one(
            "SELECT * FROM focus_sessions WHERE id = ?", (session_id,)
        )
        return FocusSession.from_db_row(row) if row else None

    async def list_for_date(self, day: date | None = None) -> list[FocusSession]:
        """Sessions started on ``day`` (default today), newest first."""
        day = day or date.today()
        rows = await self.db.fetch_all(
            "SELECT * FROM focus_sessions WHERE date = ? ORDER BY start_time DESC",
            (day.isoformat(),),
        )
        return [FocusSession.from_db_row(row) for row in rows]

    async def list_recent(self, limit: int = 20) -> list[FocusSession]:
        rows = await self.db.fetch_all(
            "SELECT * FROM focus_sessions ORDER BY start_time DESC LIMIT ?",
            (limit,),
        )
        return [FocusSession.from_db_row(row) for row in rows]
