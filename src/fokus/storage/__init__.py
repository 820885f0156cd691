"""Storage layer for focus sessions and the reward ledger."""

from fokus.storage.database import Database, init_database
from fokus.storage.sessions import SessionStore

__all__ = ["Database", "init_database", "SessionStore"]
