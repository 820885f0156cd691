"""Shared timer: canonical remote record, stores and the client reconciler."""

from fokus.core.config import SharedTimerConfig
from fokus.shared.firebase import FirebaseStore
from fokus.shared.models import DEFAULT_TIMER_ID, SharedTimer, TimerStatus
from fokus.shared.reconciler import SharedTimerReconciler
from fokus.shared.store import MemoryHub, MemoryStore, RemoteStore, StoreError


def build_store(config: SharedTimerConfig, hub: MemoryHub | None = None) -> RemoteStore:
    """Create the remote store selected by ``config.backend``."""
    if config.backend == "memory":
        return MemoryStore(hub)
    return FirebaseStore(
        config.database_url,
        auth_token=config.auth_token,
        timeout=config.write_timeout_seconds,
    )


__all__ = [
    "DEFAULT_TIMER_ID",
    "FirebaseStore",
    "MemoryHub",
    "MemoryStore",
    "RemoteStore",
    "SharedTimer",
    "SharedTimerReconciler",
    "StoreError",
    "TimerStatus",
    "build_store",
]
