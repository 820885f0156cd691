"""Local focus sessions with tab-switch penalties and point rewards."""

from fokus.focus.engine import MAX_TARGET_MINUTES, FocusEngine, valid_target_minutes
from fokus.focus.models import FocusSession, LocalFocusState
from fokus.focus.rewards import DatabaseRewardLedger, RewardLedger

__all__ = [
    "MAX_TARGET_MINUTES",
    "FocusEngine",
    "valid_target_minutes",
    "FocusSession",
    "LocalFocusState",
    "DatabaseRewardLedger",
    "RewardLedger",
]
