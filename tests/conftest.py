"""
Shared pytest fixtures and configuration.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from fokus.core.config import Config, FocusConfig, SharedTimerConfig
from fokus.storage import init_database
from tests.helpers import FakeClock, RecordingLedger


@pytest.fixture()
def seconds_clock() -> FakeClock:
    return FakeClock(1000.0)


@pytest.fixture()
def ms_clock() -> FakeClock:
    return FakeClock(1_700_000_000_000)


@pytest.fixture()
def ledger() -> RecordingLedger:
    return RecordingLedger()


@pytest.fixture()
def focus_config() -> FocusConfig:
    return FocusConfig(reward_points_per_minute=1, tab_switch_penalty=5)


@pytest.fixture()
def shared_config() -> SharedTimerConfig:
    return SharedTimerConfig(
        backend="memory",
        client_id="alice",
        write_release_ms=50,
        write_timeout_seconds=0.5,
    )


@pytest.fixture()
def config(tmp_path: Path) -> Config:
    """Configuration rooted in a temp directory with the in-memory store."""
    return Config(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        config_dir=tmp_path / "config",
        shared={"backend": "memory", "client_id": "server", "write_release_ms": 10},
    )


@pytest_asyncio.fixture()
async def db(tmp_path: Path):
    database = await init_database(tmp_path / "test.db")
    yield database
    await database.close()
