from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from tests.helpers.fakes import FakeClock, FakeLedger, FakeScheduleRepository

os.environ.setdefault("DATABASE_URI", "sqlite+aiosqlite:///:memory:")

if TYPE_CHECKING:
    from pathlib import Path

ENGINE_ENV_VARS = (
    "LEDGER_DATABASE_URI",
    "DP_RESOLUTION_CHECK_INTERVAL_SECONDS",
    "DP_RESOLUTION_RETRY_DELAY_SECONDS",
    "DP_RESOLUTION_MAX_ATTEMPTS",
    "DP_STATUS_POLL_INTERVAL_SECONDS",
    "DP_STATUS_POLL_PAGE_SIZE",
    "DP_MATCH_MODE",
    "DP_MATCH_STRATEGIES",
    "DP_ALLOW_AMBIGUOUS_MATCHES",
    "DP_CLOSED_SITUATION",
    "DP_RECOVER_ON_START",
)


@pytest.fixture(autouse=True)
def _clean_engine_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENGINE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def database_uri(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'dpresolver.db'}"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def schedules() -> FakeScheduleRepository:
    return FakeScheduleRepository()
