"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from dpresolver.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyScheduleUnitOfWork,
    is_started,
    ledger_reader,
    shutdown,
    startup,
)
from dpresolver.config import get_database_config, get_engine_config
from dpresolver.domain.clock import utcnow
from dpresolver.domain.engine import DocumentEngine

if TYPE_CHECKING:
    from dpresolver.config import DatabaseConfig, EngineConfig
    from dpresolver.domain.clock import Clock
    from dpresolver.domain.reconciliation import ForceCheckResult
    from dpresolver.domain.resolution import AttemptResult

log = getLogger(__name__)


async def build_engine(
    *,
    config: EngineConfig | None = None,
    database: DatabaseConfig | None = None,
    create_tables: bool = False,
    clock: Clock = utcnow,
) -> DocumentEngine:
    """Start the SQLAlchemy adapter (if needed) and wire a ``DocumentEngine`` on it."""

    if not is_started():
        database = database or get_database_config()
        await startup(
            database_uri=database.schedule_uri,
            ledger_database_uri=database.ledger_uri,
            create_tables=create_tables,
        )
    return DocumentEngine(
        ledger_reader(),
        SqlAlchemyScheduleUnitOfWork,
        config=config or get_engine_config(),
        clock=clock,
    )


async def run_engine(
    stop_event: asyncio.Event,
    *,
    config: EngineConfig | None = None,
    database: DatabaseConfig | None = None,
    create_tables: bool = False,
) -> DocumentEngine:
    """Run both background loops until ``stop_event`` is set."""

    owns_adapter = not is_started()
    engine = await build_engine(config=config, database=database, create_tables=create_tables)
    await engine.start()
    log.info("Document engine running")
    try:
        await stop_event.wait()
    finally:
        await engine.stop()
        stats = engine.get_stats()
        log.info(
            "Document engine stopped: resolution=%s, reconciliation=%s",
            stats.resolution.statistics,
            stats.reconciliation.statistics,
        )
        if owns_adapter:
            await shutdown()
    return engine


async def force_check_schedule(
    schedule_id: int,
    *,
    config: EngineConfig | None = None,
    database: DatabaseConfig | None = None,
) -> ForceCheckResult:
    """Reconcile the status of one schedule with the ledger right away.

    An adapter the caller already started is left running.
    """

    owns_adapter = not is_started()
    engine = await build_engine(config=config, database=database)
    try:
        return await engine.force_check(schedule_id)
    finally:
        if owns_adapter:
            await shutdown()


async def resolve_schedule(
    schedule_id: int,
    *,
    config: EngineConfig | None = None,
    database: DatabaseConfig | None = None,
) -> AttemptResult:
    """Run one document-number resolution attempt for one schedule right away."""

    owns_adapter = not is_started()
    engine = await build_engine(config=config, database=database)
    try:
        return await engine.resolve_now(schedule_id)
    finally:
        if owns_adapter:
            await shutdown()
