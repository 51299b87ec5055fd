from __future__ import annotations

import asyncio

from sqlalchemy import update

from dpresolver.adapters.sqlalchemy.mappings import ledger_table
from dpresolver.adapters.sqlalchemy.unit_of_work import SqlAlchemyScheduleUnitOfWork, ledger_reader
from dpresolver.config import EngineConfig, ResolutionConfig
from dpresolver.domain.engine import DocumentEngine
from dpresolver.domain.model import ForceCheckOutcome
from tests.helpers.database import (
    fetch_schedule_row,
    insert_ledger_row,
    insert_schedule,
    started_adapter,
)
from tests.helpers.fakes import START, FakeClock

TAX_ID = "11222333000144"
RETRY_DELAY = 300.0


def test_schedule_gets_document_and_reaches_stock(database_uri: str) -> None:
    clock = FakeClock()
    config = EngineConfig(resolution=ResolutionConfig(retry_delay_seconds=RETRY_DELAY))

    async def scenario() -> None:
        async with started_adapter(database_uri) as engine:
            schedule_id = await insert_schedule(engine, number="7788", client=TAX_ID)
            document_engine = DocumentEngine(
                ledger_reader(), SqlAlchemyScheduleUnitOfWork, config=config, clock=clock
            )

            assert await document_engine.on_registration_succeeded(schedule_id, "7788", TAX_ID)

            for _ in range(3):
                clock.advance(seconds=RETRY_DELAY)
                await document_engine.scheduler.tick()
            stats = document_engine.get_stats().resolution
            assert stats.statistics["misses"] == 3
            assert stats.active_jobs == 1

            await insert_ledger_row(
                engine,
                no_dp="DP-9001",
                no_nf="7788",
                cnpj="11.222.333/0001-44",
                no_cli="42",
                dt_inclusao=START,
                situacao="Aberto",
            )
            clock.advance(seconds=RETRY_DELAY)
            await document_engine.scheduler.tick()

            row = await fetch_schedule_row(engine, schedule_id)
            assert row.no_dp == "DP-9001"
            assert row.status == "Agendado"
            assert document_engine.jobs() == []

            await document_engine.poller.tick()
            assert (await fetch_schedule_row(engine, schedule_id)).status == "Agendado"

            async with engine.begin() as connection:
                await connection.execute(
                    update(ledger_table)
                    .where(ledger_table.c.no_dp == "DP-9001")
                    .values(situacao="Fechado")
                )
            await document_engine.poller.tick()

            row = await fetch_schedule_row(engine, schedule_id)
            assert row.status == "Em estoque"
            assert sorted(key.split("_")[0] for key in row.historic) == ["dp", "status"]
            assert document_engine.get_stats().reconciliation.statistics["updates_made"] == 1

            forced = await document_engine.force_check(schedule_id)
            assert forced.outcome is ForceCheckOutcome.NOT_UPDATED

    asyncio.run(scenario())


def test_restart_recovers_unresolved_schedule(database_uri: str) -> None:
    clock = FakeClock()

    async def scenario() -> None:
        async with started_adapter(database_uri) as engine:
            schedule_id = await insert_schedule(engine, number="7788", client=TAX_ID)
            await insert_ledger_row(
                engine, no_dp="DP-1", no_nf="7788", cnpj=TAX_ID, dt_inclusao=START
            )
            document_engine = DocumentEngine(
                ledger_reader(), SqlAlchemyScheduleUnitOfWork, clock=clock
            )

            assert await document_engine.recover_pending() == 1
            result = await document_engine.resolve_now(schedule_id)

            assert result.document_number == "DP-1"
            assert document_engine.jobs() == []
            assert (await fetch_schedule_row(engine, schedule_id)).no_dp == "DP-1"

    asyncio.run(scenario())
