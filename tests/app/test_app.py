from __future__ import annotations

import asyncio

from dpresolver.adapters.sqlalchemy.unit_of_work import is_started, shutdown, startup
from dpresolver.app import build_engine, force_check_schedule, resolve_schedule, run_engine
from dpresolver.config import DatabaseConfig
from dpresolver.domain.model import AttemptOutcome, ForceCheckOutcome
from tests.helpers.database import insert_ledger_row, insert_schedule, started_adapter
from tests.helpers.fakes import START

TAX_ID = "11222333000144"


def test_entry_points_leave_caller_adapter_running(database_uri: str) -> None:
    async def scenario() -> tuple[ForceCheckOutcome, AttemptOutcome, bool]:
        async with started_adapter(database_uri) as engine:
            schedule_id = await insert_schedule(engine, number="7788", client=TAX_ID)
            await insert_ledger_row(
                engine, no_dp="DP-7", no_nf="7788", cnpj=TAX_ID, dt_inclusao=START
            )
            checked = await force_check_schedule(schedule_id)
            resolved = await resolve_schedule(schedule_id)
            return checked.outcome, resolved.outcome, is_started()

    assert asyncio.run(scenario()) == (
        ForceCheckOutcome.NO_DOCUMENT,
        AttemptOutcome.RESOLVED,
        True,
    )
    assert is_started() is False


def test_entry_points_shut_down_adapter_they_started(database_uri: str) -> None:
    database = DatabaseConfig(schedule_uri=database_uri, ledger_uri=database_uri)

    async def scenario() -> tuple[AttemptOutcome, bool, ForceCheckOutcome, bool]:
        async with started_adapter(database_uri) as engine:
            schedule_id = await insert_schedule(engine, number="7788", client=TAX_ID)
            await insert_ledger_row(
                engine, no_dp="DP-7", no_nf="7788", cnpj=TAX_ID, dt_inclusao=START
            )
        resolved = await resolve_schedule(schedule_id, database=database)
        after_resolve = is_started()
        checked = await force_check_schedule(schedule_id, database=database)
        return resolved.outcome, after_resolve, checked.outcome, is_started()

    assert asyncio.run(scenario()) == (
        AttemptOutcome.RESOLVED,
        False,
        ForceCheckOutcome.NOT_UPDATED,
        False,
    )


def test_run_engine_stops_on_event(database_uri: str) -> None:
    database = DatabaseConfig(schedule_uri=database_uri, ledger_uri=database_uri)

    async def scenario() -> bool:
        stop_event = asyncio.Event()
        stop_event.set()
        engine = await run_engine(stop_event, database=database, create_tables=True)
        return engine.get_stats().running

    assert asyncio.run(scenario()) is False
    assert is_started() is False


def test_run_engine_keeps_caller_adapter(database_uri: str) -> None:
    async def scenario() -> bool:
        await startup(database_uri=database_uri, create_tables=True, force=True)
        try:
            stop_event = asyncio.Event()
            stop_event.set()
            await run_engine(stop_event)
            return is_started()
        finally:
            await shutdown()

    assert asyncio.run(scenario()) is True


def test_build_engine_reuses_started_adapter(database_uri: str) -> None:
    async def scenario() -> bool:
        async with started_adapter(database_uri):
            await build_engine()
            return is_started()

    assert asyncio.run(scenario()) is True
