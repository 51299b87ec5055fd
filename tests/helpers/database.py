"""Helpers for tests running against a SQLite schedule store and ledger."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert, select

from dpresolver.adapters.sqlalchemy.mappings import ledger_table, schedule_table
from dpresolver.adapters.sqlalchemy.unit_of_work import configured_engine, shutdown, startup

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@asynccontextmanager
async def started_adapter(
    database_uri: str,
    *,
    ledger_database_uri: str | None = None,
) -> AsyncIterator[AsyncEngine]:
    await startup(
        database_uri=database_uri,
        ledger_database_uri=ledger_database_uri,
        create_tables=True,
        force=True,
    )
    engine = configured_engine()
    assert engine is not None
    try:
        yield engine
    finally:
        await shutdown()


async def insert_schedule(engine: AsyncEngine, **values: Any) -> int:
    row = {"status": "Agendado", "historic": {}, **values}
    async with engine.begin() as connection:
        result = await connection.execute(insert(schedule_table).values(**row))
    return int(result.inserted_primary_key[0])


async def insert_ledger_row(engine: AsyncEngine, **values: Any) -> None:
    async with engine.begin() as connection:
        await connection.execute(insert(ledger_table).values(**values))


async def fetch_schedule_row(engine: AsyncEngine, schedule_id: int) -> Any:
    async with engine.connect() as connection:
        result = await connection.execute(
            select(schedule_table).where(schedule_table.c.id == schedule_id)
        )
        return result.one()
