"""SQLAlchemy asyncio adapters for the schedule store and the warehouse ledger."""

from __future__ import annotations

from .mappings import ledger_metadata, ledger_table, schedule_metadata, schedule_table
from .repositories import SqlAlchemyLedgerReader, SqlAlchemyScheduleRepository

__all__ = [
    "SqlAlchemyLedgerReader",
    "SqlAlchemyScheduleRepository",
    "ledger_metadata",
    "ledger_table",
    "schedule_metadata",
    "schedule_table",
]
