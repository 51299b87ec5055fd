"""Domain port definitions for adapters."""

from __future__ import annotations

from .ledger import DEFAULT_CANDIDATE_LIMIT, LedgerQuery, LedgerReader
from .persistence import ScheduleRepository
from .unit_of_work import (
    RepositoryCollection,
    ScheduleRepositories,
    ScheduleUnitOfWork,
    ScheduleUnitOfWorkFactory,
    UnitOfWork,
)

__all__ = [
    "DEFAULT_CANDIDATE_LIMIT",
    "LedgerQuery",
    "LedgerReader",
    "RepositoryCollection",
    "ScheduleRepositories",
    "ScheduleRepository",
    "ScheduleUnitOfWork",
    "ScheduleUnitOfWorkFactory",
    "UnitOfWork",
]
