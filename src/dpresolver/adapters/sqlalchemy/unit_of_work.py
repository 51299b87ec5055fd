"""SQLAlchemy asyncio engines and units of work for the schedule store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dpresolver.adapters.sqlalchemy.mappings import ledger_metadata, schedule_metadata
from dpresolver.adapters.sqlalchemy.repositories import (
    SqlAlchemyLedgerReader,
    SqlAlchemyScheduleRepository,
    translate_errors,
)
from dpresolver.config.storage import get_database_uri, get_ledger_database_uri
from dpresolver.domain.errors import ScheduleStoreUnavailableError
from dpresolver.domain.ports.unit_of_work import RepositoryCollection, ScheduleRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncEngine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: AsyncEngine | None = None
    _ledger_engine: AsyncEngine | None = None
    _session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine | None:
        return self._engine

    @engine.setter
    def engine(self, value: AsyncEngine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def ledger_engine(self) -> AsyncEngine | None:
        return self._ledger_engine or self._engine

    @ledger_engine.setter
    def ledger_engine(self, value: AsyncEngine | None) -> None:
        self._ledger_engine = value

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call dpresolver.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


async def startup(
    *,
    engine: AsyncEngine | None = None,
    ledger_engine: AsyncEngine | None = None,
    database_uri: str | None = None,
    ledger_database_uri: str | None = None,
    create_tables: bool = False,
    force: bool = False,
) -> None:
    """Initialise the schedule-store and ledger engines.

    The ledger shares the schedule-store engine unless a separate engine or URI
    is given. ``create_tables`` creates missing tables, which is only meant for
    local databases; the ledger is never written otherwise.
    """

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )
    if force:
        await shutdown()

    schedule_uri = database_uri or get_database_uri()
    resolved_engine = engine or create_async_engine(schedule_uri)
    resolved_ledger = ledger_engine
    if resolved_ledger is None:
        ledger_uri = ledger_database_uri or (
            get_ledger_database_uri() if engine is None and database_uri is None else None
        )
        if ledger_uri and ledger_uri != schedule_uri:
            resolved_ledger = create_async_engine(ledger_uri)

    if create_tables:
        async with resolved_engine.begin() as connection:
            await connection.run_sync(schedule_metadata.create_all)
        async with (resolved_ledger or resolved_engine).begin() as connection:
            await connection.run_sync(ledger_metadata.create_all)

    _STATE.engine = resolved_engine
    _STATE.ledger_engine = resolved_ledger
    log.debug(
        "SQLAlchemy adapter started (separate ledger engine: %s)", resolved_ledger is not None
    )


def configured_engine() -> AsyncEngine | None:
    """Return the schedule-store engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def ledger_reader() -> SqlAlchemyLedgerReader:
    """Ledger reader bound to the configured ledger engine."""

    engine = _STATE.ledger_engine
    if engine is None:
        raise StartupError("SQLAlchemy adapter not initialised; no ledger engine available")
    return SqlAlchemyLedgerReader(engine)


async def shutdown() -> None:
    """Dispose the managed engines and reset state."""

    separate_ledger = _STATE._ledger_engine  # noqa: SLF001
    if separate_ledger is not None:
        await separate_ledger.dispose()
    if _STATE.engine is not None:
        await _STATE.engine.dispose()
    _STATE.ledger_engine = None
    _STATE.engine = None


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic async SQLAlchemy unit of work with pluggable repository collections."""

    def __init__(self) -> None:
        self.session_factory: async_sessionmaker[AsyncSession] = _STATE.session_factory
        self._session: AsyncSession | None = None

    @abstractmethod
    def _build_repositories(self, session: AsyncSession) -> TRepositories: ...

    async def __aenter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        self.session = None
        try:
            if exc_type is not None:
                await session.rollback()
        finally:
            await session.close()
        return False

    async def commit(self) -> None:
        with translate_errors(ScheduleStoreUnavailableError, "Commit"):
            await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: AsyncSession | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemyScheduleUnitOfWork(BaseSqlAlchemyUnitOfWork[ScheduleRepositories]):
    """Unit of work managing an async session on the schedule store."""

    def _build_repositories(self, session: AsyncSession) -> ScheduleRepositories:
        return ScheduleRepositories(schedules=SqlAlchemyScheduleRepository(session))


if TYPE_CHECKING:
    from dpresolver.domain.ports.unit_of_work import ScheduleUnitOfWork

    _uow_check: ScheduleUnitOfWork = SqlAlchemyScheduleUnitOfWork()
