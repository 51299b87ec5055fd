"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from dpresolver.domain.ports.persistence import ScheduleRepository


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic async unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...

    async def __aenter__(self) -> UnitOfWork[TRepositories]: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


@dataclass(slots=True)
class ScheduleRepositories(RepositoryCollection):
    """Repositories the engine needs inside one schedule-store transaction."""

    schedules: ScheduleRepository


type ScheduleUnitOfWork = UnitOfWork[ScheduleRepositories]
type ScheduleUnitOfWorkFactory = Callable[[], ScheduleUnitOfWork]
