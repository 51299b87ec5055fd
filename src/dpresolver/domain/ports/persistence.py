"""Ports for the schedule store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from dpresolver.domain.model import AuditEntry, ScheduleRecord


@runtime_checkable
class ScheduleRepository(Protocol):
    """Persistence contract for the columns the engine reads and writes."""

    async def get(self, schedule_id: int) -> ScheduleRecord | None: ...

    async def list_with_document(
        self,
        *,
        excluded_statuses: Collection[str],
        limit: int,
    ) -> Sequence[ScheduleRecord]:
        """Schedules holding a document number whose status is not excluded, newest first."""
        ...

    async def list_unresolved(
        self,
        *,
        statuses: Collection[str],
        limit: int | None = None,
    ) -> Sequence[ScheduleRecord]:
        """Schedules without a document number in one of ``statuses``."""
        ...

    async def assign_document_number(
        self,
        schedule_id: int,
        document_number: str,
        entry: AuditEntry,
    ) -> bool:
        """Write the document number only if none is set yet; report whether it was written."""
        ...

    async def update_status(
        self,
        schedule_id: int,
        *,
        expected_status: str,
        new_status: str,
        entry: AuditEntry,
    ) -> bool:
        """Move the status only if it still equals ``expected_status``."""
        ...
