"""Goods-receipt schedules as seen by the resolution engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .enums import TERMINAL_STATUS, ScheduleStatus

if TYPE_CHECKING:
    from datetime import date

SYSTEM_USER = "Sistema"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """Single entry of a schedule's append-only history."""

    timestamp: datetime
    user: str
    action: str
    comment: str | None = None
    previous_status: str | None = None
    new_status: str | None = None
    document_number: str | None = None
    strategy: str | None = None
    automated: bool = False

    def marks_transition_to(self, status: str) -> bool:
        if self.new_status is not None:
            return self.new_status == status
        return status.lower() in self.action.lower()


@dataclass(slots=True)
class ScheduleRecord:
    """Schedule row owned by the schedule store.

    The engine only ever writes ``document_number``, ``status`` and appends to
    ``audit_history``; everything else is read as captured at creation time.
    """

    id: int
    invoice_number: str | None
    client_tax_id: str | None
    status: str
    document_number: str | None = None
    client_sequence_number: str | None = None
    audit_history: tuple[AuditEntry, ...] = field(default_factory=tuple)

    @property
    def has_document(self) -> bool:
        return bool(self.document_number and self.document_number.strip())

    @property
    def is_terminal(self) -> bool:
        return self.status == TERMINAL_STATUS

    def last_transition_at(self, status: str) -> datetime | None:
        """Return when the history last recorded a move into ``status``."""

        timestamps = [
            entry.timestamp for entry in self.audit_history if entry.marks_transition_to(status)
        ]
        return max(timestamps, default=None)

    def confirmed_on(self) -> date | None:
        """Date the schedule last became confirmed, in UTC, if the history knows it."""

        moment = self.last_transition_at(ScheduleStatus.CONFIRMED)
        if moment is None:
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
        return moment.astimezone(UTC).date()


def document_assigned_entry(
    *,
    document_number: str,
    strategy: str,
    low_confidence: bool = False,
    now: datetime | None = None,
) -> AuditEntry:
    comment = f"DP {document_number} encontrado via {strategy}"
    if low_confidence:
        comment += " (cliente não confirmado)"
    return AuditEntry(
        timestamp=now or _utcnow(),
        user=SYSTEM_USER,
        action="DP atribuído automaticamente",
        comment=comment,
        document_number=document_number,
        strategy=strategy,
        automated=True,
    )


def status_promoted_entry(
    *,
    document_number: str,
    previous_status: str,
    new_status: str = TERMINAL_STATUS,
    now: datetime | None = None,
) -> AuditEntry:
    return AuditEntry(
        timestamp=now or _utcnow(),
        user=SYSTEM_USER,
        action=f"Status alterado automaticamente para {new_status}",
        comment=f'DP {document_number} foi marcado como "Fechado" na tabela WTR',
        previous_status=previous_status,
        new_status=new_status,
        document_number=document_number,
        automated=True,
    )
