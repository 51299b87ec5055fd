"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ScheduleStatus(StrEnum):
    """Status values as stored by the schedule store."""

    REQUESTED = "Solicitado"
    CONTESTED = "Contestado"
    CONFIRMED = "Agendado"
    AWAITING_RECEIPT = "Conferência"
    IN_TREATMENT = "Tratativa"
    IN_STOCK = "Em estoque"
    COMPLETED = "Concluído"
    REFUSED = "Recusado"
    CANCELLED = "Cancelado"


TERMINAL_STATUS = ScheduleStatus.IN_STOCK

# Terminal-like statuses the status poller never touches.
RECONCILIATION_EXCLUDED_STATUSES: frozenset[str] = frozenset(
    {ScheduleStatus.CANCELLED, ScheduleStatus.COMPLETED, ScheduleStatus.REFUSED}
)

# Statuses in which a schedule without a document number still waits for one.
UNRESOLVED_STATUSES: frozenset[str] = frozenset(
    {ScheduleStatus.CONFIRMED, ScheduleStatus.AWAITING_RECEIPT}
)


class ClientKey(StrEnum):
    """Ledger column used to confirm the client identity of a match."""

    TAX_ID = "tax_id"
    CLIENT_SEQUENCE = "client_sequence"
    NONE = "none"


class InvoiceMatch(StrEnum):
    EXACT = "exact"
    MEMBER = "member"


class MatchMode(StrEnum):
    STANDARD = "standard"
    DATE_VALIDATED = "date_validated"


class JobState(StrEnum):
    PENDING = "pending"
    RESOLVED = "resolved"
    ABANDONED = "abandoned"


class ForceCheckOutcome(StrEnum):
    UPDATED = "updated"
    NOT_UPDATED = "not_updated"
    NOT_FOUND = "not_found"
    NO_DOCUMENT = "no_document"


class AttemptOutcome(StrEnum):
    """Result of a single resolution attempt for one schedule."""

    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    ALREADY_ASSIGNED = "already_assigned"
    SCHEDULE_MISSING = "schedule_missing"
