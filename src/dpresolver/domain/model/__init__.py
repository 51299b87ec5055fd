"""Domain model for schedules, ledger entries and resolution jobs."""

from __future__ import annotations

from .enums import (
    RECONCILIATION_EXCLUDED_STATUSES,
    TERMINAL_STATUS,
    UNRESOLVED_STATUSES,
    AttemptOutcome,
    ClientKey,
    ForceCheckOutcome,
    InvoiceMatch,
    JobState,
    MatchMode,
    ScheduleStatus,
)
from .jobs import DEFAULT_MAX_ATTEMPTS, ResolutionJob, SearchContext
from .ledger import LedgerEntry, LedgerMatch
from .schedule import (
    SYSTEM_USER,
    AuditEntry,
    ScheduleRecord,
    document_assigned_entry,
    status_promoted_entry,
)

__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "RECONCILIATION_EXCLUDED_STATUSES",
    "SYSTEM_USER",
    "TERMINAL_STATUS",
    "UNRESOLVED_STATUSES",
    "AttemptOutcome",
    "AuditEntry",
    "ClientKey",
    "ForceCheckOutcome",
    "InvoiceMatch",
    "JobState",
    "LedgerEntry",
    "LedgerMatch",
    "MatchMode",
    "ResolutionJob",
    "ScheduleRecord",
    "ScheduleStatus",
    "SearchContext",
    "document_assigned_entry",
    "status_promoted_entry",
]
