"""Reconciliation of schedule status with the ledger situation."""

from __future__ import annotations

from .poller import (
    SKIPPED_STATUSES,
    ForceCheckResult,
    PollerStatistics,
    PollerStats,
    StatusReconciliationPoller,
)

__all__ = [
    "SKIPPED_STATUSES",
    "ForceCheckResult",
    "PollerStatistics",
    "PollerStats",
    "StatusReconciliationPoller",
]
