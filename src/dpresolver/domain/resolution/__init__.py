"""Retry scheduling of document-number resolution."""

from __future__ import annotations

from .job_store import JobStore
from .scheduler import AttemptResult, RetryScheduler, SchedulerStatistics, SchedulerStats

__all__ = ["AttemptResult", "JobStore", "RetryScheduler", "SchedulerStatistics", "SchedulerStats"]
