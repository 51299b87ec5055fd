"""Resolution jobs tracked by the retry scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from .enums import JobState

if TYPE_CHECKING:
    from datetime import date, datetime

DEFAULT_MAX_ATTEMPTS = 10

_MIN_STEP = timedelta(microseconds=1)


@dataclass(frozen=True, slots=True)
class SearchContext:
    """Search keys captured when the job was enqueued."""

    invoice_number: str
    client_tax_id: str | None = None
    client_sequence_number: str | None = None
    target_date: date | None = None

    @property
    def is_searchable(self) -> bool:
        return bool(self.invoice_number and self.invoice_number.strip())


@dataclass(eq=False, slots=True)
class ResolutionJob:
    schedule_id: int
    search_context: SearchContext
    next_attempt_at: datetime
    attempt_count: int = 0
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    state: JobState = JobState.PENDING
    last_error: str | None = field(default=None)

    @property
    def attempts_remaining(self) -> int:
        return max(self.max_attempts - self.attempt_count, 0)

    def is_due(self, now: datetime) -> bool:
        return self.state is JobState.PENDING and self.next_attempt_at <= now

    def record_failure(
        self, *, now: datetime, delay: timedelta, error: str | None = None
    ) -> JobState:
        """Count one failed attempt and either reschedule or abandon the job."""

        self.attempt_count += 1
        self.last_error = error
        if self.attempt_count >= self.max_attempts:
            self.state = JobState.ABANDONED
            return self.state
        self.next_attempt_at = max(now + delay, self.next_attempt_at + _MIN_STEP)
        return self.state

    def mark_resolved(self) -> None:
        self.state = JobState.RESOLVED
