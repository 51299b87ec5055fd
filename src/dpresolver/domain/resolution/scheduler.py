"""Retry scheduler resolving document numbers for freshly confirmed schedules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from dpresolver.config.engine import ResolutionConfig
from dpresolver.domain.clock import utcnow
from dpresolver.domain.errors import DataQualityError, TransientStoreError
from dpresolver.domain.matching import describe_discrepancy
from dpresolver.domain.model import AttemptOutcome, JobState, document_assigned_entry
from dpresolver.domain.scheduling import PeriodicLoop

from .job_store import JobStore

if TYPE_CHECKING:
    from dpresolver.domain.clock import Clock
    from dpresolver.domain.matching import LedgerMatcher
    from dpresolver.domain.model import LedgerMatch, ResolutionJob, SearchContext
    from dpresolver.domain.ports import ScheduleUnitOfWorkFactory

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AttemptResult:
    outcome: AttemptOutcome
    document_number: str | None = None
    match: LedgerMatch | None = None


@dataclass(slots=True)
class SchedulerStatistics:
    attempts: int = 0
    resolved: int = 0
    misses: int = 0
    abandoned: int = 0
    transient_errors: int = 0
    failures: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "attempts": self.attempts,
            "resolved": self.resolved,
            "misses": self.misses,
            "abandoned": self.abandoned,
            "transient_errors": self.transient_errors,
            "failures": self.failures,
        }


@dataclass(frozen=True, slots=True)
class SchedulerStats:
    running: bool
    active_jobs: int
    check_interval_seconds: float
    retry_delay_seconds: float
    max_attempts: int
    statistics: dict[str, int] = field(default_factory=dict)


class RetryScheduler:
    """Drive resolution jobs until they find a document number or run out of attempts.

    Each job keeps the search keys captured when it was enqueued. A tick
    attempts every due job once; a miss or a transient store error counts as a
    failed attempt and pushes the next attempt ``retry_delay_seconds`` ahead.
    """

    def __init__(
        self,
        matcher: LedgerMatcher,
        uow_factory: ScheduleUnitOfWorkFactory,
        *,
        config: ResolutionConfig | None = None,
        clock: Clock = utcnow,
        job_store: JobStore | None = None,
    ) -> None:
        self.config = config or ResolutionConfig()
        self._matcher = matcher
        self._uow_factory = uow_factory
        self._clock = clock
        self._jobs = job_store if job_store is not None else JobStore()
        self._retry_delay = timedelta(seconds=self.config.retry_delay_seconds)
        self.statistics = SchedulerStatistics()
        self.loop = PeriodicLoop(
            "dp-resolution",
            self.config.check_interval_seconds,
            self._process_due_jobs,
        )

    @property
    def is_running(self) -> bool:
        return self.loop.is_running

    def enqueue(self, schedule_id: int, context: SearchContext) -> bool:
        """Create a job whose first attempt is one retry delay away.

        Returns ``False`` when a job for ``schedule_id`` already exists.
        Raises ``DataQualityError`` when the context can never be searched.
        """

        if not context.is_searchable:
            raise DataQualityError(f"Schedule {schedule_id} has no invoice number")
        if self._matcher.requires_target_date and context.target_date is None:
            raise DataQualityError(
                f"Schedule {schedule_id} has no confirmation date for date-validated matching"
            )
        created = self._jobs.enqueue(
            schedule_id,
            context,
            now=self._clock(),
            delay=self._retry_delay,
            max_attempts=self.config.max_attempts,
        )
        if created:
            job = self._jobs.get(schedule_id)
            log.info(
                "[schedule %s] resolution job queued for invoice %s, first attempt at %s",
                schedule_id,
                context.invoice_number,
                job.next_attempt_at.isoformat() if job else "?",
            )
        return created

    def has_job(self, schedule_id: int) -> bool:
        return schedule_id in self._jobs

    def discard(self, schedule_id: int) -> bool:
        """Drop the job for ``schedule_id``; ``False`` when there was none."""

        return self._jobs.remove(schedule_id) is not None

    def jobs(self) -> list[ResolutionJob]:
        return self._jobs.jobs()

    async def start(self) -> bool:
        return await self.loop.start()

    async def stop(self) -> bool:
        return await self.loop.stop()

    async def tick(self) -> bool:
        """Process due jobs now; ``False`` when a tick was already running."""

        return await self.loop.run_once()

    def get_stats(self) -> SchedulerStats:
        return SchedulerStats(
            running=self.loop.is_running,
            active_jobs=len(self._jobs),
            check_interval_seconds=self.loop.interval_seconds,
            retry_delay_seconds=self.config.retry_delay_seconds,
            max_attempts=self.config.max_attempts,
            statistics=self.statistics.as_dict(),
        )

    async def attempt(self, schedule_id: int, context: SearchContext) -> AttemptResult:
        """Run one resolution attempt outside of the job bookkeeping.

        Transient store errors propagate.
        """

        async with self._uow_factory() as uow:
            record = await uow.repositories.schedules.get(schedule_id)
        if record is None:
            return AttemptResult(AttemptOutcome.SCHEDULE_MISSING)
        if record.has_document:
            return AttemptResult(AttemptOutcome.ALREADY_ASSIGNED, record.document_number)

        match = await self._matcher.match(context)
        if match is None:
            return AttemptResult(AttemptOutcome.NOT_FOUND)
        if match.low_confidence:
            log.warning(
                "[schedule %s] low-confidence match %s via %s: %s",
                schedule_id,
                match.document_number,
                match.strategy,
                describe_discrepancy(match, context),
            )

        entry = document_assigned_entry(
            document_number=match.document_number,
            strategy=match.strategy,
            low_confidence=match.low_confidence,
            now=self._clock(),
        )
        async with self._uow_factory() as uow:
            written = await uow.repositories.schedules.assign_document_number(
                schedule_id, match.document_number, entry
            )
            if not written:
                await uow.rollback()
                return AttemptResult(AttemptOutcome.ALREADY_ASSIGNED, match=match)
            await uow.commit()
        return AttemptResult(AttemptOutcome.RESOLVED, match.document_number, match)

    async def _process_due_jobs(self) -> None:
        due = self._jobs.due(self._clock())
        if not due:
            return
        log.info("Processing %s due resolution job(s)", len(due))
        for job in due:
            try:
                await self._run_job(job)
            except Exception as exc:  # noqa: BLE001
                self.statistics.failures += 1
                log.exception("[schedule %s] resolution attempt failed", job.schedule_id)
                self._record_failure(job, error=repr(exc))

    async def _run_job(self, job: ResolutionJob) -> None:
        schedule_id = job.schedule_id
        self.statistics.attempts += 1
        log.info(
            "[schedule %s] attempt %s/%s for invoice %s",
            schedule_id,
            job.attempt_count + 1,
            job.max_attempts,
            job.search_context.invoice_number,
        )
        try:
            result = await self.attempt(schedule_id, job.search_context)
        except TransientStoreError as exc:
            self.statistics.transient_errors += 1
            log.warning("[schedule %s] store unavailable, will retry: %s", schedule_id, exc)
            self._record_failure(job, error=str(exc))
            return

        if result.outcome is AttemptOutcome.NOT_FOUND:
            self.statistics.misses += 1
            log.info("[schedule %s] no ledger entry yet", schedule_id)
            self._record_failure(job, error=None)
            return

        job.mark_resolved()
        self._jobs.remove(schedule_id)
        if result.outcome is AttemptOutcome.RESOLVED:
            self.statistics.resolved += 1
            log.info(
                "[schedule %s] document number %s assigned via %s",
                schedule_id,
                result.document_number,
                result.match.strategy if result.match else "?",
            )
        elif result.outcome is AttemptOutcome.ALREADY_ASSIGNED:
            log.info("[schedule %s] document number already set, job dropped", schedule_id)
        else:
            log.warning("[schedule %s] schedule no longer exists, job dropped", schedule_id)

    def _record_failure(self, job: ResolutionJob, *, error: str | None) -> None:
        state = job.record_failure(now=self._clock(), delay=self._retry_delay, error=error)
        if state is JobState.ABANDONED:
            self.statistics.abandoned += 1
            self._jobs.remove(job.schedule_id)
            log.error(
                "[schedule %s] giving up after %s attempts for invoice %s",
                job.schedule_id,
                job.attempt_count,
                job.search_context.invoice_number,
            )
            return
        log.debug(
            "[schedule %s] next attempt at %s", job.schedule_id, job.next_attempt_at.isoformat()
        )


__all__ = ["AttemptResult", "RetryScheduler", "SchedulerStatistics", "SchedulerStats"]
