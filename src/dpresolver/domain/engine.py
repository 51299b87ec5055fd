"""Facade wiring the matcher, retry scheduler and status poller together."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from dpresolver.config.engine import EngineConfig
from dpresolver.domain.clock import utcnow
from dpresolver.domain.errors import DataQualityError, ScheduleNotFoundError, TransientStoreError
from dpresolver.domain.formatting import clean
from dpresolver.domain.matching import LedgerMatcher, build_strategy_chain
from dpresolver.domain.model import UNRESOLVED_STATUSES, AttemptOutcome, SearchContext
from dpresolver.domain.reconciliation import StatusReconciliationPoller
from dpresolver.domain.resolution import AttemptResult, RetryScheduler

if TYPE_CHECKING:
    from datetime import date

    from dpresolver.domain.clock import Clock
    from dpresolver.domain.model import ResolutionJob, ScheduleRecord
    from dpresolver.domain.ports import LedgerReader, ScheduleUnitOfWorkFactory
    from dpresolver.domain.reconciliation import ForceCheckResult, PollerStats
    from dpresolver.domain.resolution import SchedulerStats

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EngineStats:
    resolution: SchedulerStats
    reconciliation: PollerStats
    matcher: dict[str, object]

    @property
    def running(self) -> bool:
        return self.resolution.running and self.reconciliation.running


class DocumentEngine:
    """Entry point used by the schedule workflow and administrative tools.

    ``on_registration_succeeded`` is the hook called once the warehouse
    registration of a confirmed schedule went through; everything after that
    runs on the two background loops started by ``start()``.
    """

    def __init__(
        self,
        ledger: LedgerReader,
        uow_factory: ScheduleUnitOfWorkFactory,
        *,
        config: EngineConfig | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.config = config or EngineConfig()
        self._uow_factory = uow_factory
        strategies = build_strategy_chain(
            mode=self.config.matching.mode,
            names=self.config.matching.strategies,
            allow_ambiguous=self.config.matching.allow_ambiguous_matches,
        )
        self.matcher = LedgerMatcher(ledger, strategies)
        self.scheduler = RetryScheduler(
            self.matcher,
            uow_factory,
            config=self.config.resolution,
            clock=clock,
        )
        self.poller = StatusReconciliationPoller(
            ledger,
            uow_factory,
            config=self.config.reconciliation,
            clock=clock,
        )
        log.info(
            "Document engine configured with strategies: %s",
            ", ".join(strategy.name for strategy in strategies),
        )

    async def on_registration_succeeded(
        self,
        schedule_id: int,
        invoice_number: str | None,
        client_tax_id: str | None,
        client_sequence_number: str | None = None,
        *,
        target_date: date | None = None,
    ) -> bool:
        """Queue document-number resolution for a freshly registered schedule.

        Returns ``True`` when a job was created. Data that can never be
        matched is logged and dropped instead of being queued.
        """

        if clean(invoice_number) is None:
            log.error("[schedule %s] no invoice number, resolution not queued", schedule_id)
            return False

        if self.matcher.requires_target_date and target_date is None:
            try:
                record = await self._load(schedule_id)
            except (ScheduleNotFoundError, TransientStoreError) as exc:
                log.warning("[schedule %s] confirmation date unavailable: %s", schedule_id, exc)
                return False
            target_date = record.confirmed_on()

        context = SearchContext(
            invoice_number=(invoice_number or "").strip(),
            client_tax_id=clean(client_tax_id),
            client_sequence_number=clean(client_sequence_number),
            target_date=target_date,
        )
        try:
            return self.scheduler.enqueue(schedule_id, context)
        except DataQualityError as exc:
            log.error("[schedule %s] %s", schedule_id, exc)
            return False

    async def start(self) -> None:
        if self.config.resolution.recover_on_start:
            try:
                await self.recover_pending()
            except TransientStoreError as exc:
                log.warning("Pending job recovery skipped, schedule store unavailable: %s", exc)
        await self.scheduler.start()
        await self.poller.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.poller.stop()

    def get_stats(self) -> EngineStats:
        return EngineStats(
            resolution=self.scheduler.get_stats(),
            reconciliation=self.poller.get_stats(),
            matcher=self.matcher.statistics.as_dict(),
        )

    def jobs(self) -> list[ResolutionJob]:
        return self.scheduler.jobs()

    async def retry(self, schedule_id: int) -> bool:
        """Queue a new job for a schedule that is still missing its document number.

        Returns ``False`` when the schedule already holds a document number or a
        job is already pending.
        """

        record = await self._load(schedule_id)
        if record.has_document:
            log.info("[schedule %s] already holds document %s", schedule_id, record.document_number)
            return False
        if self.scheduler.has_job(schedule_id):
            return False
        return self.scheduler.enqueue(schedule_id, self._context_for(record))

    async def resolve_now(self, schedule_id: int) -> AttemptResult:
        """Run one resolution attempt immediately for ``schedule_id``."""

        record = await self._load(schedule_id)
        if record.has_document:
            return AttemptResult(AttemptOutcome.ALREADY_ASSIGNED, record.document_number)
        context = self._context_for(record)
        if not context.is_searchable:
            raise DataQualityError(f"Schedule {schedule_id} has no invoice number")
        result = await self.scheduler.attempt(schedule_id, context)
        if result.outcome is not AttemptOutcome.NOT_FOUND:
            self.scheduler.discard(schedule_id)
        return result

    async def force_check(self, schedule_id: int) -> ForceCheckResult:
        return await self.poller.force_check(schedule_id)

    async def set_poll_interval(self, seconds: float) -> None:
        await self.poller.set_poll_interval(seconds)

    async def recover_pending(self) -> int:
        """Re-queue schedules that are confirmed but still lack a document number."""

        async with self._uow_factory() as uow:
            pending = await uow.repositories.schedules.list_unresolved(
                statuses=UNRESOLVED_STATUSES
            )
        created = 0
        for record in pending:
            try:
                if self.scheduler.enqueue(record.id, self._context_for(record)):
                    created += 1
            except DataQualityError as exc:
                log.warning("[schedule %s] not recoverable: %s", record.id, exc)
        if created:
            log.info("Recovered %s pending resolution job(s)", created)
        return created

    async def _load(self, schedule_id: int) -> ScheduleRecord:
        async with self._uow_factory() as uow:
            record = await uow.repositories.schedules.get(schedule_id)
        if record is None:
            raise ScheduleNotFoundError(schedule_id)
        return record

    def _context_for(self, record: ScheduleRecord) -> SearchContext:
        return SearchContext(
            invoice_number=(record.invoice_number or "").strip(),
            client_tax_id=clean(record.client_tax_id),
            client_sequence_number=clean(record.client_sequence_number),
            target_date=record.confirmed_on() if self.matcher.requires_target_date else None,
        )


__all__ = ["DocumentEngine", "EngineStats"]
