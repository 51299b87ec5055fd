"""Status reconciliation: promote schedules whose ledger document is closed."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from dpresolver.config.engine import ReconciliationConfig, validate_poll_interval
from dpresolver.domain.clock import utcnow
from dpresolver.domain.errors import TransientStoreError
from dpresolver.domain.formatting import is_closed_situation
from dpresolver.domain.model import (
    RECONCILIATION_EXCLUDED_STATUSES,
    TERMINAL_STATUS,
    ForceCheckOutcome,
    status_promoted_entry,
)
from dpresolver.domain.scheduling import PeriodicLoop

if TYPE_CHECKING:
    from datetime import datetime

    from dpresolver.domain.clock import Clock
    from dpresolver.domain.model import ScheduleRecord
    from dpresolver.domain.ports import LedgerReader, ScheduleUnitOfWorkFactory

log = getLogger(__name__)

# Statuses the poller never reads: the excluded set plus the terminal status.
SKIPPED_STATUSES: frozenset[str] = RECONCILIATION_EXCLUDED_STATUSES | {TERMINAL_STATUS}


@dataclass(frozen=True, slots=True)
class ForceCheckResult:
    outcome: ForceCheckOutcome
    message: str
    document_number: str | None = None
    previous_status: str | None = None
    new_status: str | None = None

    @property
    def updated(self) -> bool:
        return self.outcome is ForceCheckOutcome.UPDATED


@dataclass(slots=True)
class PollerStatistics:
    checks: int = 0
    updates_made: int = 0
    errors: int = 0
    last_check: datetime | None = None
    last_update: datetime | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            "checks": self.checks,
            "updates_made": self.updates_made,
            "errors": self.errors,
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "last_update": self.last_update.isoformat() if self.last_update else None,
        }


@dataclass(frozen=True, slots=True)
class PollerStats:
    running: bool
    poll_interval_seconds: float
    page_size: int
    closed_situation: str
    statistics: dict[str, object]


class StatusReconciliationPoller:
    """Poll the ledger situation of schedules that already hold a document number.

    A schedule moves to the terminal status only when its ledger row reads
    closed; the status write is conditional on the status read in the same
    pass, so repeated passes are no-ops.
    """

    def __init__(
        self,
        ledger: LedgerReader,
        uow_factory: ScheduleUnitOfWorkFactory,
        *,
        config: ReconciliationConfig | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.config = config or ReconciliationConfig()
        self._ledger = ledger
        self._uow_factory = uow_factory
        self._clock = clock
        self.statistics = PollerStatistics()
        self.loop = PeriodicLoop(
            "dp-status-poller",
            validate_poll_interval(self.config.poll_interval_seconds),
            self._check_all,
            run_immediately=True,
        )

    @property
    def is_running(self) -> bool:
        return self.loop.is_running

    async def start(self) -> bool:
        return await self.loop.start()

    async def stop(self) -> bool:
        return await self.loop.stop()

    async def tick(self) -> bool:
        """Run one reconciliation pass now; ``False`` if a pass is already running."""

        return await self.loop.run_once()

    async def set_poll_interval(self, seconds: float) -> None:
        """Change the poll interval (at least 10 seconds), restarting a running loop."""

        await self.loop.set_interval(validate_poll_interval(seconds))

    def get_stats(self) -> PollerStats:
        return PollerStats(
            running=self.loop.is_running,
            poll_interval_seconds=self.loop.interval_seconds,
            page_size=self.config.page_size,
            closed_situation=self.config.closed_situation,
            statistics=self.statistics.as_dict(),
        )

    async def force_check(self, schedule_id: int) -> ForceCheckResult:
        """Reconcile one schedule immediately, regardless of the polling loop."""

        async with self._uow_factory() as uow:
            record = await uow.repositories.schedules.get(schedule_id)
        if record is None:
            return ForceCheckResult(ForceCheckOutcome.NOT_FOUND, "Schedule not found")
        if not record.has_document:
            return ForceCheckResult(
                ForceCheckOutcome.NO_DOCUMENT,
                "Schedule has no document number",
                previous_status=record.status,
            )
        if record.is_terminal:
            return ForceCheckResult(
                ForceCheckOutcome.NOT_UPDATED,
                f'Schedule is already "{TERMINAL_STATUS}"',
                document_number=record.document_number,
                previous_status=record.status,
            )
        if await self._reconcile(record):
            return ForceCheckResult(
                ForceCheckOutcome.UPDATED,
                f'Schedule moved to "{TERMINAL_STATUS}"',
                document_number=record.document_number,
                previous_status=record.status,
                new_status=TERMINAL_STATUS,
            )
        return ForceCheckResult(
            ForceCheckOutcome.NOT_UPDATED,
            "Document is not closed in the ledger",
            document_number=record.document_number,
            previous_status=record.status,
        )

    async def _check_all(self) -> None:
        self.statistics.checks += 1
        self.statistics.last_check = self._clock()
        try:
            async with self._uow_factory() as uow:
                candidates = await uow.repositories.schedules.list_with_document(
                    excluded_statuses=SKIPPED_STATUSES,
                    limit=self.config.page_size,
                )
        except TransientStoreError as exc:
            self.statistics.errors += 1
            log.warning("Status reconciliation skipped, schedule store unavailable: %s", exc)
            return

        if not candidates:
            log.debug("No schedules awaiting ledger closure")
            return
        log.info("Checking ledger situation of %s schedule(s)", len(candidates))

        updates = 0
        for record in candidates:
            try:
                if await self._reconcile(record):
                    updates += 1
            except TransientStoreError as exc:
                self.statistics.errors += 1
                log.warning(
                    "[schedule %s] store unavailable during reconciliation: %s", record.id, exc
                )
            except Exception:  # noqa: BLE001
                self.statistics.errors += 1
                log.exception("[schedule %s] reconciliation failed", record.id)

        if updates:
            log.info("%s schedule(s) moved to %s", updates, TERMINAL_STATUS)

    async def _reconcile(self, record: ScheduleRecord) -> bool:
        document_number = (record.document_number or "").strip()
        entry = await self._ledger.get_by_document_number(document_number)
        if entry is None:
            log.warning("[schedule %s] document %s not found in ledger", record.id, document_number)
            return False
        if not is_closed_situation(entry.situation, self.config.closed_situation):
            log.debug(
                "[schedule %s] document %s situation is %r",
                record.id,
                document_number,
                entry.situation,
            )
            return False

        audit = status_promoted_entry(
            document_number=document_number,
            previous_status=record.status,
            now=self._clock(),
        )
        async with self._uow_factory() as uow:
            updated = await uow.repositories.schedules.update_status(
                record.id,
                expected_status=record.status,
                new_status=TERMINAL_STATUS,
                entry=audit,
            )
            if not updated:
                await uow.rollback()
                log.info("[schedule %s] status changed concurrently, promotion skipped", record.id)
                return False
            await uow.commit()

        self.statistics.updates_made += 1
        self.statistics.last_update = audit.timestamp
        log.info(
            '[schedule %s] "%s" -> "%s", document %s closed in ledger',
            record.id,
            record.status,
            TERMINAL_STATUS,
            document_number,
        )
        return True


__all__ = [
    "SKIPPED_STATUSES",
    "ForceCheckResult",
    "PollerStatistics",
    "PollerStats",
    "StatusReconciliationPoller",
]
