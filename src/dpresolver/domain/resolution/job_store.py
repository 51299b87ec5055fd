"""In-memory registry of pending resolution jobs."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING

from dpresolver.domain.model import DEFAULT_MAX_ATTEMPTS, ResolutionJob

if TYPE_CHECKING:
    from datetime import datetime, timedelta

    from dpresolver.domain.model import SearchContext

log = getLogger(__name__)


class JobStore:
    """At most one job per schedule id.

    Jobs live only as long as the process; ``DocumentEngine.recover_pending``
    rebuilds them from the schedule store after a restart.
    """

    def __init__(self) -> None:
        self._jobs: dict[int, ResolutionJob] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, schedule_id: object) -> bool:
        return schedule_id in self._jobs

    def enqueue(
        self,
        schedule_id: int,
        context: SearchContext,
        *,
        now: datetime,
        delay: timedelta,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> bool:
        """Register a job unless one exists; report whether it was created."""

        if schedule_id in self._jobs:
            log.debug("Job for schedule %s already pending, enqueue ignored", schedule_id)
            return False
        self._jobs[schedule_id] = ResolutionJob(
            schedule_id=schedule_id,
            search_context=context,
            next_attempt_at=now + delay,
            max_attempts=max_attempts,
        )
        return True

    def get(self, schedule_id: int) -> ResolutionJob | None:
        return self._jobs.get(schedule_id)

    def due(self, now: datetime) -> list[ResolutionJob]:
        """Jobs whose next attempt is due, earliest first."""

        due_jobs = [job for job in self._jobs.values() if job.is_due(now)]
        due_jobs.sort(key=lambda job: (job.next_attempt_at, job.schedule_id))
        return due_jobs

    def remove(self, schedule_id: int) -> ResolutionJob | None:
        return self._jobs.pop(schedule_id, None)

    def jobs(self) -> list[ResolutionJob]:
        """Copies of every job, ordered by schedule id."""

        return [replace(self._jobs[key]) for key in sorted(self._jobs)]


__all__ = ["JobStore"]
