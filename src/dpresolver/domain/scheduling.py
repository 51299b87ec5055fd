"""Single-task periodic loop with an in-flight guard."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = getLogger(__name__)

type Tick = Callable[[], Awaitable[object]]


class PeriodicLoop:
    """Run ``tick`` every ``interval_seconds`` on one asyncio task.

    A tick requested while another is still running is skipped, never queued.
    ``stop()`` stops scheduling new ticks and waits for the running one.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        tick: Tick,
        *,
        run_immediately: bool = False,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"{name}: interval must be positive, got {interval_seconds!r}")
        self.name = name
        self._interval_seconds = float(interval_seconds)
        self._tick = tick
        self._run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None
        self._in_flight: asyncio.Future[None] | None = None

    @property
    def interval_seconds(self) -> float:
        return self._interval_seconds

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    async def start(self) -> bool:
        """Start the loop; returns ``False`` when it was already running."""

        if self.is_running:
            log.debug("%s already running", self.name)
            return False
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stop_event), name=self.name)
        log.info("%s started (interval %.1fs)", self.name, self._interval_seconds)
        return True

    async def stop(self) -> bool:
        """Stop the loop and wait for an in-flight tick; ``False`` if it was not running."""

        task, stop_event = self._task, self._stop_event
        self._task = None
        self._stop_event = None
        was_running = task is not None and not task.done()
        if stop_event is not None:
            stop_event.set()
        if task is not None:
            await task
        pending = self._in_flight
        if pending is not None:
            await pending
        if was_running:
            log.info("%s stopped", self.name)
        return was_running

    async def set_interval(self, seconds: float) -> None:
        """Change the interval, restarting the loop if it is running."""

        if seconds <= 0:
            raise ValueError(f"{self.name}: interval must be positive, got {seconds!r}")
        restart = self.is_running
        if restart:
            await self.stop()
        self._interval_seconds = float(seconds)
        if restart:
            await self.start()
        log.info("%s interval set to %.1fs", self.name, self._interval_seconds)

    async def run_once(self) -> bool:
        """Run one tick now unless one is already running.

        Exceptions raised by the tick propagate to the caller.
        """

        if self._in_flight is not None:
            log.info("%s tick skipped: previous tick still running", self.name)
            return False
        done = asyncio.get_running_loop().create_future()
        self._in_flight = done
        try:
            await self._tick()
        finally:
            self._in_flight = None
            done.set_result(None)
        return True

    async def _run(self, stop_event: asyncio.Event) -> None:
        if not self._run_immediately and await self._wait(stop_event):
            return
        while not stop_event.is_set():
            try:
                await self.run_once()
            except Exception:  # noqa: BLE001
                log.exception("%s tick failed", self.name)
            if await self._wait(stop_event):
                return

    async def _wait(self, stop_event: asyncio.Event) -> bool:
        """Sleep one interval; ``True`` when the loop was asked to stop."""

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self._interval_seconds)
        except TimeoutError:
            return False
        return True


__all__ = ["PeriodicLoop", "Tick"]
