"""
Daily recurring-task scheduler.

One asyncio task that:
- waits until the configured time of day,
- runs a batch generation tick,
- repeats on a fixed period measured from the start of each tick.

Ticks never overlap. ``stop()`` is observed while waiting and between
templates inside a tick; a template that is already being committed finishes
first.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, time, timedelta

from .clock import Clock, SystemClock
from .recurring_service import GenerationSummary, RecurringTaskService

logger = logging.getLogger(__name__)


def seconds_until(now: datetime, run_at: time) -> float:
    """Seconds from ``now`` to the next ``run_at`` on the same timeline."""
    target = now.replace(
        hour=run_at.hour,
        minute=run_at.minute,
        second=run_at.second,
        microsecond=0,
    )
    if now > target:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class RecurringTaskScheduler:
    def __init__(
        self,
        service: RecurringTaskService,
        *,
        clock: Clock | None = None,
        run_at: time = time(2, 0),
        period: timedelta = timedelta(hours=24),
    ) -> None:
        if period <= timedelta(0):
            raise ValueError("Scheduler period must be positive")
        self._service = service
        self._clock = clock or SystemClock()
        self._run_at = run_at
        self._period = period
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            raise RuntimeError("Scheduler is already running")
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self.run(), name="recurring-task-scheduler")
        return self._task

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def run(self) -> None:
        logger.info("Recurring task scheduler started")
        delay = seconds_until(self._clock.now(), self._run_at)
        logger.info(
            "Next recurring task generation scheduled for %s",
            self._clock.now() + timedelta(seconds=delay),
        )

        if await self._wait(delay):
            logger.info("Recurring task scheduler stopped before first run")
            return

        loop = asyncio.get_running_loop()
        period = self._period.total_seconds()
        deadline = loop.time()
        while True:
            deadline += period
            await self.tick()
            # Overrunning ticks start the next one immediately; missed ticks are not replayed.
            deadline = max(deadline, loop.time())
            if await self._wait(deadline - loop.time()):
                break
        logger.info("Recurring task scheduler stopped")

    async def tick(self) -> GenerationSummary | None:
        logger.info("Starting recurring task generation at %s", self._clock.now())
        try:
            summary = await asyncio.to_thread(
                self._service.generate_all_due, self._stop.is_set
            )
        except Exception:
            logger.exception("Error occurred while generating recurring tasks")
            return None
        logger.info("Completed recurring task generation at %s", self._clock.now())
        return summary

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True if a stop was requested meanwhile."""
        if self._stop.is_set():
            return True
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=max(seconds, 0.0))
        except asyncio.TimeoutError:
            return False
        return True
