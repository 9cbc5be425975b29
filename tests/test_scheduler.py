from __future__ import annotations

import asyncio
import time as clock_time
from datetime import datetime, time, timedelta

import pytest

from taskflow.services.clock import FixedClock
from taskflow.services.recurring_service import GenerationSummary
from taskflow.services.scheduler import RecurringTaskScheduler, seconds_until


class FakeService:
    """Records generation ticks; optionally fails the first ones."""

    def __init__(self, failures: int = 0) -> None:
        self.calls = 0
        self.failures = failures
        self.stop_checks: list[bool] = []

    def generate_all_due(self, should_stop=None) -> GenerationSummary:
        self.calls += 1
        if should_stop is not None:
            self.stop_checks.append(should_stop())
        if self.failures:
            self.failures -= 1
            raise RuntimeError("database unavailable")
        return GenerationSummary()


class SlowService:
    """Takes `duration` seconds per tick and records when each tick began."""

    def __init__(self, duration: float) -> None:
        self.duration = duration
        self.started: list[float] = []

    def generate_all_due(self, should_stop=None) -> GenerationSummary:
        self.started.append(clock_time.monotonic())
        clock_time.sleep(self.duration)
        return GenerationSummary()


def _gaps(started: list[float]) -> list[float]:
    return [later - earlier for earlier, later in zip(started, started[1:])]


def test_seconds_until_later_today() -> None:
    assert seconds_until(datetime(2024, 1, 1, 1, 0), time(2, 0)) == 3600


def test_seconds_until_rolls_over_to_tomorrow() -> None:
    assert seconds_until(datetime(2024, 1, 1, 3, 0), time(2, 0)) == 23 * 3600


def test_seconds_until_exact_time_runs_now() -> None:
    assert seconds_until(datetime(2024, 1, 1, 2, 0), time(2, 0)) == 0


def test_period_must_be_positive() -> None:
    with pytest.raises(ValueError):
        RecurringTaskScheduler(FakeService(), period=timedelta(0))


@pytest.mark.asyncio
async def test_stop_during_initial_delay_skips_generation() -> None:
    service = FakeService()
    scheduler = RecurringTaskScheduler(
        service,
        clock=FixedClock(datetime(2024, 1, 1, 3, 0)),
        run_at=time(2, 0),
    )

    scheduler.start()
    await asyncio.sleep(0.01)
    assert scheduler.running

    await asyncio.wait_for(scheduler.stop(), timeout=1.0)

    assert not scheduler.running
    assert service.calls == 0


@pytest.mark.asyncio
async def test_runs_ticks_on_period_until_stopped() -> None:
    service = FakeService()
    scheduler = RecurringTaskScheduler(
        service,
        clock=FixedClock(datetime(2024, 1, 1, 2, 0)),
        run_at=time(2, 0),
        period=timedelta(milliseconds=10),
    )

    scheduler.start()
    await asyncio.sleep(0.1)
    await asyncio.wait_for(scheduler.stop(), timeout=1.0)

    assert service.calls >= 2
    assert service.stop_checks[0] is False


@pytest.mark.asyncio
async def test_failed_tick_does_not_stop_the_loop() -> None:
    service = FakeService(failures=1)
    scheduler = RecurringTaskScheduler(
        service,
        clock=FixedClock(datetime(2024, 1, 1, 2, 0)),
        run_at=time(2, 0),
        period=timedelta(milliseconds=10),
    )

    scheduler.start()
    await asyncio.sleep(0.1)
    await asyncio.wait_for(scheduler.stop(), timeout=1.0)

    assert service.calls >= 2


@pytest.mark.asyncio
async def test_start_twice_is_rejected() -> None:
    scheduler = RecurringTaskScheduler(
        FakeService(),
        clock=FixedClock(datetime(2024, 1, 1, 3, 0)),
    )

    scheduler.start()
    with pytest.raises(RuntimeError):
        scheduler.start()
    await scheduler.stop()


@pytest.mark.asyncio
async def test_tick_returns_summary() -> None:
    scheduler = RecurringTaskScheduler(FakeService(), clock=FixedClock(datetime(2024, 1, 1)))

    summary = await scheduler.tick()

    assert summary == GenerationSummary()


@pytest.mark.asyncio
async def test_tick_duration_does_not_delay_the_next_tick() -> None:
    service = SlowService(duration=0.1)
    scheduler = RecurringTaskScheduler(
        service,
        clock=FixedClock(datetime(2024, 1, 1, 2, 0)),
        run_at=time(2, 0),
        period=timedelta(milliseconds=200),
    )

    scheduler.start()
    await asyncio.sleep(0.75)
    await asyncio.wait_for(scheduler.stop(), timeout=1.0)

    assert len(service.started) >= 3
    assert all(0.15 < gap < 0.27 for gap in _gaps(service.started))


@pytest.mark.asyncio
async def test_overrunning_tick_starts_next_one_without_catch_up() -> None:
    service = SlowService(duration=0.15)
    scheduler = RecurringTaskScheduler(
        service,
        clock=FixedClock(datetime(2024, 1, 1, 2, 0)),
        run_at=time(2, 0),
        period=timedelta(milliseconds=50),
    )

    scheduler.start()
    await asyncio.sleep(0.5)
    await asyncio.wait_for(scheduler.stop(), timeout=1.0)

    assert len(service.started) >= 2
    assert all(gap >= 0.14 for gap in _gaps(service.started))
