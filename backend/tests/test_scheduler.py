from __future__ import annotations

import asyncio

import pytest

from geoplotter.services.scheduler import RefreshScheduler, ScheduleState


class FakeTimer:
    """Injected sleep: lets ``ticks`` sleeps pass, then blocks until cancelled."""

    def __init__(self, ticks: int) -> None:
        self.ticks = ticks
        self.delays: list[float] = []
        self.blocked = asyncio.Event()

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        if len(self.delays) > self.ticks:
            self.blocked.set()
            await asyncio.Event().wait()
        await asyncio.sleep(0)


async def _settle(scheduler: RefreshScheduler) -> None:
    for _ in range(5):
        await asyncio.sleep(0)
    await scheduler.drain()


def test_interval_zero_runs_once_and_arms_no_timer() -> None:
    async def _run() -> None:
        collected: list[int] = []
        applied: list[int] = []

        async def collect() -> int:
            collected.append(1)
            return len(collected)

        scheduler = RefreshScheduler(collect, applied.append)
        assert scheduler.state is ScheduleState.IDLE

        scheduler.activate(0)
        assert scheduler.runs_started == 1
        await scheduler.drain()

        assert applied == [1]
        assert scheduler.state is ScheduleState.IDLE

    asyncio.run(_run())


@pytest.mark.parametrize("ticks", [0, 1, 3])
def test_runs_immediately_then_every_interval_until_cancelled(ticks: int) -> None:
    async def _run() -> None:
        timer = FakeTimer(ticks)
        applied: list[int] = []

        async def collect() -> int:
            return len(applied) + 1

        scheduler = RefreshScheduler(collect, applied.append, sleep=timer.sleep)
        scheduler.activate(5)
        # The first run does not wait for the timer.
        assert scheduler.runs_started == 1

        await timer.blocked.wait()
        await scheduler.drain()
        assert scheduler.state is ScheduleState.SCHEDULED
        assert scheduler.runs_started == 1 + ticks

        scheduler.deactivate()
        await _settle(scheduler)

        assert scheduler.state is ScheduleState.CANCELLED
        assert scheduler.runs_started == 1 + ticks
        assert len(applied) == 1 + ticks
        assert timer.delays == [5] * (ticks + 1)

    asyncio.run(_run())


def test_stale_run_finishing_late_is_dropped() -> None:
    async def _run() -> None:
        gates = [asyncio.Event(), asyncio.Event()]
        started = 0
        applied: list[int] = []

        async def collect() -> int:
            nonlocal started
            mine = started
            started += 1
            await gates[mine].wait()
            return mine

        scheduler = RefreshScheduler(collect, applied.append)
        scheduler.activate(0)
        scheduler.activate(0)
        await asyncio.sleep(0)
        assert scheduler.state is ScheduleState.RUNNING

        # Later-started run completes first and wins.
        gates[1].set()
        while scheduler.runs_applied < 1:
            await asyncio.sleep(0)
        gates[0].set()
        await scheduler.drain()

        assert applied == [1]
        assert scheduler.runs_dropped == 1

    asyncio.run(_run())


def test_cancellation_blocks_in_flight_apply() -> None:
    async def _run() -> None:
        gate = asyncio.Event()
        applied: list[str] = []

        async def collect() -> str:
            await gate.wait()
            return "late"

        scheduler = RefreshScheduler(collect, applied.append)
        scheduler.activate(0)
        await asyncio.sleep(0)

        scheduler.deactivate()
        gate.set()
        await scheduler.drain()

        assert applied == []
        with pytest.raises(RuntimeError):
            scheduler.activate(0)

    asyncio.run(_run())


def test_failing_run_does_not_stop_the_timer() -> None:
    async def _run() -> None:
        timer = FakeTimer(2)
        applied: list[int] = []
        calls = 0

        async def collect() -> int:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("boom")
            return calls

        scheduler = RefreshScheduler(collect, applied.append, sleep=timer.sleep)
        scheduler.activate(1)
        await timer.blocked.wait()
        await scheduler.drain()
        scheduler.deactivate()

        assert scheduler.runs_started == 3
        assert applied == [2, 3]

    asyncio.run(_run())


def test_negative_interval_is_rejected() -> None:
    async def _run() -> None:
        async def collect() -> None:
            return None

        scheduler = RefreshScheduler(collect, lambda _: None)
        with pytest.raises(ValueError):
            scheduler.activate(-1)

    asyncio.run(_run())
