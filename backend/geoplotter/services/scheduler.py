from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar


logger = logging.getLogger(__name__)


_T = TypeVar("_T")


class ScheduleState(str, enum.Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    CANCELLED = "cancelled"


class RefreshScheduler(Generic[_T]):
    """Runs collect/apply immediately on activation, then every interval.

    Ticks do not wait for in-flight runs, so runs may overlap. A finished run
    is applied only if no later-started run has been applied already; older
    results are dropped. Cancellation stops future ticks and blocks pending
    applies but leaves in-flight fetches to finish on their own.
    """

    def __init__(
        self,
        collect: Callable[[], Awaitable[_T]],
        apply: Callable[[_T], Any],
        *,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self._collect = collect
        self._apply = apply
        self._sleep = sleep or asyncio.sleep

        self._interval_s = 0
        self._timer: asyncio.Task[None] | None = None
        self._runs: set[asyncio.Task[None]] = set()
        self._seq = 0
        self._last_applied_seq = 0
        self._cancelled = False

        self.runs_started = 0
        self.runs_applied = 0
        self.runs_dropped = 0

    @property
    def interval_s(self) -> int:
        return self._interval_s

    @property
    def state(self) -> ScheduleState:
        if self._cancelled:
            return ScheduleState.CANCELLED
        if self._runs:
            return ScheduleState.RUNNING
        if self._timer is not None and not self._timer.done():
            return ScheduleState.SCHEDULED
        return ScheduleState.IDLE

    def activate(self, interval_s: int) -> None:
        """Cancel any armed timer, run now, and re-arm if ``interval_s > 0``.

        Must be called from inside a running event loop.
        """

        if self._cancelled:
            raise RuntimeError("scheduler has been cancelled")
        if interval_s < 0:
            raise ValueError("interval_s must be >= 0")

        self._cancel_timer()
        self._interval_s = int(interval_s)
        self._spawn_run()
        if self._interval_s > 0:
            self._timer = asyncio.create_task(self._tick_loop(self._interval_s))

    def deactivate(self, *, abort_runs: bool = False) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._cancel_timer()
        if abort_runs:
            for task in list(self._runs):
                task.cancel()

    async def drain(self) -> None:
        """Wait for the runs in flight right now (not ones spawned later)."""

        pending = list(self._runs)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done():
            timer.cancel()

    async def _tick_loop(self, interval_s: int) -> None:
        while True:
            await self._sleep(interval_s)
            if self._cancelled:
                return
            self._spawn_run()

    def _spawn_run(self) -> None:
        self._seq += 1
        self.runs_started += 1
        task = asyncio.create_task(self._run(self._seq))
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)

    async def _run(self, seq: int) -> None:
        try:
            result = await self._collect()
        except Exception:
            # A failing run must never stop the timer.
            logger.exception("Refresh run failed (seq=%s)", seq)
            return

        if self._cancelled:
            logger.debug("Dropping run after cancellation (seq=%s)", seq)
            return
        if seq < self._last_applied_seq:
            self.runs_dropped += 1
            logger.debug(
                "Dropping stale run (seq=%s applied=%s)", seq, self._last_applied_seq
            )
            return

        self._last_applied_seq = seq
        try:
            self._apply(result)
        except Exception:
            logger.exception("Applying refresh run failed (seq=%s)", seq)
            return
        self.runs_applied += 1
