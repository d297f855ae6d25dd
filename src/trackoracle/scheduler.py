"""Cron-driven, strictly serialized reconciliation passes."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from croniter import croniter

if TYPE_CHECKING:
    from collections.abc import Callable

    from trackoracle.config.schedule import ScheduleConfig
    from trackoracle.domain.reconciliation import PassReport

log = getLogger(__name__)


class PassRunner(Protocol):
    async def run_pass(self) -> PassReport: ...

    def request_stop(self) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReconciliationScheduler:
    """Run one pass per cron tick; a tick that fires while a pass runs is skipped."""

    def __init__(
        self,
        runner: PassRunner,
        schedule: ScheduleConfig,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._runner = runner
        self._schedule = schedule
        self._clock = clock
        self._stop = asyncio.Event()
        self._running = False
        self.last_report: PassReport | None = None

    @property
    def running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Finish the current pass (if any) and return from ``run``."""

        if not self._stop.is_set():
            log.info("Stop requested, finishing current pass")
        self._stop.set()
        self._runner.request_stop()

    def next_tick(self, after: datetime) -> datetime:
        return croniter(self._schedule.expression, after).get_next(datetime)

    async def run(self, *, max_passes: int | None = None) -> int:
        """Run passes until stopped (or ``max_passes`` ran); return the number of passes."""

        passes = 0
        log.info("Scheduler started with schedule %r", self._schedule.expression)
        if self._schedule.run_immediately and not self._stop.is_set():
            await self._run_one()
            passes += 1

        tick = self.next_tick(self._clock())
        while not self._stop.is_set() and (max_passes is None or passes < max_passes):
            delay = max((tick - self._clock()).total_seconds(), 0.0)
            if await self._wait(delay):
                break

            await self._run_one()
            passes += 1

            now = self._clock()
            tick, skipped = self._advance(tick, now)
            if skipped:
                log.warning("Pass overran the schedule, skipped %d tick(s)", skipped)

        log.info("Scheduler stopped after %d pass(es)", passes)
        return passes

    def _advance(self, tick: datetime, now: datetime) -> tuple[datetime, int]:
        skipped = 0
        following = self.next_tick(tick)
        while following <= now:
            skipped += 1
            following = self.next_tick(following)
        return following, skipped

    async def _wait(self, delay: float) -> bool:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay)
        except TimeoutError:
            return False
        return True

    async def _run_one(self) -> None:
        if self._running:
            log.warning("Previous pass still running, skipping tick")
            return
        self._running = True
        try:
            report = await self._runner.run_pass()
        except Exception:
            log.exception("Reconciliation pass failed")
        else:
            self.last_report = report
        finally:
            self._running = False
