"""
Fixed-rate scheduler for ingestion cycles.

Runs an async job on a single asyncio task:

- the first run starts immediately (run_immediately=True)
- later runs are due every `interval` seconds, measured from the first start
- a tick that falls due while a run is still going is skipped and counted,
  never queued
- stop() prevents new ticks and waits for the in-flight run; it never
  cancels it

Exceptions raised by the job are logged and the schedule carries on.
"""

import asyncio
import logging
import math
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from pulseh2h.matches import utc_now

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[object]]


class IntervalScheduler:
    """Single-flight periodic runner."""

    def __init__(self, job: Job, interval: float, run_immediately: bool = True, name: str = "ingestion"):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.job = job
        self.interval = interval
        self.run_immediately = run_immediately
        self.name = name

        self.skipped_ticks = 0
        self.runs_completed = 0
        self.next_run_at: Optional[datetime] = None

        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._in_flight = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def start(self) -> None:
        if self.is_running:
            logger.warning("Scheduler '%s' already running", self.name)
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name=f"scheduler-{self.name}")
        logger.info("Scheduler '%s' started (every %ss)", self.name, self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return

        self._stop_event.set()
        # Let the running job finish; only the sleep between ticks is interrupted
        await self._task
        self._task = None
        self.next_run_at = None
        logger.info(
            "Scheduler '%s' stopped (%d runs, %d skipped ticks)",
            self.name, self.runs_completed, self.skipped_ticks,
        )

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        origin = loop.time()
        tick = 0 if self.run_immediately else 1

        while not self._stop_event.is_set():
            due = origin + tick * self.interval
            delay = due - loop.time()
            self.next_run_at = utc_now() + timedelta(seconds=max(delay, 0.0))

            if delay > 0:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                    break
                except asyncio.TimeoutError:
                    pass

            await self._run_once()

            # Ticks that fell due while the job was running are dropped
            elapsed_ticks = math.floor((loop.time() - origin) / self.interval)
            missed = max(elapsed_ticks - tick, 0)
            if missed:
                self.skipped_ticks += missed
                logger.warning(
                    "Scheduler '%s': run overran its interval, skipped %d tick(s)",
                    self.name, missed,
                )
            tick = tick + missed + 1

    async def _run_once(self) -> None:
        self._in_flight = True
        try:
            await self.job()
            self.runs_completed += 1
        except Exception as exc:
            logger.exception("Scheduled job '%s' failed: %s", self.name, exc)
        finally:
            self._in_flight = False
