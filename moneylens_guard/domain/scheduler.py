"""Interval scheduler for periodic scans, drivable by hand in tests"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ScheduledTask:
    name: str
    interval: timedelta
    callback: Callable[[], object]
    next_run: Optional[datetime] = None
    cancelled: bool = False
    runs: int = 0


class Scheduler:
    """
    Runs registered callbacks at fixed intervals.

    Nothing happens until run_pending() is called with the current time, either
    directly (tests) or from run_forever() on the event loop. Stopping clears
    every schedule; a callback already running finishes but is not rescheduled.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self.tasks: List[ScheduledTask] = []
        self.running = False

    def every(self, seconds: float, callback: Callable[[], object], name: str) -> ScheduledTask:
        task = ScheduledTask(name=name, interval=timedelta(seconds=seconds), callback=callback)
        if self.running:
            task.next_run = self._clock() + task.interval
        self.tasks.append(task)
        return task

    def start(self) -> None:
        now = self._clock()
        for task in self.tasks:
            task.next_run = now + task.interval
        self.running = True

    def stop(self) -> None:
        self.running = False
        for task in self.tasks:
            task.next_run = None

    def cancel(self, task: ScheduledTask) -> None:
        task.cancelled = True
        task.next_run = None
        if task in self.tasks:
            self.tasks.remove(task)

    def run_pending(self, now: Optional[datetime] = None) -> int:
        """Run every task that is due at `now`; returns how many ran"""
        if not self.running:
            return 0
        now = now or self._clock()

        ran = 0
        for task in list(self.tasks):
            if task.next_run is None or task.next_run > now:
                continue
            try:
                task.callback()
            except Exception:
                logger.exception("Scheduled task failed", extra={"task": task.name})
            task.runs += 1
            ran += 1
            if self.running and not task.cancelled:
                task.next_run = now + task.interval
            else:
                task.next_run = None
        return ran

    async def run_forever(self, poll_seconds: float = 1.0) -> None:
        """Drive run_pending from the event loop until stop()"""
        if not self.running:
            self.start()
        while self.running:
            self.run_pending()
            await asyncio.sleep(poll_seconds)
