"""Unit tests for the scan scheduler"""

import asyncio
from datetime import timedelta

from moneylens_guard.domain.scheduler import Scheduler


def test_nothing_runs_before_start(clock):
    calls = []
    scheduler = Scheduler(clock)
    scheduler.every(30, lambda: calls.append("shallow"), "shallow_scan")

    assert scheduler.run_pending(clock() + timedelta(hours=1)) == 0
    assert calls == []


def test_tasks_run_at_their_own_intervals(clock):
    calls = []
    scheduler = Scheduler(clock)
    scheduler.every(30, lambda: calls.append("shallow"), "shallow_scan")
    scheduler.every(300, lambda: calls.append("deep"), "deep_scan")
    scheduler.start()

    for _ in range(10):
        clock.advance(seconds=30)
        scheduler.run_pending()

    assert calls.count("shallow") == 10
    assert calls.count("deep") == 1


def test_failing_task_is_logged_and_rescheduled(clock, caplog):
    def boom():
        raise RuntimeError("scan failed")

    scheduler = Scheduler(clock)
    task = scheduler.every(30, boom, "shallow_scan")
    scheduler.start()

    assert scheduler.run_pending(clock.advance(seconds=30)) == 1
    assert "Scheduled task failed" in caplog.text
    assert task.next_run == clock() + timedelta(seconds=30)


def test_stop_clears_schedules(clock):
    scheduler = Scheduler(clock)
    task = scheduler.every(30, lambda: None, "shallow_scan")
    scheduler.start()
    scheduler.stop()

    assert task.next_run is None
    assert scheduler.run_pending(clock.advance(minutes=5)) == 0


def test_task_that_stops_scheduler_is_not_rescheduled(clock):
    scheduler = Scheduler(clock)
    task = scheduler.every(30, scheduler.stop, "shutdown")
    scheduler.start()

    assert scheduler.run_pending(clock.advance(seconds=30)) == 1
    assert task.next_run is None
    assert task.runs == 1


def test_cancel_removes_task(clock):
    calls = []
    scheduler = Scheduler(clock)
    task = scheduler.every(30, lambda: calls.append(1), "shallow_scan")
    scheduler.start()
    scheduler.cancel(task)

    assert scheduler.run_pending(clock.advance(seconds=60)) == 0
    assert scheduler.tasks == []


def test_run_forever_until_stopped(clock):
    scheduler = Scheduler(lambda: clock.advance(seconds=10))
    runs = []

    def scan():
        runs.append(1)
        if len(runs) == 3:
            scheduler.stop()

    scheduler.every(30, scan, "shallow_scan")
    asyncio.run(asyncio.wait_for(scheduler.run_forever(poll_seconds=0), timeout=5))

    assert len(runs) == 3
    assert scheduler.running is False
