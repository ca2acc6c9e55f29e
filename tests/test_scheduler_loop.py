"""
Background worker lifecycle: start, periodic ticks, survival of tick errors, stop.
"""
from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from todoshare.domain.tasks.models import ReminderKind, TaskDraft
from todoshare.infra.scheduler.loop import PeriodicWorker, SchedulerConfig

from fakes import NOW


def test_worker_keeps_running_after_tick_error():
    async def run():
        calls = []

        async def tick():
            calls.append(len(calls))
            if len(calls) == 1:
                raise RuntimeError("boom")

        worker = PeriodicWorker("test", tick, SchedulerConfig(poll_seconds=0.01))
        worker.start()
        await asyncio.sleep(0.1)
        assert worker.running
        await worker.stop()

        assert not worker.running
        assert len(calls) >= 2
        assert worker.ticks == len(calls)

    asyncio.run(run())


def test_stop_wakes_a_long_wait():
    """stop() does not have to sit out the poll interval."""
    async def run():
        ticked = asyncio.Event()

        async def tick():
            ticked.set()

        worker = PeriodicWorker("slow", tick, SchedulerConfig(poll_seconds=3600))
        worker.start()
        await asyncio.wait_for(ticked.wait(), timeout=1)
        await asyncio.wait_for(worker.stop(), timeout=1)
        assert worker.ticks == 1

    asyncio.run(run())


def test_ticks_never_overlap():
    async def run():
        active = 0
        peak = 0

        async def tick():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.02)
            active -= 1

        worker = PeriodicWorker("overlap", tick, SchedulerConfig(poll_seconds=0.001))
        worker.start()
        await asyncio.sleep(0.1)
        await worker.stop()
        assert peak == 1

    asyncio.run(run())


def test_double_start_is_refused():
    async def run():
        async def tick():
            return None

        worker = PeriodicWorker("dup", tick, SchedulerConfig(poll_seconds=0.01))
        worker.start()
        with pytest.raises(RuntimeError):
            worker.start()
        await worker.stop()
        # stopping twice is harmless
        await worker.stop()

    asyncio.run(run())


def test_reminder_worker_fires_due_task(app, notifier):
    """The wired worker drives the scanner against the real store."""
    async def run():
        owner = await app.register_user("Olivia Owner", "owner@example.com")
        task = await app.tasks.create_task(owner.user_id, TaskDraft(title="Ship it", due_at=NOW + timedelta(minutes=3)))

        worker = PeriodicWorker("reminders", app.scanner.tick, SchedulerConfig(poll_seconds=0.01))
        worker.start()
        for _ in range(100):
            if notifier.events:
                break
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.05)
        await worker.stop()

        assert [(e.task_id, e.kind) for e in notifier.events] == [(task.task_id, ReminderKind.DUE_DATE)]

    asyncio.run(run())
