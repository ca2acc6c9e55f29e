"""
Reminder scanner + dedup ledger: window boundaries, at-most-once firing,
rescheduling behavior and failure handling.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

import pytest

from todoshare.domain.common.errors import StoreUnavailable
from todoshare.domain.reminders.ledger import due_kinds, kinds_in_window
from todoshare.domain.reminders.scanner import ReminderScanner
from todoshare.domain.tasks.models import ReminderKind, TaskDraft, TaskPatch

from fakes import NOW, FixedClock, RecordingNotifier


async def new_task(app, **draft):
    owner = await app.register_user("Olivia Owner", "owner@example.com")
    task = await app.tasks.create_task(owner.user_id, TaskDraft(title="Pay rent", **draft))
    return owner, task


def test_due_task_fires_once(app, clock, notifier):
    """Scenario A: due in 10 min -> due_date fired; 5 min later -> nothing new."""
    async def run():
        _, task = await new_task(app, due_at=NOW + timedelta(minutes=10))

        fired = await app.scanner.scan_once()
        assert [(e.task_id, e.kind) for e in fired] == [(task.task_id, ReminderKind.DUE_DATE)]
        stored = await app.store.find_by_id(task.task_id)
        assert stored.reminders_fired == frozenset({ReminderKind.DUE_DATE})

        clock.advance(minutes=5)
        assert await app.scanner.scan_once() == []
        stored = await app.store.find_by_id(task.task_id)
        assert stored.reminders_fired == frozenset({ReminderKind.DUE_DATE})
        assert len(notifier.events) == 1

    asyncio.run(run())


def test_both_kinds_fire_independently(app, notifier):
    async def run():
        _, task = await new_task(
            app,
            due_at=NOW + timedelta(minutes=25),
            remind_at=NOW + timedelta(minutes=5),
        )
        fired = await app.scanner.scan_once()
        assert {e.kind for e in fired} == {ReminderKind.DUE_DATE, ReminderKind.CUSTOM_REMINDER}

        stored = await app.store.find_by_id(task.task_id)
        assert stored.reminders_fired == frozenset(ReminderKind)
        assert {e.kind for e in notifier.events} == set(ReminderKind)

    asyncio.run(run())


def test_window_is_inclusive_at_both_ends(app, clock):
    async def run():
        owner = await app.register_user("Olivia Owner", "owner@example.com")
        at_now = await app.tasks.create_task(owner.user_id, TaskDraft(title="Now", due_at=NOW))
        at_edge = await app.tasks.create_task(
            owner.user_id, TaskDraft(title="Edge", remind_at=NOW + timedelta(minutes=30))
        )
        beyond = await app.tasks.create_task(
            owner.user_id, TaskDraft(title="Beyond", due_at=NOW + timedelta(minutes=30, seconds=1))
        )
        past = await app.tasks.create_task(
            owner.user_id, TaskDraft(title="Past", due_at=NOW - timedelta(seconds=1))
        )

        fired = await app.scanner.scan_once()
        assert {e.task_id for e in fired} == {at_now.task_id, at_edge.task_id}

        for t in (beyond, past):
            stored = await app.store.find_by_id(t.task_id)
            assert stored.reminders_fired == frozenset()

        # the "beyond" task enters the window a little later and fires then
        clock.advance(seconds=1)
        fired = await app.scanner.scan_once()
        assert [e.task_id for e in fired] == [beyond.task_id]

    asyncio.run(run())


def test_completed_tasks_are_not_reminded(app):
    async def run():
        owner, task = await new_task(app, due_at=NOW + timedelta(minutes=10))
        await app.tasks.set_completed(task.task_id, owner.user_id, True)

        assert await app.scanner.scan_once() == []
        stored = await app.store.find_by_id(task.task_id)
        assert stored.reminders_fired == frozenset()

    asyncio.run(run())


def test_rescheduling_does_not_rearm_fired_reminder(app, clock):
    """
    Moving due_at after the reminder fired keeps the ledger entry, so the new
    time does not trigger a second due_date reminder.
    """
    async def run():
        owner, task = await new_task(app, due_at=NOW + timedelta(minutes=10))
        assert len(await app.scanner.scan_once()) == 1

        clock.advance(hours=2)
        await app.tasks.update_task(task.task_id, owner.user_id, TaskPatch(due_at=clock.now() + timedelta(minutes=10)))

        assert await app.scanner.scan_once() == []
        stored = await app.store.find_by_id(task.task_id)
        assert stored.reminders_fired == frozenset({ReminderKind.DUE_DATE})

        # the other kind is still tracked on its own
        await app.tasks.update_task(task.task_id, owner.user_id, TaskPatch(remind_at=clock.now() + timedelta(minutes=1)))
        fired = await app.scanner.scan_once()
        assert [e.kind for e in fired] == [ReminderKind.CUSTOM_REMINDER]

    asyncio.run(run())


def test_two_scanners_racing_fire_each_kind_once(app, clock):
    """The atomic add-to-set decides the winner; the loser reports nothing."""
    async def run():
        await new_task(app, due_at=NOW + timedelta(minutes=10), remind_at=NOW + timedelta(minutes=20))
        other_notifier = RecordingNotifier()
        other = ReminderScanner(app.store, clock, other_notifier)

        first, second = await asyncio.gather(app.scanner.scan_once(), other.scan_once())
        kinds = [e.kind for e in first] + [e.kind for e in second]
        assert sorted(k.value for k in kinds) == sorted(k.value for k in ReminderKind)

    asyncio.run(run())


def test_notifier_failure_keeps_ledger_entry(app, notifier, caplog):
    async def run():
        _, task = await new_task(app, due_at=NOW + timedelta(minutes=10))
        notifier.fail = True

        with caplog.at_level(logging.ERROR):
            fired = await app.scanner.scan_once()
        assert len(fired) == 1
        assert "Reminder delivery failed" in caplog.text

        notifier.fail = False
        assert await app.scanner.scan_once() == []
        assert len(notifier.events) == 1

    asyncio.run(run())


class UnavailableStore:
    def __init__(self) -> None:
        self.calls = 0

    async def find(self, query):
        self.calls += 1
        raise StoreUnavailable("database is locked")


def test_store_outage_skips_cycle(caplog):
    """tick() logs and returns; scan_once() still surfaces the error to direct callers."""
    async def run():
        store = UnavailableStore()
        scanner = ReminderScanner(store, FixedClock(), RecordingNotifier())

        with caplog.at_level(logging.WARNING):
            await scanner.tick()
            await scanner.tick()
        assert store.calls == 2
        assert "store unavailable" in caplog.text

        with pytest.raises(StoreUnavailable):
            await scanner.scan_once()

    asyncio.run(run())


def test_ledger_helpers_are_pure(app):
    async def run():
        _, task = await new_task(
            app,
            due_at=NOW + timedelta(minutes=40),
            remind_at=NOW + timedelta(minutes=10),
        )
        window = timedelta(minutes=30)
        assert [k for k, _ in due_kinds(task, NOW, window)] == [ReminderKind.CUSTOM_REMINDER]
        assert [k for k, _ in kinds_in_window(task, NOW, NOW + timedelta(hours=1))] == [
            ReminderKind.DUE_DATE,
            ReminderKind.CUSTOM_REMINDER,
        ]

    asyncio.run(run())


class SteppingClock(FixedClock):
    """Moves one second forward every time it is read."""

    def now(self):
        current = super().now()
        self.advance(seconds=1)
        return current


def test_cycle_uses_one_now_for_query_and_firing(app, notifier):
    """A task due exactly at the start of the cycle still fires on a moving clock."""
    async def run():
        _, task = await new_task(app, due_at=NOW)
        scanner = ReminderScanner(app.store, SteppingClock(), notifier)

        fired = await scanner.scan_once()
        assert [(e.task_id, e.kind) for e in fired] == [(task.task_id, ReminderKind.DUE_DATE)]
        assert fired[0].fired_at == NOW

    asyncio.run(run())
