from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List

from todoshare.constants import REMINDER_WINDOW_MINUTES
from todoshare.domain.common.errors import StoreUnavailable
from todoshare.domain.reminders.ledger import due_kinds
from todoshare.domain.reminders.models import ReminderEvent
from todoshare.domain.reminders.ports import ReminderNotifier
from todoshare.domain.tasks.models import Task, TaskQuery
from todoshare.domain.tasks.ports import Clock, TaskStore

logger = logging.getLogger(__name__)


class ReminderScanner:
    """
    One scan cycle:
    - find incomplete tasks with due_at or remind_at in [now, now + window]
    - for each kind in the window and not yet in the ledger, add it to the
      ledger (atomic add-to-set)
    - hand the kinds that were newly added to the notifier

    Overlap between cycles is prevented by the caller (PeriodicWorker awaits
    each tick before sleeping).
    """

    def __init__(
        self,
        store: TaskStore,
        clock: Clock,
        notifier: ReminderNotifier,
        window: timedelta = timedelta(minutes=REMINDER_WINDOW_MINUTES),
    ) -> None:
        self._store = store
        self._clock = clock
        self._notifier = notifier
        self._window = window

    async def scan_once(self) -> List[ReminderEvent]:
        now = self._clock.now()
        tasks = await self._store.find(
            TaskQuery(completed=False, window_start=now, window_end=now + self._window)
        )

        fired: List[ReminderEvent] = []
        for task in tasks:
            fired.extend(await self._fire_task(task, now))

        if fired:
            logger.info("Reminder scan fired %s reminder(s) across %s task(s)", len(fired), len(tasks))
        return fired

    async def tick(self) -> None:
        """Worker entry point: a store outage skips this cycle only."""
        try:
            await self.scan_once()
        except StoreUnavailable as e:
            logger.warning("Reminder scan skipped, store unavailable: %s", e)

    async def _fire_task(self, task: Task, now: datetime) -> List[ReminderEvent]:
        events: List[ReminderEvent] = []
        for kind, fires_at in due_kinds(task, now, self._window):
            added = await self._store.add_reminder_fired(task.task_id, kind, now)
            if not added:
                # another scanner (or an earlier cycle) got there first
                continue

            event = ReminderEvent(
                task_id=task.task_id,
                owner_id=task.owner_id,
                title=task.title,
                kind=kind,
                fires_at=fires_at,
                fired_at=now,
            )
            logger.info("Reminder fired: task_id=%s kind=%s fires_at=%s", task.task_id, kind.value, fires_at.isoformat())
            events.append(event)
            try:
                await self._notifier.notify(event)
            except Exception:
                logger.exception("Reminder delivery failed: task_id=%s kind=%s", task.task_id, kind.value)
        return events
