from __future__ import annotations

from datetime import timedelta
from typing import Any, List, Sequence

from todoshare.constants import UPCOMING_HORIZON_HOURS
from todoshare.domain.common.errors import NotFoundError
from todoshare.domain.reminders.ledger import has_fired, kinds_in_window
from todoshare.domain.reminders.models import UpcomingReminder
from todoshare.domain.tasks.access import require
from todoshare.domain.tasks.models import Operation, ReminderKind, Task, TaskQuery
from todoshare.domain.tasks.ports import Clock, TaskStore
from todoshare.domain.tasks.rules import parse_reminder_kind


class ReminderService:
    """Read side of the reminder engine plus per-user dismissal."""

    def __init__(
        self,
        store: TaskStore,
        clock: Clock,
        horizon: timedelta = timedelta(hours=UPCOMING_HORIZON_HOURS),
    ) -> None:
        self._store = store
        self._clock = clock
        self._horizon = horizon

    async def upcoming_reminders(self, user_id: str) -> List[UpcomingReminder]:
        """
        Reminders due within the horizon on incomplete tasks the user can read,
        soonest first. `notified` tells whether the scanner already fired it.
        """
        now = self._clock.now()
        end = now + self._horizon
        tasks = await self._store.find(
            TaskQuery(visible_to=user_id, completed=False, window_start=now, window_end=end)
        )
        dismissed = await self._store.list_dismissals(user_id)

        out: List[UpcomingReminder] = []
        for task in tasks:
            for kind, fires_at in kinds_in_window(task, now, end):
                if (task.task_id, kind) in dismissed:
                    continue
                out.append(
                    UpcomingReminder(
                        task_id=task.task_id,
                        title=task.title,
                        kind=kind,
                        fires_at=fires_at,
                        notified=has_fired(task, kind),
                    )
                )
        out.sort(key=lambda r: (r.fires_at, r.task_id, r.kind.value))
        return out

    async def overdue_tasks(self, user_id: str) -> Sequence[Task]:
        now = self._clock.now()
        tasks = await self._store.find(TaskQuery(owner_id=user_id, completed=False, due_before=now))
        return sorted(tasks, key=lambda t: t.due_at or now)

    async def dismiss(self, task_id: str, user_id: str, kind: Any) -> bool:
        """
        Hide a reminder from this user's upcoming list. The ledger is left
        alone, so dismissing never makes a reminder fire again.
        """
        reminder_kind: ReminderKind = parse_reminder_kind(kind)
        task = await self._store.find_by_id(task_id)
        if task is None:
            raise NotFoundError("Task not found.")
        require(task, user_id, Operation.READ)
        return await self._store.add_dismissal(task_id, user_id, reminder_kind, self._clock.now())
