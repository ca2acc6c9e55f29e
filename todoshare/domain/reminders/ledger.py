"""
Dedup ledger helpers.

The ledger is Task.reminders_fired: a set of reminder kinds that only grows.
The scanner is its only writer (through TaskStore.add_reminder_fired, an
atomic add-to-set); these helpers only read it.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from todoshare.domain.tasks.models import ReminderKind, Task


def reminder_times(task: Task) -> List[Tuple[ReminderKind, Optional[datetime]]]:
    return [
        (ReminderKind.DUE_DATE, task.due_at),
        (ReminderKind.CUSTOM_REMINDER, task.remind_at),
    ]


def kinds_in_window(task: Task, start: datetime, end: datetime) -> List[Tuple[ReminderKind, datetime]]:
    """Reminder kinds whose time lies in [start, end], both ends inclusive."""
    out: List[Tuple[ReminderKind, datetime]] = []
    for kind, at in reminder_times(task):
        if at is not None and start <= at <= end:
            out.append((kind, at))
    return out


def due_kinds(task: Task, now: datetime, window: timedelta) -> List[Tuple[ReminderKind, datetime]]:
    """Kinds entering the notification window that the ledger has not recorded yet."""
    if task.completed:
        return []
    return [(kind, at) for kind, at in kinds_in_window(task, now, now + window) if not has_fired(task, kind)]


def has_fired(task: Task, kind: ReminderKind) -> bool:
    return kind in task.reminders_fired
