from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from todoshare.domain.tasks.models import ReminderKind


@dataclass(frozen=True)
class ReminderEvent:
    """One reminder kind that the scanner recorded in the ledger for the first time."""

    task_id: str
    owner_id: str
    title: str
    kind: ReminderKind
    fires_at: datetime
    fired_at: datetime


@dataclass(frozen=True)
class UpcomingReminder:
    task_id: str
    title: str
    kind: ReminderKind
    fires_at: datetime
    notified: bool
