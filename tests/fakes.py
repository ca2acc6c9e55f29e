# tests/fakes.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List

from todoshare.domain.reminders.models import ReminderEvent
from todoshare.domain.reminders.ports import ReminderNotifier
from todoshare.domain.tasks.ports import Clock

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FixedClock(Clock):
    """Clock that only moves when a test moves it."""

    def __init__(self, now: datetime = NOW) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now

    def advance(self, **delta: float) -> datetime:
        self._now = self._now + timedelta(**delta)
        return self._now


class RecordingNotifier(ReminderNotifier):
    """Captures events for assertions; set fail=True to simulate a delivery outage."""

    def __init__(self) -> None:
        self.events: List[ReminderEvent] = []
        self.fail = False

    async def notify(self, event: ReminderEvent) -> None:
        self.events.append(event)
        if self.fail:
            raise RuntimeError("push gateway down")
