from __future__ import annotations

import logging

from todoshare.domain.reminders.models import ReminderEvent
from todoshare.domain.reminders.ports import ReminderNotifier
from todoshare.domain.tasks.models import ReminderKind

logger = logging.getLogger(__name__)


class LoggingNotifier(ReminderNotifier):
    """In-system only: fired reminders are written to the log."""

    async def notify(self, event: ReminderEvent) -> None:
        minutes = max(0, int((event.fires_at - event.fired_at).total_seconds() // 60))
        if event.kind == ReminderKind.DUE_DATE:
            text = f"Due in {minutes} minutes"
        else:
            text = f"Reminder: {minutes} minutes until your task"
        logger.info("Reminder for %r (task_id=%s owner=%s): %s", event.title, event.task_id, event.owner_id, text)
