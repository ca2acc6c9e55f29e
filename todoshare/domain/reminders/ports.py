from __future__ import annotations

from abc import ABC, abstractmethod

from todoshare.domain.reminders.models import ReminderEvent


class ReminderNotifier(ABC):
    """Delivery of a fired reminder (push, email, ...) lives behind this port."""

    @abstractmethod
    async def notify(self, event: ReminderEvent) -> None: ...
