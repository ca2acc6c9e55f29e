from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence, Set, Tuple

from todoshare.domain.tasks.models import (
    Permission,
    PurgeResult,
    ReminderKind,
    ShareGrant,
    Task,
    TaskQuery,
    UserRef,
)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime: ...


class IdGenerator(ABC):
    @abstractmethod
    def new_id(self) -> str: ...


class UserDirectory(ABC):
    @abstractmethod
    async def add_user(self, user_id: str, name: str, email: str, created_at: datetime) -> UserRef: ...

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[UserRef]: ...

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[UserRef]: ...


class TaskStore(ABC):
    """
    Key-addressed task records. Every mutation is a single atomic field-level
    operation; there is no read-full/write-full save.
    """

    @abstractmethod
    async def insert(self, task: Task) -> Task: ...

    @abstractmethod
    async def find_by_id(self, task_id: str) -> Optional[Task]: ...

    @abstractmethod
    async def find(self, query: TaskQuery) -> Sequence[Task]: ...

    @abstractmethod
    async def replace_fields(self, task_id: str, changes: Mapping[str, Any], updated_at: datetime) -> bool: ...

    @abstractmethod
    async def toggle_completed(self, task_id: str, updated_at: datetime) -> Optional[bool]: ...

    @abstractmethod
    async def delete(self, task_id: str) -> bool: ...

    @abstractmethod
    async def add_grant(self, task_id: str, grant: ShareGrant) -> None: ...

    @abstractmethod
    async def remove_grant(self, task_id: str, grantee_id: str) -> bool: ...

    @abstractmethod
    async def replace_grant_permission(self, task_id: str, grantee_id: str, permission: Permission) -> bool: ...

    @abstractmethod
    async def add_reminder_fired(self, task_id: str, kind: ReminderKind, fired_at: datetime) -> bool: ...

    @abstractmethod
    async def add_dismissal(self, task_id: str, user_id: str, kind: ReminderKind, dismissed_at: datetime) -> bool: ...

    @abstractmethod
    async def list_dismissals(self, user_id: str) -> Set[Tuple[str, ReminderKind]]: ...

    @abstractmethod
    async def purge_user(self, user_id: str) -> PurgeResult:
        """Remove the user's grants, their owned tasks and the user row as one atomic step."""
