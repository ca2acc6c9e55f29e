from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple


class Permission(str, Enum):
    VIEW = "view"
    EDIT = "edit"


class AccessLevel(str, Enum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"
    NO_ACCESS = "no_access"


class Operation(str, Enum):
    READ = "read"
    EDIT = "edit"
    DELETE = "delete"
    MANAGE_SHARING = "manage_sharing"


class ReminderKind(str, Enum):
    DUE_DATE = "due_date"
    CUSTOM_REMINDER = "custom_reminder"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Category(str, Enum):
    WORK = "work"
    PERSONAL = "personal"
    SHOPPING = "shopping"
    HEALTH = "health"
    EDUCATION = "education"
    GENERAL = "general"


@dataclass(frozen=True)
class UserRef:
    user_id: str
    name: str
    email: str


@dataclass(frozen=True)
class ShareGrant:
    grantee_id: str
    permission: Permission
    granted_at: datetime


@dataclass(frozen=True)
class Task:
    task_id: str
    owner_id: str
    creator_id: str
    title: str
    description: str
    completed: bool
    priority: Priority
    category: Category
    tags: Tuple[str, ...]
    due_at: Optional[datetime]
    remind_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    is_shared: bool = False
    shares: Tuple[ShareGrant, ...] = ()
    reminders_fired: FrozenSet[ReminderKind] = frozenset()

    def grant_for(self, user_id: str) -> Optional[ShareGrant]:
        for grant in self.shares:
            if grant.grantee_id == user_id:
                return grant
        return None


@dataclass(frozen=True)
class TaskDraft:
    """Raw creation input; validated and normalized by rules.normalize_draft()."""

    title: str
    description: str = ""
    priority: Any = None
    category: Any = None
    tags: Tuple[str, ...] = ()
    due_at: Optional[datetime] = None
    remind_at: Optional[datetime] = None


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass(frozen=True)
class TaskPatch:
    """
    Field replacement for update_task().

    Fields left at UNSET are not touched; None clears an optional timestamp.
    """

    title: Any = UNSET
    description: Any = UNSET
    priority: Any = UNSET
    category: Any = UNSET
    tags: Any = UNSET
    due_at: Any = UNSET
    remind_at: Any = UNSET
    completed: Any = UNSET

    def changes(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}


@dataclass(frozen=True)
class TaskQuery:
    """
    Predicate for TaskStore.find(). All set fields are ANDed.

    window_start/window_end match tasks whose due_at OR remind_at lies in
    [window_start, window_end].
    """

    owner_id: Optional[str] = None
    visible_to: Optional[str] = None
    shared_with: Optional[str] = None
    shared_by: Optional[str] = None
    completed: Optional[bool] = None
    category: Optional[Category] = None
    priority: Optional[Priority] = None
    tag: Optional[str] = None
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    due_before: Optional[datetime] = None


@dataclass(frozen=True)
class PurgeResult:
    tasks_deleted: int
    grants_removed: int
    affected_task_ids: Tuple[str, ...] = field(default_factory=tuple)
    user_deleted: bool = False
