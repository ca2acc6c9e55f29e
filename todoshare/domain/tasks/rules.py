from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Type, TypeVar

from todoshare.constants import (
    DEFAULT_CATEGORY,
    DEFAULT_PRIORITY,
    MAX_DESCRIPTION_LENGTH,
    MAX_TAG_LENGTH,
    MAX_TAGS,
    MAX_TITLE_LENGTH,
)
from todoshare.domain.common.errors import ValidationError
from todoshare.domain.tasks.models import (
    Category,
    Permission,
    Priority,
    ReminderKind,
    TaskDraft,
    TaskPatch,
)

E = TypeVar("E", bound=Enum)


def _parse_enum(enum_cls: Type[E], raw: Any, label: str) -> E:
    if isinstance(raw, enum_cls):
        return raw
    if isinstance(raw, str):
        try:
            return enum_cls(raw.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValidationError(f"Invalid {label} {raw!r} (allowed: {allowed}).")


def parse_permission(raw: Any) -> Permission:
    return _parse_enum(Permission, raw, "permission")


def parse_priority(raw: Any) -> Priority:
    return _parse_enum(Priority, DEFAULT_PRIORITY if raw is None else raw, "priority")


def parse_category(raw: Any) -> Category:
    return _parse_enum(Category, DEFAULT_CATEGORY if raw is None else raw, "category")


def parse_reminder_kind(raw: Any) -> ReminderKind:
    return _parse_enum(ReminderKind, raw, "reminder kind")


def validate_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Please provide a title for the task.")
    title = title.strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title is too long (max {MAX_TITLE_LENGTH} chars).")
    return title


def validate_description(description: Any) -> str:
    if description is None:
        return ""
    if not isinstance(description, str):
        raise ValidationError("Description must be text.")
    description = description.strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description is too long (max {MAX_DESCRIPTION_LENGTH} chars).")
    return description


def normalize_tags(tags: Optional[Iterable[Any]]) -> Tuple[str, ...]:
    if tags is None:
        return ()
    if isinstance(tags, str):
        raise ValidationError("Tags must be a list of strings.")
    out: list[str] = []
    for raw in tags:
        if not isinstance(raw, str):
            raise ValidationError("Tags must be a list of strings.")
        tag = raw.strip()
        if not tag or tag in out:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValidationError(f"Tag {tag[:20]!r}... is too long (max {MAX_TAG_LENGTH} chars).")
        out.append(tag)
    if len(out) > MAX_TAGS:
        raise ValidationError(f"Too many tags (max {MAX_TAGS}).")
    return tuple(out)


def validate_moment(value: Any, label: str) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise ValidationError(f"{label} must be a datetime.")
    if value.tzinfo is None:
        raise ValidationError(f"{label} must be timezone-aware.")
    return value


def normalize_draft(draft: TaskDraft) -> TaskDraft:
    return TaskDraft(
        title=validate_title(draft.title),
        description=validate_description(draft.description),
        priority=parse_priority(draft.priority),
        category=parse_category(draft.category),
        tags=normalize_tags(draft.tags),
        due_at=validate_moment(draft.due_at, "Due date"),
        remind_at=validate_moment(draft.remind_at, "Reminder"),
    )


def normalize_patch(patch: TaskPatch) -> Dict[str, Any]:
    """Validated column changes; raises ValidationError on the first bad field."""
    changes = patch.changes()
    if not changes:
        raise ValidationError("Nothing to update.")

    out: Dict[str, Any] = {}
    for name, value in changes.items():
        if name == "title":
            out[name] = validate_title(value)
        elif name == "description":
            out[name] = validate_description(value)
        elif name == "priority":
            out[name] = _parse_enum(Priority, value, "priority")
        elif name == "category":
            out[name] = _parse_enum(Category, value, "category")
        elif name == "tags":
            out[name] = normalize_tags(value)
        elif name == "due_at":
            out[name] = validate_moment(value, "Due date")
        elif name == "remind_at":
            out[name] = validate_moment(value, "Reminder")
        elif name == "completed":
            if not isinstance(value, bool):
                raise ValidationError("Completed must be true or false.")
            out[name] = value
    return out
