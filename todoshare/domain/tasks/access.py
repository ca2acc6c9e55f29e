from __future__ import annotations

from typing import Dict, FrozenSet

from todoshare.domain.common.errors import NotAuthorized
from todoshare.domain.tasks.models import AccessLevel, Operation, Permission, Task


REQUIRED_LEVELS: Dict[Operation, FrozenSet[AccessLevel]] = {
    Operation.READ: frozenset({AccessLevel.OWNER, AccessLevel.EDITOR, AccessLevel.VIEWER}),
    Operation.EDIT: frozenset({AccessLevel.OWNER, AccessLevel.EDITOR}),
    Operation.DELETE: frozenset({AccessLevel.OWNER}),
    Operation.MANAGE_SHARING: frozenset({AccessLevel.OWNER}),
}


def evaluate(task: Task, user_id: str) -> AccessLevel:
    """
    Permission level of user_id on task. Pure; callers re-evaluate on every
    request because grants change between calls.
    """
    if user_id == task.owner_id:
        return AccessLevel.OWNER
    grant = task.grant_for(user_id)
    if grant is None:
        return AccessLevel.NO_ACCESS
    if grant.permission == Permission.EDIT:
        return AccessLevel.EDITOR
    return AccessLevel.VIEWER


def allows(task: Task, user_id: str, operation: Operation) -> bool:
    return evaluate(task, user_id) in REQUIRED_LEVELS[operation]


def require(task: Task, user_id: str, operation: Operation) -> AccessLevel:
    level = evaluate(task, user_id)
    if level not in REQUIRED_LEVELS[operation]:
        raise NotAuthorized(f"Not authorized to {operation.value.replace('_', ' ')} this task.")
    return level
