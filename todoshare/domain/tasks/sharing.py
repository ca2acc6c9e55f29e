from __future__ import annotations

import logging
from typing import Any

from todoshare.domain.common.errors import (
    AlreadyShared,
    GrantNotFound,
    NotAuthorized,
    NotFoundError,
    SelfShareRejected,
    UnknownGrantee,
)
from todoshare.domain.tasks.access import require
from todoshare.domain.tasks.locks import TaskLocks
from todoshare.domain.tasks.models import Operation, ShareGrant, Task, UserRef
from todoshare.domain.tasks.ports import Clock, TaskStore, UserDirectory
from todoshare.domain.tasks.rules import parse_permission

logger = logging.getLogger(__name__)


class SharingManager:
    """
    Grants, permission changes and revocations on a task's share list.

    All three operations run under the task's lock, so for one task they are
    applied one at a time; the store applies each as a single atomic
    add/replace/remove and keeps is_shared in step with the grant list.
    """

    def __init__(self, store: TaskStore, users: UserDirectory, clock: Clock, locks: TaskLocks) -> None:
        self._store = store
        self._users = users
        self._clock = clock
        self._locks = locks

    async def share(self, task_id: str, owner_id: str, grantee: str, permission: Any = "view") -> Task:
        """grantee is an email address (anything with '@') or a user id."""
        async with self._locks.hold(task_id):
            task = await self._load(task_id)
            require(task, owner_id, Operation.MANAGE_SHARING)
            perm = parse_permission(permission)

            target = await self._resolve_grantee(grantee)
            if target.user_id == task.owner_id:
                raise SelfShareRejected("Cannot share a task with its owner.")
            if task.grant_for(target.user_id) is not None:
                raise AlreadyShared("Task is already shared with this user.")

            grant = ShareGrant(grantee_id=target.user_id, permission=perm, granted_at=self._clock.now())
            await self._store.add_grant(task_id, grant)
            logger.info("Task shared: task_id=%s grantee=%s permission=%s", task_id, target.user_id, perm.value)
            return await self._load(task_id)

    async def update_permission(self, task_id: str, owner_id: str, grantee_id: str, permission: Any) -> Task:
        async with self._locks.hold(task_id):
            task = await self._load(task_id)
            require(task, owner_id, Operation.MANAGE_SHARING)
            perm = parse_permission(permission)

            if task.grant_for(grantee_id) is None:
                raise GrantNotFound("User not found in shared list.")
            if not await self._store.replace_grant_permission(task_id, grantee_id, perm):
                raise GrantNotFound("User not found in shared list.")
            logger.info("Share permission updated: task_id=%s grantee=%s permission=%s", task_id, grantee_id, perm.value)
            return await self._load(task_id)

    async def revoke(self, task_id: str, caller_id: str, grantee_id: str) -> Task:
        """The owner may revoke any grant; a grantee may remove their own."""
        async with self._locks.hold(task_id):
            task = await self._load(task_id)
            if caller_id != task.owner_id and caller_id != grantee_id:
                raise NotAuthorized("Only the owner or the grantee can remove this share.")

            if task.grant_for(grantee_id) is None:
                raise GrantNotFound("User not found in shared list.")
            if not await self._store.remove_grant(task_id, grantee_id):
                raise GrantNotFound("User not found in shared list.")
            logger.info("Share revoked: task_id=%s grantee=%s by=%s", task_id, grantee_id, caller_id)
            return await self._load(task_id)

    async def _load(self, task_id: str) -> Task:
        task = await self._store.find_by_id(task_id)
        if task is None:
            raise NotFoundError("Task not found.")
        return task

    async def _resolve_grantee(self, grantee: str) -> UserRef:
        ref = (grantee or "").strip()
        if not ref:
            raise UnknownGrantee("No user given to share with.")
        if "@" in ref:
            user = await self._users.find_by_email(ref)
        else:
            user = await self._users.find_by_id(ref)
        if user is None:
            raise UnknownGrantee(f"User not found: {ref}")
        return user
