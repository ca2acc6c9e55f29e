from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from todoshare.domain.common.errors import NotFoundError
from todoshare.domain.tasks.access import require
from todoshare.domain.tasks.locks import TaskLocks
from todoshare.domain.tasks.models import (
    Operation,
    PurgeResult,
    Task,
    TaskDraft,
    TaskPatch,
    TaskQuery,
)
from todoshare.domain.tasks.ports import Clock, IdGenerator, TaskStore, UserDirectory
from todoshare.domain.tasks.rules import normalize_draft, normalize_patch, parse_category, parse_priority

logger = logging.getLogger(__name__)


class TaskService:
    """
    Task CRUD gated by the access evaluator. No sqlite here.
    """

    def __init__(
        self,
        store: TaskStore,
        users: UserDirectory,
        clock: Clock,
        ids: IdGenerator,
        locks: TaskLocks,
    ) -> None:
        self._store = store
        self._users = users
        self._clock = clock
        self._ids = ids
        self._locks = locks

    async def create_task(self, caller_id: str, draft: TaskDraft, owner_id: Optional[str] = None) -> Task:
        """
        Create a task owned by caller_id, or by owner_id when someone creates
        on another user's behalf (creator stays the caller).
        """
        clean = normalize_draft(draft)
        owner = owner_id or caller_id
        if owner != caller_id and await self._users.find_by_id(owner) is None:
            raise NotFoundError(f"Owner not found: {owner}")

        now = self._clock.now()
        task = Task(
            task_id=self._ids.new_id(),
            owner_id=owner,
            creator_id=caller_id,
            title=clean.title,
            description=clean.description,
            completed=False,
            priority=clean.priority,
            category=clean.category,
            tags=clean.tags,
            due_at=clean.due_at,
            remind_at=clean.remind_at,
            created_at=now,
            updated_at=now,
        )
        created = await self._store.insert(task)
        logger.info("Task created: task_id=%s owner=%s creator=%s", created.task_id, owner, caller_id)
        return created

    async def get_task(self, task_id: str, user_id: str) -> Task:
        task = await self._load(task_id)
        require(task, user_id, Operation.READ)
        return task

    async def update_task(self, task_id: str, user_id: str, patch: TaskPatch) -> Task:
        # due_at/remind_at edits leave the reminder ledger as it is: a kind
        # that already fired does not fire again for the new time.
        changes = normalize_patch(patch)
        task = await self._load(task_id)
        require(task, user_id, Operation.EDIT)

        if not await self._store.replace_fields(task_id, changes, self._clock.now()):
            raise NotFoundError("Task not found.")
        logger.info("Task updated: task_id=%s by=%s fields=%s", task_id, user_id, sorted(changes))
        return await self._load(task_id)

    async def set_completed(self, task_id: str, user_id: str, completed: bool) -> Task:
        return await self.update_task(task_id, user_id, TaskPatch(completed=completed))

    async def toggle_completed(self, task_id: str, user_id: str) -> Task:
        task = await self._load(task_id)
        require(task, user_id, Operation.EDIT)

        if await self._store.toggle_completed(task_id, self._clock.now()) is None:
            raise NotFoundError("Task not found.")
        return await self._load(task_id)

    async def delete_task(self, task_id: str, user_id: str) -> None:
        async with self._locks.hold(task_id):
            task = await self._load(task_id)
            require(task, user_id, Operation.DELETE)
            await self._store.delete(task_id)
        logger.info("Task deleted: task_id=%s by=%s", task_id, user_id)

    async def list_tasks(
        self,
        user_id: str,
        *,
        category: Any = None,
        priority: Any = None,
        completed: Optional[bool] = None,
        tag: Optional[str] = None,
    ) -> Sequence[Task]:
        """The user's own tasks, newest first. Filters of None (or 'all') are ignored."""
        query = TaskQuery(
            owner_id=user_id,
            completed=completed,
            category=None if category in (None, "all") else parse_category(category),
            priority=None if priority in (None, "all") else parse_priority(priority),
            tag=(tag or "").strip() or None,
        )
        return await self._store.find(query)

    async def tasks_owned_by(self, user_id: str) -> Sequence[Task]:
        return await self._store.find(TaskQuery(owner_id=user_id))

    async def tasks_shared_with(self, user_id: str) -> Sequence[Task]:
        return await self._store.find(TaskQuery(shared_with=user_id))

    async def tasks_shared_by_owner(self, user_id: str) -> Sequence[Task]:
        return await self._store.find(TaskQuery(shared_by=user_id))

    async def remove_account(self, user_id: str) -> PurgeResult:
        """
        Account removal: the user's own tasks go with them (grants, ledger and
        dismissals cascade), and their grants on other users' tasks are revoked.
        The store does all of it, user row included, in one transaction.
        """
        touched = [t.task_id for t in await self._store.find(TaskQuery(visible_to=user_id))]
        async with self._locks.hold_many(touched):
            result = await self._store.purge_user(user_id)
        logger.info(
            "Account removed: user=%s tasks_deleted=%s grants_removed=%s",
            user_id,
            result.tasks_deleted,
            result.grants_removed,
        )
        return result

    async def _load(self, task_id: str) -> Task:
        task = await self._store.find_by_id(task_id)
        if task is None:
            raise NotFoundError("Task not found.")
        return task
