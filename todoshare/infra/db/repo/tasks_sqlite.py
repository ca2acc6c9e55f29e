from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple

import aiosqlite

from todoshare.constants import ID_BATCH_SIZE
from todoshare.domain.common.errors import AlreadyShared, NotFoundError, ValidationError
from todoshare.domain.common.time import from_iso, opt_from_iso, to_utc_iso
from todoshare.domain.tasks.models import (
    Category,
    Permission,
    Priority,
    PurgeResult,
    ReminderKind,
    ShareGrant,
    Task,
    TaskQuery,
)
from todoshare.domain.tasks.ports import TaskStore
from todoshare.infra.db.connection import Database

logger = logging.getLogger(__name__)

# task field -> column; anything else is refused by replace_fields()
_COLUMNS = {
    "title": "title",
    "description": "description",
    "completed": "completed",
    "priority": "priority",
    "category": "category",
    "tags": "tags_json",
    "due_at": "due_at",
    "remind_at": "remind_at",
}

_RECOMPUTE_IS_SHARED = """
    UPDATE tasks
    SET is_shared = EXISTS (SELECT 1 FROM task_shares s WHERE s.task_id = tasks.task_id)
    WHERE task_id = ?;
"""


def _to_column(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in ("due_at", "remind_at"):
        return to_utc_iso(value)
    if name == "completed":
        return 1 if value else 0
    if name in ("priority", "category"):
        return value.value
    if name == "tags":
        return json.dumps(list(value), ensure_ascii=False)
    return value


class SqliteTaskStore(TaskStore):
    def __init__(self, db: Database) -> None:
        self._db = db

    # ---- reads ----

    async def find_by_id(self, task_id: str) -> Optional[Task]:
        tasks = await self._select("SELECT * FROM tasks WHERE task_id = ?;", [task_id])
        return tasks[0] if tasks else None

    async def find(self, query: TaskQuery) -> Sequence[Task]:
        where, params = self._where(query)
        return await self._select(f"SELECT * FROM tasks WHERE {where} ORDER BY created_at DESC, task_id ASC;", params)

    async def list_dismissals(self, user_id: str) -> Set[Tuple[str, ReminderKind]]:
        rows = await self._db.fetchall(
            "SELECT task_id, kind FROM reminder_dismissals WHERE user_id = ?;",
            (user_id,),
        )
        return {(r["task_id"], ReminderKind(r["kind"])) for r in rows}

    # ---- writes ----

    async def insert(self, task: Task) -> Task:
        """Insert a new task row. Grants are added afterwards through add_grant()."""
        await self._db.execute(
            """
            INSERT INTO tasks(
              task_id, owner_id, creator_id, title, description, completed,
              priority, category, tags_json, due_at, remind_at, is_shared,
              created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?);
            """,
            (
                task.task_id,
                task.owner_id,
                task.creator_id,
                task.title,
                task.description,
                1 if task.completed else 0,
                task.priority.value,
                task.category.value,
                json.dumps(list(task.tags), ensure_ascii=False),
                to_utc_iso(task.due_at) if task.due_at else None,
                to_utc_iso(task.remind_at) if task.remind_at else None,
                to_utc_iso(task.created_at),
                to_utc_iso(task.updated_at),
            ),
        )
        logger.debug("Task inserted task_id=%s owner=%s", task.task_id, task.owner_id)
        return replace(task, is_shared=False, shares=(), reminders_fired=frozenset())

    async def replace_fields(self, task_id: str, changes: Mapping[str, Any], updated_at: datetime) -> bool:
        unknown = set(changes) - set(_COLUMNS)
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        if not changes:
            return await self.find_by_id(task_id) is not None

        sets = [f"{_COLUMNS[name]} = ?" for name in changes]
        params: List[Any] = [_to_column(name, value) for name, value in changes.items()]
        sets.append("updated_at = ?")
        params.extend([to_utc_iso(updated_at), task_id])

        n = await self._db.execute(f"UPDATE tasks SET {', '.join(sets)} WHERE task_id = ?;", params)
        return n == 1

    async def toggle_completed(self, task_id: str, updated_at: datetime) -> Optional[bool]:
        async with self._db.transaction() as db:
            cur = await db.execute(
                "UPDATE tasks SET completed = 1 - completed, updated_at = ? WHERE task_id = ?;",
                (to_utc_iso(updated_at), task_id),
            )
            if cur.rowcount != 1:
                return None
            cur = await db.execute("SELECT completed FROM tasks WHERE task_id = ?;", (task_id,))
            row = await cur.fetchone()
        return bool(row["completed"])

    async def delete(self, task_id: str) -> bool:
        n = await self._db.execute("DELETE FROM tasks WHERE task_id = ?;", (task_id,))
        return n == 1

    async def add_grant(self, task_id: str, grant: ShareGrant) -> None:
        async with self._db.transaction() as db:
            # BEGIN IMMEDIATE holds the write lock, so the task cannot vanish
            # between this check and the insert
            cur = await db.execute("SELECT 1 FROM tasks WHERE task_id = ?;", (task_id,))
            if await cur.fetchone() is None:
                raise NotFoundError("Task not found.")
            try:
                await db.execute(
                    """
                    INSERT INTO task_shares(task_id, grantee_id, permission, granted_at)
                    VALUES (?, ?, ?, ?);
                    """,
                    (task_id, grant.grantee_id, grant.permission.value, to_utc_iso(grant.granted_at)),
                )
            except aiosqlite.IntegrityError as e:
                if "UNIQUE constraint failed" not in str(e):
                    raise
                raise AlreadyShared("Task is already shared with this user.") from e
            await db.execute(_RECOMPUTE_IS_SHARED, (task_id,))

    async def remove_grant(self, task_id: str, grantee_id: str) -> bool:
        async with self._db.transaction() as db:
            cur = await db.execute(
                "DELETE FROM task_shares WHERE task_id = ? AND grantee_id = ?;",
                (task_id, grantee_id),
            )
            removed = cur.rowcount == 1
            await db.execute(_RECOMPUTE_IS_SHARED, (task_id,))
        return removed

    async def replace_grant_permission(self, task_id: str, grantee_id: str, permission: Permission) -> bool:
        n = await self._db.execute(
            "UPDATE task_shares SET permission = ? WHERE task_id = ? AND grantee_id = ?;",
            (permission.value, task_id, grantee_id),
        )
        return n == 1

    async def add_reminder_fired(self, task_id: str, kind: ReminderKind, fired_at: datetime) -> bool:
        # INSERT OR IGNORE on the (task_id, kind) key is the atomic add-to-set;
        # the EXISTS guard keeps a concurrently deleted task from failing the FK.
        n = await self._db.execute(
            """
            INSERT OR IGNORE INTO task_reminders_fired(task_id, kind, fired_at)
            SELECT ?, ?, ? WHERE EXISTS (SELECT 1 FROM tasks WHERE task_id = ?);
            """,
            (task_id, kind.value, to_utc_iso(fired_at), task_id),
        )
        return n == 1

    async def add_dismissal(self, task_id: str, user_id: str, kind: ReminderKind, dismissed_at: datetime) -> bool:
        n = await self._db.execute(
            """
            INSERT OR IGNORE INTO reminder_dismissals(task_id, user_id, kind, dismissed_at)
            VALUES (?, ?, ?, ?);
            """,
            (task_id, user_id, kind.value, to_utc_iso(dismissed_at)),
        )
        return n == 1

    async def purge_user(self, user_id: str) -> PurgeResult:
        """Revoke the user's grants, delete their tasks and the user row, all or nothing."""
        async with self._db.transaction() as db:
            cur = await db.execute("SELECT task_id FROM task_shares WHERE grantee_id = ?;", (user_id,))
            affected = tuple(r["task_id"] for r in await cur.fetchall())

            cur = await db.execute("DELETE FROM task_shares WHERE grantee_id = ?;", (user_id,))
            grants_removed = cur.rowcount
            for task_id in affected:
                await db.execute(_RECOMPUTE_IS_SHARED, (task_id,))

            await db.execute("DELETE FROM reminder_dismissals WHERE user_id = ?;", (user_id,))
            cur = await db.execute("DELETE FROM tasks WHERE owner_id = ?;", (user_id,))
            tasks_deleted = cur.rowcount

            cur = await db.execute("DELETE FROM users WHERE user_id = ?;", (user_id,))
            user_deleted = cur.rowcount == 1
        return PurgeResult(
            tasks_deleted=tasks_deleted,
            grants_removed=grants_removed,
            affected_task_ids=affected,
            user_deleted=user_deleted,
        )

    # ---- helpers ----

    @staticmethod
    def _where(query: TaskQuery) -> Tuple[str, List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []

        if query.owner_id is not None:
            clauses.append("owner_id = ?")
            params.append(query.owner_id)
        if query.visible_to is not None:
            clauses.append(
                "(owner_id = ? OR EXISTS (SELECT 1 FROM task_shares s WHERE s.task_id = tasks.task_id AND s.grantee_id = ?))"
            )
            params.extend([query.visible_to, query.visible_to])
        if query.shared_with is not None:
            clauses.append("EXISTS (SELECT 1 FROM task_shares s WHERE s.task_id = tasks.task_id AND s.grantee_id = ?)")
            params.append(query.shared_with)
        if query.shared_by is not None:
            clauses.append("owner_id = ? AND is_shared = 1")
            params.append(query.shared_by)
        if query.completed is not None:
            clauses.append("completed = ?")
            params.append(1 if query.completed else 0)
        if query.category is not None:
            clauses.append("category = ?")
            params.append(query.category.value)
        if query.priority is not None:
            clauses.append("priority = ?")
            params.append(query.priority.value)
        if query.tag is not None:
            clauses.append("EXISTS (SELECT 1 FROM json_each(tasks.tags_json) WHERE json_each.value = ?)")
            params.append(query.tag)
        if query.window_start is not None or query.window_end is not None:
            lo = to_utc_iso(query.window_start) if query.window_start else ""
            hi = to_utc_iso(query.window_end) if query.window_end else "9999"
            clauses.append("((due_at >= ? AND due_at <= ?) OR (remind_at >= ? AND remind_at <= ?))")
            params.extend([lo, hi, lo, hi])
        if query.due_before is not None:
            clauses.append("due_at IS NOT NULL AND due_at < ?")
            params.append(to_utc_iso(query.due_before))

        return (" AND ".join(clauses) or "1 = 1"), params

    async def _select(self, sql: str, params: List[Any]) -> List[Task]:
        # task rows, their grants and their ledger are read on one connection
        async with self._db.connect() as db:
            cur = await db.execute(sql, params)
            rows = list(await cur.fetchall())
            if not rows:
                return []
            return await self._hydrate(db, rows)

    async def _hydrate(self, db: aiosqlite.Connection, rows: List[aiosqlite.Row]) -> List[Task]:
        ids = [r["task_id"] for r in rows]
        shares: Dict[str, List[ShareGrant]] = {}
        fired: Dict[str, Set[ReminderKind]] = {}

        for start in range(0, len(ids), ID_BATCH_SIZE):
            chunk = ids[start:start + ID_BATCH_SIZE]
            marks = ",".join("?" for _ in chunk)
            cur = await db.execute(
                f"SELECT * FROM task_shares WHERE task_id IN ({marks}) ORDER BY granted_at ASC, rowid ASC;",
                chunk,
            )
            for r in await cur.fetchall():
                shares.setdefault(r["task_id"], []).append(
                    ShareGrant(
                        grantee_id=r["grantee_id"],
                        permission=Permission(r["permission"]),
                        granted_at=from_iso(r["granted_at"]),
                    )
                )
            cur = await db.execute(
                f"SELECT task_id, kind FROM task_reminders_fired WHERE task_id IN ({marks});",
                chunk,
            )
            for r in await cur.fetchall():
                fired.setdefault(r["task_id"], set()).add(ReminderKind(r["kind"]))

        return [self._row_to_task(r, shares.get(r["task_id"], []), fired.get(r["task_id"], set())) for r in rows]

    def _row_to_task(self, row: aiosqlite.Row, shares: List[ShareGrant], fired: Set[ReminderKind]) -> Task:
        tags_raw = row["tags_json"]
        tags = json.loads(tags_raw) if tags_raw else []
        return Task(
            task_id=row["task_id"],
            owner_id=row["owner_id"],
            creator_id=row["creator_id"],
            title=row["title"],
            description=row["description"] or "",
            completed=bool(row["completed"]),
            priority=Priority(row["priority"]),
            category=Category(row["category"]),
            tags=tuple(tags),
            due_at=opt_from_iso(row["due_at"]),
            remind_at=opt_from_iso(row["remind_at"]),
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
            is_shared=bool(row["is_shared"]),
            shares=tuple(shares),
            reminders_fired=frozenset(fired),
        )
