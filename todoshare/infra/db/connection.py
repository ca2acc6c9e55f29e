# todoshare/infra/db/connection.py
from __future__ import annotations

import contextlib
from typing import Any, AsyncIterator, Optional, Sequence

import aiosqlite

from todoshare.domain.common.errors import StoreUnavailable


class Database:
    """
    Async SQLite helper:
    - opens a new connection per operation (simple + safe)
    - sets row_factory to aiosqlite.Row
    - enables foreign keys (WAL is switched on by the migrations)
    - transaction() runs several statements under one BEGIN IMMEDIATE
    - OperationalError (locked, unreadable, missing dir) -> StoreUnavailable
    """

    def __init__(self, path: str, timeout: float = 30.0) -> None:
        self._path = path
        self._timeout = timeout

    @property
    def path(self) -> str:
        return self._path

    @contextlib.asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(self._path, timeout=self._timeout) as db:
                db.row_factory = aiosqlite.Row
                await db.execute("PRAGMA foreign_keys=ON;")
                yield db
        except aiosqlite.OperationalError as e:
            raise StoreUnavailable(f"database unavailable: {e}") from e

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        async with self.connect() as db:
            await db.execute("BEGIN IMMEDIATE;")
            try:
                yield db
            except BaseException:
                await db.rollback()
                raise
            await db.commit()

    async def executescript(self, sql: str) -> None:
        async with self.connect() as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.executescript(sql)
            await db.commit()

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run one statement and commit; returns the affected row count."""
        async with self.connect() as db:
            cur = await db.execute(sql, params)
            await db.commit()
            return cur.rowcount

    async def fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[aiosqlite.Row]:
        async with self.connect() as db:
            cur = await db.execute(sql, params)
            return await cur.fetchone()

    async def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[aiosqlite.Row]:
        async with self.connect() as db:
            cur = await db.execute(sql, params)
            return list(await cur.fetchall())
