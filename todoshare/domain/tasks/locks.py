from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncIterator, Dict, Iterable


class TaskLocks:
    """
    One asyncio.Lock per task id, created on demand and dropped once nobody
    holds or waits for it. Mutations on different tasks never wait on each other.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @contextlib.asynccontextmanager
    async def hold(self, task_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(task_id)
        if lock is None:
            lock = self._locks[task_id] = asyncio.Lock()
        self._users[task_id] = self._users.get(task_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[task_id] -= 1
            if self._users[task_id] == 0:
                del self._users[task_id]
                del self._locks[task_id]

    @contextlib.asynccontextmanager
    async def hold_many(self, task_ids: Iterable[str]) -> AsyncIterator[None]:
        """Hold several task locks at once, always acquired in sorted id order."""
        async with contextlib.AsyncExitStack() as stack:
            for task_id in sorted(set(task_ids)):
                await stack.enter_async_context(self.hold(task_id))
            yield

    def held(self) -> int:
        """Number of task ids that currently have a lock in the registry."""
        return len(self._locks)
