# todoshare/infra/scheduler/loop.py
from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from todoshare.constants import REMINDER_SCAN_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


TickFn = Callable[[], Awaitable[None]]


@dataclass
class SchedulerConfig:
    poll_seconds: float = REMINDER_SCAN_INTERVAL_SECONDS


class PeriodicWorker:
    """
    Runs tick() every poll_seconds in one background asyncio task.

    - ticks never overlap: the next wait starts after the previous tick returns
    - a failing tick is logged and the loop carries on
    - stop() wakes the wait and awaits the loop
    """

    def __init__(self, name: str, tick: TickFn, cfg: Optional[SchedulerConfig] = None) -> None:
        self._name = name
        self._tick_fn = tick
        self._cfg = cfg or SchedulerConfig()
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            raise RuntimeError(f"{self._name} worker already running")
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self.run_forever(), name=f"{self._name}-worker")
        logger.info("%s worker started (every %ss)", self._name, self._cfg.poll_seconds)
        return self._task

    async def stop(self) -> None:
        self._stop.set()
        task, self._task = self._task, None
        if task is None:
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=max(1.0, self._cfg.poll_seconds))
        except asyncio.TimeoutError:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("%s worker stopped after %s tick(s)", self._name, self.ticks)

    async def run_forever(self) -> None:
        while not self._stop.is_set():
            try:
                await self._tick_fn()
            except Exception as e:
                # never crash the host process because of a background tick
                logger.error("%s tick error: %s", self._name, e, exc_info=True)
            self.ticks += 1
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=self._cfg.poll_seconds)
