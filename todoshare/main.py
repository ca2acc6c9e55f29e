from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from todoshare.config import Settings, load_settings
from todoshare.domain.common.time import to_iso
from todoshare.domain.reminders.ports import ReminderNotifier
from todoshare.domain.reminders.scanner import ReminderScanner
from todoshare.domain.reminders.service import ReminderService
from todoshare.domain.tasks.locks import TaskLocks
from todoshare.domain.tasks.models import UserRef
from todoshare.domain.tasks.ports import Clock, IdGenerator
from todoshare.domain.tasks.service import TaskService
from todoshare.domain.tasks.sharing import SharingManager
from todoshare.infra.clock.system_clock import SystemClock
from todoshare.infra.db.connection import Database
from todoshare.infra.db.repo.tasks_sqlite import SqliteTaskStore
from todoshare.infra.db.repo.users_sqlite import SqliteUserDirectory
from todoshare.infra.db.schema_version import apply_migrations
from todoshare.infra.ids.uuid_gen import UuidGenerator
from todoshare.infra.notify.log_notifier import LoggingNotifier
from todoshare.infra.scheduler.loop import PeriodicWorker, SchedulerConfig

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Everything the surrounding application layer talks to."""

    db: Database
    clock: Clock
    ids: IdGenerator
    store: SqliteTaskStore
    users: SqliteUserDirectory
    tasks: TaskService
    sharing: SharingManager
    reminders: ReminderService
    scanner: ReminderScanner
    worker: PeriodicWorker

    async def register_user(self, name: str, email: str) -> UserRef:
        return await self.users.add_user(self.ids.new_id(), name, email, self.clock.now())


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - [PID:%(process)d] - %(message)s",
    )


def resolve_db_path(db_path: Path) -> Path:
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


async def build_services(
    settings: Settings,
    *,
    clock: Optional[Clock] = None,
    ids: Optional[IdGenerator] = None,
    notifier: Optional[ReminderNotifier] = None,
) -> AppServices:
    """Composition root: one database, one lock registry, one reminder worker."""
    db = Database(str(resolve_db_path(settings.db_path)))
    clock = clock or SystemClock(settings.timezone)
    ids = ids or UuidGenerator()

    await apply_migrations(db, now_iso=to_iso(clock.now()))

    store = SqliteTaskStore(db)
    users = SqliteUserDirectory(db)
    locks = TaskLocks()

    scanner = ReminderScanner(
        store,
        clock,
        notifier or LoggingNotifier(),
        window=timedelta(minutes=settings.reminder_window_minutes),
    )
    worker = PeriodicWorker(
        "reminders",
        scanner.tick,
        SchedulerConfig(poll_seconds=settings.scan_interval_seconds),
    )

    return AppServices(
        db=db,
        clock=clock,
        ids=ids,
        store=store,
        users=users,
        tasks=TaskService(store, users, clock, ids, locks),
        sharing=SharingManager(store, users, clock, locks),
        reminders=ReminderService(store, clock, horizon=timedelta(hours=settings.upcoming_horizon_hours)),
        scanner=scanner,
        worker=worker,
    )


async def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)

    pid = os.getpid()
    logger.info("todoshare starting - PID: %s", pid)

    services = await build_services(settings)
    logger.info("Database ready at %s", services.db.path)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    services.worker.start()
    try:
        await stop.wait()
    finally:
        await services.worker.stop()
        logger.info("todoshare shutdown complete - PID: %s", pid)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
