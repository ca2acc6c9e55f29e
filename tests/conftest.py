# tests/conftest.py

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from todoshare.config import Settings
from todoshare.main import AppServices, build_services

from fakes import FixedClock, RecordingNotifier


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings built directly, so .env files never leak into tests."""
    return Settings(
        db_path=tmp_path / "todoshare.db",
        timezone="UTC",
        scan_interval_seconds=60,
        reminder_window_minutes=30,
        upcoming_horizon_hours=24,
        log_level="INFO",
    )


@pytest.fixture()
def app(settings: Settings, clock: FixedClock, notifier: RecordingNotifier) -> AppServices:
    """
    Fully wired services on a fresh, migrated SQLite database.

    NOTE: the store is real SQLite on purpose; its atomic operations are part
    of what these tests check.
    """
    return asyncio.run(build_services(settings, clock=clock, notifier=notifier))
