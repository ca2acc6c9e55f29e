from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from todoshare.constants import (
    DEFAULT_DB_PATH,
    DEFAULT_LOG_LEVEL,
    DEFAULT_TIMEZONE,
    REMINDER_SCAN_INTERVAL_SECONDS,
    REMINDER_WINDOW_MINUTES,
    UPCOMING_HORIZON_HOURS,
)


@dataclass(frozen=True)
class Settings:
    db_path: Path
    timezone: str
    scan_interval_seconds: float
    reminder_window_minutes: int
    upcoming_horizon_hours: int
    log_level: str


def _positive(name: str, default: float, cast=int):
    raw = os.getenv(name, "").strip()
    if not raw:
        return cast(default)
    try:
        value = cast(raw)
    except ValueError:
        raise RuntimeError(f"{name} invalid in .env: {raw!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise RuntimeError(f"{name} must be a positive number in .env: {raw!r}")
    return value


def load_settings(dotenv: bool = True) -> Settings:
    if dotenv:
        load_dotenv()

    tz = os.getenv("TZ", DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE
    db_raw = os.getenv("DB_PATH", DEFAULT_DB_PATH).strip() or DEFAULT_DB_PATH
    log_level = (os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL).strip() or DEFAULT_LOG_LEVEL).upper()

    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        raise RuntimeError(f"TZ invalid in .env: {tz!r}") from None
    if not isinstance(logging.getLevelName(log_level), int):
        raise RuntimeError(f"LOG_LEVEL invalid in .env: {log_level!r}")

    # db_path stays relative here; main.py resolves it
    return Settings(
        db_path=Path(db_raw),
        timezone=tz,
        scan_interval_seconds=_positive("REMINDER_SCAN_SECONDS", REMINDER_SCAN_INTERVAL_SECONDS, float),
        reminder_window_minutes=_positive("REMINDER_WINDOW_MINUTES", REMINDER_WINDOW_MINUTES),
        upcoming_horizon_hours=_positive("UPCOMING_HORIZON_HOURS", UPCOMING_HORIZON_HOURS),
        log_level=log_level,
    )
