from __future__ import annotations

from pathlib import Path

import pytest

from todoshare.config import load_settings

KEYS = ("DB_PATH", "TZ", "REMINDER_SCAN_SECONDS", "REMINDER_WINDOW_MINUTES", "UPCOMING_HORIZON_HOURS", "LOG_LEVEL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    s = load_settings(dotenv=False)
    assert s.db_path == Path("data/todoshare.db")
    assert s.timezone == "UTC"
    assert s.scan_interval_seconds == 60.0
    assert s.reminder_window_minutes == 30
    assert s.upcoming_horizon_hours == 24
    assert s.log_level == "INFO"


def test_values_from_env(monkeypatch):
    monkeypatch.setenv("DB_PATH", "/tmp/other.db")
    monkeypatch.setenv("TZ", "Europe/Helsinki")
    monkeypatch.setenv("REMINDER_SCAN_SECONDS", "2.5")
    monkeypatch.setenv("REMINDER_WINDOW_MINUTES", "15")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    s = load_settings(dotenv=False)
    assert s.db_path == Path("/tmp/other.db")
    assert s.timezone == "Europe/Helsinki"
    assert s.scan_interval_seconds == 2.5
    assert s.reminder_window_minutes == 15
    assert s.log_level == "DEBUG"


@pytest.mark.parametrize(
    "key, value",
    [
        ("TZ", "Mars/Olympus_Mons"),
        ("LOG_LEVEL", "chatty"),
        ("REMINDER_WINDOW_MINUTES", "0"),
        ("REMINDER_WINDOW_MINUTES", "half an hour"),
        ("REMINDER_SCAN_SECONDS", "-5"),
        ("UPCOMING_HORIZON_HOURS", "1.5"),
        ("REMINDER_SCAN_SECONDS", "nan"),
        ("REMINDER_SCAN_SECONDS", "inf"),
    ],
)
def test_invalid_values_raise(monkeypatch, key, value):
    monkeypatch.setenv(key, value)
    with pytest.raises(RuntimeError, match=key):
        load_settings(dotenv=False)
