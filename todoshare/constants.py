"""
Constants for task fields, sharing and reminders.
"""
from __future__ import annotations

# Reminder scanning
REMINDER_SCAN_INTERVAL_SECONDS = 60
REMINDER_WINDOW_MINUTES = 30
UPCOMING_HORIZON_HOURS = 24

# Task field limits
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
MAX_TAGS = 20
MAX_TAG_LENGTH = 40

# Task field defaults
DEFAULT_PRIORITY = "medium"
DEFAULT_CATEGORY = "general"

# Store batching (SQLite host parameter limit)
ID_BATCH_SIZE = 500

# Defaults for settings (.env)
DEFAULT_DB_PATH = "data/todoshare.db"
DEFAULT_TIMEZONE = "UTC"
DEFAULT_LOG_LEVEL = "INFO"
