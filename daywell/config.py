"""
Configuration for the Day Spent Well tracker.

Values that vary by installation can be overridden through environment
variables.  Domain constants (the length of a day, tier thresholds) are
fixed here so every component reads them from one place.
"""
from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "DAYWELL_HOME"
APP_ENV_DB = "DAYWELL_DB"


def app_home() -> Path:
    """User-writable home directory.  Override with ``DAYWELL_HOME``."""
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".daywell").resolve()


def db_path() -> Path:
    """
    Location of the SQLite database.

    Resolution order:
    1. ``DAYWELL_DB`` (explicit override)
    2. ``<app home>/daywell.db``
    """
    if os.environ.get(APP_ENV_DB):
        return Path(os.environ[APP_ENV_DB]).expanduser().resolve()
    return app_home() / "daywell.db"


LOG_LEVEL: str = os.environ.get("DAYWELL_LOG_LEVEL", "WARNING").upper()
"""Root log level applied by the command-line entry point."""

TICK_SECONDS: float = float(os.environ.get("DAYWELL_TICK_SECONDS", "1.0"))
"""Cadence of the live timer recomputation."""

HISTORY_LIMIT: int = int(os.environ.get("DAYWELL_HISTORY_LIMIT", "50"))
"""Maximum number of plan ids kept in the recency list."""

DEFAULT_USER: str | None = os.environ.get("DAYWELL_USER") or None
"""Email of the identity to sign in as when none is stored."""

# --- Domain constants ---
DAY_MINUTES = 1440

CONSISTENCY_HIGH = 0.8
CONSISTENCY_MEDIUM = 0.4

BALANCE_STABLE = 0.15
BALANCE_SLIGHTLY_SKEWED = 0.40

# Minutes of tolerance before a category is reported as over or under plan.
STATUS_TOLERANCE_MINUTES = 1.0

ROLLING_WINDOW_DAYS = 7
