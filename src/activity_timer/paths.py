"""Helpers for locating application directories."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "ActivityTimer"
APP_AUTHOR = "ActivityTimer"
DB_ENV_VAR = "ACTIVITY_TIMER_DB"


def get_data_dir() -> Path:
    """Return the base directory for persistent data."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    override = os.getenv(DB_ENV_VAR)
    if override:
        return Path(override)
    return get_data_dir() / "timer.sqlite3"
