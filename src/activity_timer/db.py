"""SQLite database layer for timer records and their companion entities."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from .models import (
    Activity,
    CategoryKind,
    CategoryRef,
    CustomCategory,
    Mood,
    PauseInterval,
    ReminderConfig,
    TimerRecord,
    UserAchievement,
)

logger = logging.getLogger(__name__)

DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS timer_records (
            id TEXT PRIMARY KEY,
            activity_name TEXT NOT NULL,
            start_time TEXT NOT NULL,
            end_time TEXT,
            total_duration REAL NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            category_kind TEXT,
            category_name TEXT,
            note TEXT,
            mood TEXT,
            reminder_interval REAL,
            reminder_next_trigger TEXT,
            reminder_enabled INTEGER
        );

        CREATE INDEX IF NOT EXISTS idx_records_start_time
            ON timer_records(start_time);
        CREATE INDEX IF NOT EXISTS idx_records_end_time
            ON timer_records(end_time);

        CREATE TABLE IF NOT EXISTS pause_intervals (
            id INTEGER PRIMARY KEY,
            record_id TEXT NOT NULL
                REFERENCES timer_records(id) ON DELETE CASCADE,
            position INTEGER NOT NULL,
            pause_time TEXT NOT NULL,
            resume_time TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_pauses_record
            ON pause_intervals(record_id, position);

        CREATE TABLE IF NOT EXISTS activities (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            color TEXT NOT NULL,
            icon TEXT
        );

        CREATE TABLE IF NOT EXISTS achievements (
            id TEXT PRIMARY KEY,
            key TEXT NOT NULL UNIQUE,
            title TEXT NOT NULL,
            description TEXT NOT NULL,
            icon TEXT NOT NULL,
            is_unlocked INTEGER NOT NULL DEFAULT 0,
            unlock_date TEXT,
            progress REAL NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS custom_categories (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            icon TEXT NOT NULL,
            color TEXT NOT NULL
        );
        """
    )


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.strftime(DATETIME_FMT) if value is not None else None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp; unreadable values are treated as absent."""
    if not value:
        return None
    try:
        return datetime.strptime(value, DATETIME_FMT)
    except ValueError:
        logger.warning("Ignoring malformed timestamp %r", value)
        return None


# Timer records -----------------------------------------------------------


def upsert_record(conn: sqlite3.Connection, record: TimerRecord) -> None:
    reminder = record.reminder
    conn.execute(
        """
        INSERT INTO timer_records (
            id,
            activity_name,
            start_time,
            end_time,
            total_duration,
            is_active,
            category_kind,
            category_name,
            note,
            mood,
            reminder_interval,
            reminder_next_trigger,
            reminder_enabled
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            activity_name = excluded.activity_name,
            start_time = excluded.start_time,
            end_time = excluded.end_time,
            total_duration = excluded.total_duration,
            is_active = excluded.is_active,
            category_kind = excluded.category_kind,
            category_name = excluded.category_name,
            note = excluded.note,
            mood = excluded.mood,
            reminder_interval = excluded.reminder_interval,
            reminder_next_trigger = excluded.reminder_next_trigger,
            reminder_enabled = excluded.reminder_enabled
        """,
        (
            record.id,
            record.activity_name,
            format_timestamp(record.start_time),
            format_timestamp(record.end_time),
            float(record.total_duration),
            1 if record.is_active else 0,
            record.category.kind.value if record.category else None,
            record.category.name if record.category else None,
            record.note,
            record.mood.value if record.mood else None,
            reminder.interval_seconds if reminder else None,
            format_timestamp(reminder.next_trigger_time) if reminder else None,
            (1 if reminder.enabled else 0) if reminder else None,
        ),
    )
    conn.execute("DELETE FROM pause_intervals WHERE record_id = ?", (record.id,))
    conn.executemany(
        """
        INSERT INTO pause_intervals (record_id, position, pause_time, resume_time)
        VALUES (?, ?, ?, ?)
        """,
        [
            (
                record.id,
                position,
                format_timestamp(interval.pause_time),
                format_timestamp(interval.resume_time),
            )
            for position, interval in enumerate(record.pause_intervals)
        ],
    )


def fetch_records(conn: sqlite3.Connection) -> list[TimerRecord]:
    """Fetch every timer record ordered by start time."""
    rows = conn.execute(
        """
        SELECT *
        FROM timer_records
        ORDER BY start_time, rowid;
        """
    ).fetchall()
    pauses = _fetch_pause_intervals(conn)
    records = []
    for row in rows:
        record = _row_to_record(row, pauses.get(row["id"], []))
        if record is not None:
            records.append(record)
    return records


def delete_record(conn: sqlite3.Connection, record_id: str) -> None:
    cur = conn.execute("DELETE FROM timer_records WHERE id = ?", (record_id,))
    if cur.rowcount == 0:
        raise ValueError(f"No record found for id={record_id}")


def _fetch_pause_intervals(conn: sqlite3.Connection) -> dict[str, list[PauseInterval]]:
    rows = conn.execute(
        """
        SELECT record_id, pause_time, resume_time
        FROM pause_intervals
        ORDER BY record_id, position;
        """
    )
    result: dict[str, list[PauseInterval]] = {}
    for row in rows:
        pause_time = parse_timestamp(row["pause_time"])
        if pause_time is None:
            continue
        result.setdefault(row["record_id"], []).append(
            PauseInterval(
                pause_time=pause_time,
                resume_time=parse_timestamp(row["resume_time"]),
            )
        )
    return result


def _row_to_record(
    row: sqlite3.Row, pauses: list[PauseInterval]
) -> Optional[TimerRecord]:
    start_time = parse_timestamp(row["start_time"])
    if start_time is None:
        logger.warning("Skipping record %s without a readable start time", row["id"])
        return None
    return TimerRecord(
        id=row["id"],
        activity_name=row["activity_name"],
        start_time=start_time,
        end_time=parse_timestamp(row["end_time"]),
        total_duration=float(row["total_duration"] or 0.0),
        is_active=bool(row["is_active"]),
        pause_intervals=pauses,
        category=_decode_category(row["category_kind"], row["category_name"]),
        note=row["note"],
        mood=Mood.parse(row["mood"]),
        reminder=_decode_reminder(
            row["reminder_interval"],
            row["reminder_next_trigger"],
            row["reminder_enabled"],
        ),
    )


def _decode_category(kind: Optional[str], name: Optional[str]) -> Optional[CategoryRef]:
    if not kind or not name:
        return None
    try:
        return CategoryRef(CategoryKind(kind), name)
    except ValueError:
        logger.warning("Ignoring malformed category %r/%r", kind, name)
        return None


def _decode_reminder(
    interval: Optional[float], next_trigger: Optional[str], enabled: Optional[int]
) -> Optional[ReminderConfig]:
    if interval is None:
        return None
    try:
        interval_seconds = float(interval)
    except (TypeError, ValueError):
        return None
    if interval_seconds <= 0:
        return None
    return ReminderConfig(
        interval_seconds=interval_seconds,
        next_trigger_time=parse_timestamp(next_trigger),
        enabled=bool(enabled),
    )


# Activities --------------------------------------------------------------


def upsert_activity(conn: sqlite3.Connection, activity: Activity) -> None:
    updated = conn.execute(
        "UPDATE activities SET name = ?, color = ?, icon = ? WHERE id = ?",
        (activity.name, activity.color, activity.icon, activity.id),
    )
    if updated.rowcount:
        return
    # Another process may already have recorded the same name.
    conn.execute(
        """
        INSERT INTO activities (id, name, color, icon)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(name) DO NOTHING
        """,
        (activity.id, activity.name, activity.color, activity.icon),
    )


def fetch_activities(conn: sqlite3.Connection) -> list[Activity]:
    return [
        Activity(id=row["id"], name=row["name"], color=row["color"], icon=row["icon"])
        for row in conn.execute(
            "SELECT id, name, color, icon FROM activities ORDER BY rowid"
        )
    ]


def delete_activity(conn: sqlite3.Connection, activity_id: str) -> None:
    conn.execute("DELETE FROM activities WHERE id = ?", (activity_id,))


# Achievements ------------------------------------------------------------


def upsert_achievement(conn: sqlite3.Connection, achievement: UserAchievement) -> None:
    conn.execute(
        """
        INSERT INTO achievements (
            id, key, title, description, icon, is_unlocked, unlock_date, progress
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            title = excluded.title,
            description = excluded.description,
            icon = excluded.icon,
            is_unlocked = excluded.is_unlocked,
            unlock_date = excluded.unlock_date,
            progress = excluded.progress
        """,
        (
            achievement.id,
            achievement.key,
            achievement.title,
            achievement.description,
            achievement.icon,
            1 if achievement.is_unlocked else 0,
            format_timestamp(achievement.unlock_date),
            float(achievement.progress),
        ),
    )


def fetch_achievements(conn: sqlite3.Connection) -> list[UserAchievement]:
    return [
        UserAchievement(
            id=row["id"],
            key=row["key"],
            title=row["title"],
            description=row["description"],
            icon=row["icon"],
            is_unlocked=bool(row["is_unlocked"]),
            unlock_date=parse_timestamp(row["unlock_date"]),
            progress=float(row["progress"] or 0.0),
        )
        for row in conn.execute("SELECT * FROM achievements ORDER BY rowid")
    ]


def delete_achievement(conn: sqlite3.Connection, achievement_id: str) -> None:
    conn.execute("DELETE FROM achievements WHERE id = ?", (achievement_id,))


# Custom categories -------------------------------------------------------


def upsert_custom_category(conn: sqlite3.Connection, category: CustomCategory) -> None:
    conn.execute(
        """
        INSERT INTO custom_categories (id, name, icon, color)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            icon = excluded.icon,
            color = excluded.color
        """,
        (category.id, category.name, category.icon, category.color),
    )


def fetch_custom_categories(conn: sqlite3.Connection) -> list[CustomCategory]:
    return [
        CustomCategory(
            id=row["id"], name=row["name"], icon=row["icon"], color=row["color"]
        )
        for row in conn.execute(
            "SELECT id, name, icon, color FROM custom_categories ORDER BY rowid"
        )
    ]


def delete_custom_category(conn: sqlite3.Connection, category_id: str) -> None:
    conn.execute("DELETE FROM custom_categories WHERE id = ?", (category_id,))
