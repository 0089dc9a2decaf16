"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

from .aggregation import GroupTotal, TimeRange, build_statistics, history_for_day
from .categories import category_label
from .models import TimerRecord, UserAchievement
from .store import Store


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, store: Store) -> None:
        self.store = store

    def print_history(self, day: date) -> None:
        records = history_for_day(self.store.fetch_all(TimerRecord), day)
        if not records:
            print("No sessions recorded for the selected day.")
            return

        print(f"History for {day.strftime('%Y-%m-%d')}")
        print("-" * 60)
        for record in records:
            print(format_record_line(record))
            if record.note:
                print(f"    note: {record.note}")

    def print_statistics(
        self, time_range: TimeRange, now: datetime, group_by: str = "category"
    ) -> None:
        stats = build_statistics(self.store.fetch_all(TimerRecord), time_range, now)
        print(f"Statistics for this {time_range.value}")
        print("-" * 40)
        print(f"Total time: {format_duration(stats.total_seconds)}")
        groups = stats.by_activity if group_by == "activity" else stats.by_category
        if not groups:
            print("No finished sessions in this period.")
            return
        print()
        print(f"By {group_by}:")
        for line in format_groups(groups, stats.total_seconds):
            print(f"  {line}")

    def print_achievements(self, achievements: Iterable[UserAchievement]) -> None:
        for achievement in achievements:
            mark = "x" if achievement.is_unlocked else " "
            unlocked = (
                f" (unlocked {achievement.unlock_date:%Y-%m-%d})"
                if achievement.unlock_date
                else ""
            )
            print(
                f"[{mark}] {achievement.title:<14} {achievement.progress * 100:5.1f}%  "
                f"{achievement.description}{unlocked}"
            )


def format_record_line(record: TimerRecord) -> str:
    status = "active" if record.end_time is None else format_duration(record.total_duration)
    mood = f" [{record.mood.value}]" if record.mood else ""
    return (
        f"{record.start_time:%H:%M:%S}  {record.activity_name[:24]:<24} "
        f"{category_label(record)[:14]:<14} {status}{mood}  ({record.id[:8]})"
    )


def format_groups(groups: Iterable[GroupTotal], total: float) -> list[str]:
    return [
        f"{group.label[:30]:<30} {format_duration(group.seconds)} "
        f"{format_percentage(group.seconds, total):>5}"
        for group in groups
    ]


def format_percentage(value: float, total: float) -> str:
    if total == 0:
        return "0%"
    return f"{value / total * 100:.0f}%"


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
