"""Statistics and history helpers over a snapshot of timer records.

Everything here is a pure function of its inputs. Records without an end
time are sessions still in progress and never count towards an aggregate.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, Iterable, Optional

from .categories import category_label
from .models import TimerRecord


class TimeRange(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


@dataclass(slots=True)
class GroupTotal:
    label: str
    seconds: float
    count: int


@dataclass(slots=True)
class TrendBucket:
    start: datetime
    seconds: float = 0.0


@dataclass(slots=True)
class StatisticsSnapshot:
    time_range: TimeRange
    total_seconds: float
    by_activity: list[GroupTotal] = field(default_factory=list)
    by_category: list[GroupTotal] = field(default_factory=list)
    trend: list[TrendBucket] = field(default_factory=list)
    generated_at: Optional[datetime] = None


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def range_bounds(time_range: TimeRange, now: datetime) -> tuple[datetime, datetime]:
    """Return the ``[start, end)`` window of the period containing ``now``."""
    today = start_of_day(now)
    if time_range is TimeRange.DAY:
        return today, today + timedelta(days=1)
    if time_range is TimeRange.WEEK:
        monday = today - timedelta(days=today.weekday())
        return monday, monday + timedelta(days=7)
    if time_range is TimeRange.MONTH:
        first = today.replace(day=1)
        days = calendar.monthrange(first.year, first.month)[1]
        return first, first + timedelta(days=days)
    first = today.replace(month=1, day=1)
    return first, first.replace(year=first.year + 1)


def finalized(records: Iterable[TimerRecord]) -> list[TimerRecord]:
    return [record for record in records if record.is_finalized]


def filter_by_range(
    records: Iterable[TimerRecord], time_range: TimeRange, now: datetime
) -> list[TimerRecord]:
    start, end = range_bounds(time_range, now)
    return [
        record
        for record in finalized(records)
        if start <= record.end_time < end
    ]


def total_duration(records: Iterable[TimerRecord]) -> float:
    return sum(record.total_duration for record in finalized(records))


def group_by_activity(records: Iterable[TimerRecord]) -> list[GroupTotal]:
    return _group(records, lambda record: record.activity_name)


def group_by_category(records: Iterable[TimerRecord]) -> list[GroupTotal]:
    return _group(records, category_label)


def _group(
    records: Iterable[TimerRecord], key: Callable[[TimerRecord], str]
) -> list[GroupTotal]:
    groups: dict[str, GroupTotal] = {}
    for record in finalized(records):
        label = key(record)
        group = groups.get(label)
        if group is None:
            group = groups[label] = GroupTotal(label=label, seconds=0.0, count=0)
        group.seconds += record.total_duration
        group.count += 1
    # sorted() is stable, so ties keep first-seen order.
    return sorted(groups.values(), key=lambda item: item.seconds, reverse=True)


def trend_buckets(
    records: Iterable[TimerRecord], time_range: TimeRange, now: datetime
) -> list[TrendBucket]:
    """Split the period containing ``now`` into fixed buckets.

    Hourly for a day, daily for a week or month, monthly for a year. Every
    bucket is present even when nothing was recorded in it.
    """
    start, end = range_bounds(time_range, now)
    buckets = [TrendBucket(start=bucket_start) for bucket_start in _bucket_starts(time_range, start, end)]
    for record in filter_by_range(records, time_range, now):
        buckets[_bucket_index(time_range, start, record.end_time)].seconds += record.total_duration
    return buckets


def _bucket_starts(time_range: TimeRange, start: datetime, end: datetime) -> list[datetime]:
    if time_range is TimeRange.DAY:
        return [start + timedelta(hours=hour) for hour in range(24)]
    if time_range is TimeRange.YEAR:
        return [start.replace(month=month) for month in range(1, 13)]
    days = (end - start).days
    return [start + timedelta(days=offset) for offset in range(days)]


def _bucket_index(time_range: TimeRange, start: datetime, moment: datetime) -> int:
    if time_range is TimeRange.DAY:
        return moment.hour
    if time_range is TimeRange.YEAR:
        return moment.month - 1
    return (moment.date() - start.date()).days


def usage_days(records: Iterable[TimerRecord]) -> set[date]:
    return {record.end_time.date() for record in finalized(records)}


def longest_streak(days: Iterable[date]) -> int:
    """Length of the longest run of consecutive calendar days."""
    ordered = sorted(set(days))
    if not ordered:
        return 0
    longest = current = 1
    for previous, day in zip(ordered, ordered[1:]):
        if (day - previous).days == 1:
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


def history_for_day(records: Iterable[TimerRecord], day: date) -> list[TimerRecord]:
    """Records started on ``day``, newest first."""
    selected = [record for record in records if record.start_time.date() == day]
    return sorted(selected, key=lambda record: record.start_time, reverse=True)


def build_statistics(
    records: Iterable[TimerRecord], time_range: TimeRange, now: datetime
) -> StatisticsSnapshot:
    records = list(records)
    in_range = filter_by_range(records, time_range, now)
    return StatisticsSnapshot(
        time_range=time_range,
        total_seconds=total_duration(in_range),
        by_activity=group_by_activity(in_range),
        by_category=group_by_category(in_range),
        trend=trend_buckets(records, time_range, now),
        generated_at=now,
    )
