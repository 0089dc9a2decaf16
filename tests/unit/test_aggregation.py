"""Unit tests for statistics and history aggregation."""

from datetime import date, datetime, timedelta

import pytest

from activity_timer.aggregation import (
    TimeRange,
    build_statistics,
    filter_by_range,
    group_by_activity,
    group_by_category,
    history_for_day,
    longest_streak,
    range_bounds,
    total_duration,
    trend_buckets,
    usage_days,
)
from activity_timer.models import CategoryRef, TimerRecord

NOW = datetime(2025, 3, 26, 15, 30)  # Wednesday


def finished(name, end, seconds, category=None):
    return TimerRecord(
        activity_name=name,
        start_time=end - timedelta(seconds=seconds),
        end_time=end,
        total_duration=float(seconds),
        is_active=False,
        category=category,
    )


def in_progress(name, start):
    return TimerRecord(activity_name=name, start_time=start, total_duration=500.0)


@pytest.fixture
def records():
    return [
        finished("Reading", datetime(2025, 3, 26, 8, 0), 1800, CategoryRef.preset("reading")),
        finished("Coding", datetime(2025, 3, 26, 11, 0), 3600, CategoryRef.preset("coding")),
        finished("Reading", datetime(2025, 3, 25, 21, 0), 600, CategoryRef.preset("reading")),
        finished("Chess", datetime(2025, 3, 24, 0, 0), 900, CategoryRef.custom("Chess")),
        finished("Walk", datetime(2025, 3, 2, 10, 0), 1200),
        finished("Walk", datetime(2025, 1, 15, 10, 0), 2400),
        finished("Old", datetime(2024, 12, 31, 23, 59), 300),
        in_progress("Writing", datetime(2025, 3, 26, 15, 0)),
    ]


class TestRanges:
    @pytest.mark.parametrize("time_range, start, end", [
        (TimeRange.DAY, datetime(2025, 3, 26), datetime(2025, 3, 27)),
        (TimeRange.WEEK, datetime(2025, 3, 24), datetime(2025, 3, 31)),
        (TimeRange.MONTH, datetime(2025, 3, 1), datetime(2025, 4, 1)),
        (TimeRange.YEAR, datetime(2025, 1, 1), datetime(2026, 1, 1)),
    ])
    def test_bounds(self, time_range, start, end):
        assert range_bounds(time_range, NOW) == (start, end)

    def test_week_starting_on_sunday_belongs_to_previous_monday(self):
        assert range_bounds(TimeRange.WEEK, datetime(2025, 3, 30, 23, 0))[0] == datetime(2025, 3, 24)

    def test_filter_uses_end_time_and_skips_active(self, records):
        names = [record.activity_name for record in filter_by_range(records, TimeRange.DAY, NOW)]
        assert names == ["Reading", "Coding"]

    def test_week_includes_midnight_monday(self, records):
        assert total_duration(filter_by_range(records, TimeRange.WEEK, NOW)) == 1800 + 3600 + 600 + 900

    def test_year_excludes_previous_year(self, records):
        in_year = filter_by_range(records, TimeRange.YEAR, NOW)
        assert "Old" not in {record.activity_name for record in in_year}
        assert len(in_year) == 6


class TestGrouping:
    def test_totals_ignore_records_in_progress(self, records):
        assert total_duration(records) == 1800 + 3600 + 600 + 900 + 1200 + 2400 + 300

    def test_group_by_activity(self, records):
        week = filter_by_range(records, TimeRange.WEEK, NOW)
        groups = group_by_activity(week)
        assert [(g.label, g.seconds, g.count) for g in groups] == [
            ("Coding", 3600, 1),
            ("Reading", 2400, 2),
            ("Chess", 900, 1),
        ]

    def test_group_by_category_labels_uncategorized(self, records):
        month = filter_by_range(records, TimeRange.MONTH, NOW)
        labels = {g.label: g.seconds for g in group_by_category(month)}
        assert labels == {"coding": 3600, "reading": 2400, "uncategorized": 1200, "Chess": 900}

    @pytest.mark.parametrize("time_range", list(TimeRange))
    def test_groups_sum_to_total(self, records, time_range):
        selected = filter_by_range(records, time_range, NOW)
        expected = total_duration(selected)
        assert sum(g.seconds for g in group_by_activity(selected)) == expected
        assert sum(g.seconds for g in group_by_category(selected)) == expected

    def test_ties_keep_first_seen_order(self):
        end = datetime(2025, 3, 26, 9)
        tied = [finished("B", end, 60), finished("A", end, 60), finished("C", end, 120)]
        assert [g.label for g in group_by_activity(tied)] == ["C", "B", "A"]

    def test_empty_input(self):
        assert group_by_activity([]) == []
        assert total_duration([]) == 0


class TestTrend:
    @pytest.mark.parametrize("time_range, now, count", [
        (TimeRange.DAY, NOW, 24),
        (TimeRange.WEEK, NOW, 7),
        (TimeRange.MONTH, NOW, 31),
        (TimeRange.MONTH, datetime(2025, 2, 10), 28),
        (TimeRange.MONTH, datetime(2024, 2, 10), 29),
        (TimeRange.YEAR, NOW, 12),
    ])
    def test_bucket_counts(self, time_range, now, count):
        assert len(trend_buckets([], time_range, now)) == count

    def test_day_buckets_by_hour(self, records):
        buckets = trend_buckets(records, TimeRange.DAY, NOW)
        assert buckets[8].seconds == 1800
        assert buckets[11].seconds == 3600
        assert buckets[15].seconds == 0
        assert buckets[0].start == datetime(2025, 3, 26)

    def test_week_buckets_start_on_monday(self, records):
        buckets = trend_buckets(records, TimeRange.WEEK, NOW)
        assert buckets[0].start == datetime(2025, 3, 24)
        assert [b.seconds for b in buckets] == [900, 600, 5400, 0, 0, 0, 0]

    def test_year_buckets_by_month(self, records):
        buckets = trend_buckets(records, TimeRange.YEAR, NOW)
        assert buckets[0].seconds == 2400
        assert buckets[2].seconds == 1800 + 3600 + 600 + 900 + 1200
        assert buckets[11].start == datetime(2025, 12, 1)

    @pytest.mark.parametrize("time_range", list(TimeRange))
    def test_trend_sums_to_total(self, records, time_range):
        stats = build_statistics(records, time_range, NOW)
        assert sum(b.seconds for b in stats.trend) == stats.total_seconds


class TestHistoryAndStreaks:
    def test_history_for_day_is_newest_first(self, records):
        day = history_for_day(records, date(2025, 3, 26))
        assert [record.activity_name for record in day] == ["Writing", "Coding", "Reading"]

    def test_usage_days(self, records):
        assert date(2025, 3, 24) in usage_days(records)
        assert len(usage_days(records)) == 6

    @pytest.mark.parametrize("days, expected", [
        ([], 0),
        ([date(2025, 3, 1)], 1),
        ([date(2025, 3, 1), date(2025, 3, 2), date(2025, 3, 4)], 2),
        ([date(2025, 2, 27), date(2025, 2, 28), date(2025, 3, 1), date(2025, 3, 1)], 3),
    ])
    def test_longest_streak(self, days, expected):
        assert longest_streak(days) == expected

    def test_build_statistics(self, records):
        stats = build_statistics(records, TimeRange.DAY, NOW)
        assert stats.time_range is TimeRange.DAY
        assert stats.total_seconds == 5400
        assert stats.by_activity[0].label == "Coding"
        assert stats.generated_at == NOW
