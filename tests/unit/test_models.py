"""Unit tests for domain models and name normalization."""

from datetime import datetime, timedelta

import pytest

from activity_timer.models import (
    CategoryKind,
    CategoryRef,
    Mood,
    PauseInterval,
    PresetCategory,
    ReminderInterval,
    TimerRecord,
)
from activity_timer.normalization import (
    normalize_activity_name,
    normalize_category_name,
    normalize_hex_color,
)


class TestMood:
    @pytest.mark.parametrize("raw, expected", [
        ("happy", Mood.HAPPY),
        (" Focused ", Mood.FOCUSED),
        (Mood.TIRED, Mood.TIRED),
    ])
    def test_parse_known_values(self, raw, expected):
        assert Mood.parse(raw) is expected

    @pytest.mark.parametrize("raw", ["ecstatic", "", None, 3])
    def test_parse_unknown_values(self, raw):
        assert Mood.parse(raw) is None


class TestCategoryRef:
    def test_preset_accepts_tag_or_value(self):
        assert CategoryRef.preset(PresetCategory.MUSIC) == CategoryRef.preset("music")
        assert CategoryRef.preset("music").kind is CategoryKind.PRESET

    def test_preset_rejects_unknown_tag(self):
        with pytest.raises(ValueError):
            CategoryRef.preset("knitting")

    def test_custom_and_preset_with_same_name_differ(self):
        assert CategoryRef.custom("reading") != CategoryRef.preset("reading")

    def test_refs_are_hashable(self):
        refs = {CategoryRef.custom("Chess"), CategoryRef.custom("Chess")}
        assert len(refs) == 1


class TestTimerRecord:
    def test_defaults(self):
        record = TimerRecord(activity_name="Reading", start_time=datetime(2025, 1, 1))
        assert record.is_active is True
        assert record.is_finalized is False
        assert record.category_label is None
        assert record.open_pause is None
        assert len(record.id) == 32

    def test_open_pause(self):
        start = datetime(2025, 1, 1, 8)
        record = TimerRecord(activity_name="Reading", start_time=start)
        record.pause_intervals.append(PauseInterval(start, start + timedelta(seconds=5)))
        assert record.open_pause is None
        record.pause_intervals.append(PauseInterval(start + timedelta(seconds=9)))
        assert record.open_pause is record.pause_intervals[-1]

    def test_finalized_once_ended(self):
        start = datetime(2025, 1, 1, 8)
        record = TimerRecord(activity_name="Reading", start_time=start)
        record.end_time = start + timedelta(seconds=90)
        assert record.is_finalized

    def test_reminder_intervals(self):
        assert [interval.value for interval in ReminderInterval] == [
            0, 60, 120, 300, 600, 1200, 1800, 3600, 7200,
        ]


class TestNormalization:
    @pytest.mark.parametrize("raw, expected", [
        ("  Deep   work ", "Deep work"),
        ("Reading", "Reading"),
        ("\t\n", None),
        ("", None),
        (None, None),
    ])
    def test_activity_name(self, raw, expected):
        assert normalize_activity_name(raw) == expected

    def test_category_name_is_lowercased(self):
        assert normalize_category_name("  Board  Games ") == "board games"

    @pytest.mark.parametrize("raw, expected", [
        ("#ff9500", "#FF9500"),
        ("34c759", "#34C759"),
        ("not-a-colour", "#007AFF"),
        (None, "#007AFF"),
    ])
    def test_hex_color(self, raw, expected):
        assert normalize_hex_color(raw) == expected
