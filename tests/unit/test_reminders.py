"""Unit tests for interval reminders raised by the session timer."""

from datetime import timedelta

import pytest

from activity_timer.config import TimerSettings
from activity_timer.models import ReminderInterval
from activity_timer.timer import SessionTimer


def reminders(timer, clock, seconds, step=1.0):
    fired = []
    for _ in range(int(round(seconds / step))):
        clock.advance(step)
        snapshot = timer.tick()
        if snapshot is not None and snapshot.reminder_due:
            fired.append(snapshot.elapsed_seconds)
    return fired


class TestReminderFiring:
    def test_one_reminder_per_interval(self, timer, clock):
        timer.start("Reading", reminder_interval=ReminderInterval.ONE_MINUTE)
        fired = reminders(timer, clock, 185)
        assert fired == [59, 119, 179]

    def test_disabled_interval_never_fires(self, timer, clock):
        timer.start("Reading", reminder_interval=0)
        assert reminders(timer, clock, 400) == []

    def test_sub_second_ticks_fire_once_per_boundary(self, store, clock):
        settings = TimerSettings.from_intervals(0.5)
        timer = SessionTimer(store, settings=settings, clock=clock)
        timer.start("Reading", reminder_interval=60)

        fired = reminders(timer, clock, 125, step=0.5)

        assert len(fired) == 2
        assert fired[0] == pytest.approx(58.5)
        assert fired[1] == pytest.approx(118.5)

    def test_paused_time_does_not_count(self, timer, clock):
        timer.start("Reading", reminder_interval=60)
        fired = reminders(timer, clock, 30)
        timer.pause()
        clock.advance(1000)
        timer.resume()
        fired += reminders(timer, clock, 35)
        assert fired == [59]

    def test_missed_boundaries_are_not_replayed(self, timer, clock):
        timer.start("Reading", reminder_interval=60)
        reminders(timer, clock, 10)
        timer.enter_background()
        clock.advance(300)
        timer.enter_foreground()

        assert reminders(timer, clock, 5) == []
        assert reminders(timer, clock, 45) == [359]

    def test_disabled_reminder_is_silent(self, timer, clock):
        timer.start("Reading", reminder_interval=60)
        timer.active_record.reminder.enabled = False
        assert reminders(timer, clock, 120) == []


class TestNextTrigger:
    def test_next_trigger_follows_elapsed_time(self, timer, clock):
        start = clock.now()
        timer.start("Reading", reminder_interval=120)
        assert timer.active_record.reminder.next_trigger_time == start + timedelta(seconds=120)

        reminders(timer, clock, 20)
        timer.pause()
        clock.advance(40)
        timer.resume()

        expected = clock.now() + timedelta(seconds=100)
        assert timer.active_record.reminder.next_trigger_time == expected

    def test_next_trigger_cleared_on_stop(self, timer, clock, store):
        timer.start("Reading", reminder_interval=60)
        reminders(timer, clock, 10)
        record = timer.active_record
        timer.stop()
        assert record.reminder.next_trigger_time is None
        assert record.reminder.interval_seconds == 60
