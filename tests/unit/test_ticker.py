"""Unit tests for the background ticker thread."""

import threading

from activity_timer.ticker import TimerTicker


class CountingTimer:
    def __init__(self, fail_first=False):
        self.ticks = 0
        self.fail_first = fail_first
        self.ticked = threading.Event()

    def tick(self):
        self.ticks += 1
        if self.ticks >= 3:
            self.ticked.set()
        if self.fail_first and self.ticks == 1:
            raise RuntimeError("boom")


class TestTimerTicker:
    def test_ticks_until_stopped(self):
        timer = CountingTimer()
        ticker = TimerTicker(timer, interval=0.01)
        ticker.start()
        assert ticker.is_running()
        assert timer.ticked.wait(5)

        ticker.stop()
        assert not ticker.is_running()
        ticks = timer.ticks
        timer.ticked.clear()
        assert not timer.ticked.wait(0.05)
        assert timer.ticks == ticks

    def test_tick_errors_do_not_stop_the_loop(self):
        timer = CountingTimer(fail_first=True)
        ticker = TimerTicker(timer, interval=0.01)
        ticker.start()
        try:
            assert timer.ticked.wait(5)
        finally:
            ticker.stop()

    def test_start_twice_keeps_one_thread(self):
        timer = CountingTimer()
        ticker = TimerTicker(timer, interval=0.01)
        ticker.start()
        thread = ticker._thread
        ticker.start()
        assert ticker._thread is thread
        ticker.stop()

    def test_stop_without_start(self):
        TimerTicker(CountingTimer(), interval=0.01).stop()

    def test_interval_defaults_to_timer_settings(self, timer):
        ticker = TimerTicker(timer)
        assert ticker._interval == 1.0

    def test_drives_a_real_timer(self, timer, clock):
        timer.start("Reading")
        seen = threading.Event()

        def on_tick(snapshot):
            if snapshot.elapsed_seconds >= 1:
                seen.set()

        timer.subscribe(on_tick)
        ticker = TimerTicker(timer, interval=0.01)
        clock.advance(1)
        ticker.start()
        try:
            assert seen.wait(5)
        finally:
            ticker.stop()
