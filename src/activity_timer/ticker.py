"""Periodic wake source that drives the session timer."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from .timer import SessionTimer

logger = logging.getLogger(__name__)


class TimerTicker:
    """Call ``SessionTimer.tick`` at a fixed interval from a background thread."""

    def __init__(self, timer: SessionTimer, interval: Optional[float] = None) -> None:
        self._timer = timer
        self._interval = (
            interval
            if interval is not None
            else timer.settings.tick_interval.total_seconds()
        )
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                name="timer-ticker",
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.info("Timer ticker started (every %.2fs).", self._interval)

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread:
            thread.join(timeout=10)
            logger.info("Timer ticker stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def _run_loop(self, stop_event: threading.Event) -> None:
        # Sleep in an interruptible manner.
        while not stop_event.wait(self._interval):
            try:
                self._timer.tick()
            except Exception:
                logger.exception("Timer tick failed.")
