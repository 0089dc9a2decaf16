"""Configuration models and helpers for the activity timer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True)
class TimerSettings:
    """Runtime configuration for the session timer."""

    tick_interval: timedelta = timedelta(seconds=1)
    reminder_threshold: timedelta = timedelta(seconds=1.5)

    @classmethod
    def from_intervals(
        cls,
        tick_seconds: float,
        reminder_threshold_seconds: float | None = None,
    ) -> "TimerSettings":
        # The threshold has to cover at least one tick or boundaries get skipped.
        threshold = (
            reminder_threshold_seconds
            if reminder_threshold_seconds is not None
            else max(tick_seconds * 1.5, 1.5)
        )
        return cls(
            tick_interval=timedelta(seconds=tick_seconds),
            reminder_threshold=timedelta(seconds=threshold),
        )


@dataclass(slots=True)
class DisplaySettings:
    """Display preferences handed to the components that render colour."""

    accent_color: str = "#007AFF"
