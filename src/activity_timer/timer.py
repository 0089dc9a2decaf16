"""Session timer: elapsed-time bookkeeping for one active activity session."""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from .categories import resolve_category
from .clock import Clock, SystemClock
from .config import DisplaySettings, TimerSettings
from .models import (
    Activity,
    CategoryRef,
    CustomCategory,
    Mood,
    PauseInterval,
    ReminderConfig,
    TimerRecord,
    UserAchievement,
)
from .normalization import normalize_activity_name
from .store import SaveResult, Store

logger = logging.getLogger(__name__)


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class CommandResult(str, Enum):
    OK = "ok"
    INVALID_STATE = "invalid_state"
    PERSIST_FAILED = "persist_failed"


@dataclass(slots=True, frozen=True)
class TimerSnapshot:
    """What the presentation layer sees after every tick and transition."""

    state: TimerState
    elapsed_seconds: float
    record: Optional[TimerRecord]
    reminder_due: bool = False
    in_background: bool = False


Listener = Callable[[TimerSnapshot], None]


class SessionTimer:
    """Tracks one session through start, pause, resume and stop.

    Elapsed time is always derived from wall-clock timestamps: an anchor set
    on start and resume plus the duration accumulated before it. Nothing
    depends on ticks having fired, so time spent in the background is
    reconciled from the clock alone.
    """

    def __init__(
        self,
        store: Store,
        settings: Optional[TimerSettings] = None,
        display: Optional[DisplaySettings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.store = store
        self.settings = settings or TimerSettings()
        self.display = display or DisplaySettings()
        self.clock = clock or SystemClock()
        self.last_save_result: Optional[SaveResult] = None
        self._lock = threading.RLock()
        self._state = TimerState.IDLE
        self._record: Optional[TimerRecord] = None
        self._anchor: Optional[datetime] = None
        self._accumulated = 0.0
        self._background_at: Optional[datetime] = None
        self._reminder_boundary = 0
        self._listeners: list[Listener] = []

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def active_record(self) -> Optional[TimerRecord]:
        return self._record

    @property
    def in_background(self) -> bool:
        return self._background_at is not None

    # Commands ------------------------------------------------------------

    def start(
        self,
        activity_name: str,
        category: CategoryRef | str | None = None,
        reminder_interval: float = 0,
    ) -> CommandResult:
        name = normalize_activity_name(activity_name)
        if isinstance(category, str):
            category = resolve_category(category, self.store.fetch_all(CustomCategory))

        with self._lock:
            if self._state in (TimerState.RUNNING, TimerState.PAUSED):
                return self._invalid("start", "a session is already active")
            if name is None:
                return self._invalid("start", "activity name is empty")

            now = self.clock.now()
            record = TimerRecord(activity_name=name, start_time=now, category=category)
            interval = float(reminder_interval or 0)
            if interval > 0:
                record.reminder = ReminderConfig(
                    interval_seconds=interval,
                    next_trigger_time=now + timedelta(seconds=interval),
                    enabled=True,
                )
            self._record = record
            self._anchor = now
            self._accumulated = 0.0
            self._reminder_boundary = 0
            self._state = TimerState.RUNNING
            snapshot = self._snapshot_locked(now)

        logger.info("Started session %s for %r", record.id, name)
        self._emit(snapshot)
        return CommandResult.OK

    def pause(self) -> CommandResult:
        with self._lock:
            if self._state is not TimerState.RUNNING or self._record is None:
                return self._invalid("pause", "no running session")
            now = self.clock.now()
            self._accumulated = self._elapsed_locked(now)
            self._anchor = None
            record = self._record
            record.total_duration = max(record.total_duration, self._accumulated)
            record.pause_intervals.append(PauseInterval(pause_time=now))
            record.is_active = False
            self._state = TimerState.PAUSED
            snapshot = self._snapshot_locked(now)

        logger.debug("Paused session %s at %.1fs", record.id, snapshot.elapsed_seconds)
        self._emit(snapshot)
        return CommandResult.OK

    def resume(self) -> CommandResult:
        with self._lock:
            if self._state is not TimerState.PAUSED or self._record is None:
                return self._invalid("resume", "no paused session")
            now = self.clock.now()
            record = self._record
            open_pause = record.open_pause
            if open_pause is not None:
                open_pause.resume_time = now
            record.is_active = True
            self._anchor = now
            self._state = TimerState.RUNNING
            self._update_next_trigger(self._accumulated, now)
            snapshot = self._snapshot_locked(now)

        logger.debug("Resumed session %s", record.id)
        self._emit(snapshot)
        return CommandResult.OK

    def stop(self) -> CommandResult:
        with self._lock:
            if self._state not in (TimerState.RUNNING, TimerState.PAUSED) or self._record is None:
                return self._invalid("stop", "no active session")
            now = self.clock.now()
            record = self._record
            total = self._elapsed_locked(now)
            record.end_time = now
            record.total_duration = max(record.total_duration, total)
            record.is_active = False
            if record.reminder is not None:
                record.reminder.next_trigger_time = None

            # The record only reaches the store once it is finished.
            self.store.insert(record)
            self._register_activity(record.activity_name)
            result = self.store.save()
            self.last_save_result = result

            self._accumulated = record.total_duration
            self._state = TimerState.STOPPED
            stopped = self._snapshot_locked(now)
            self._record = None
            self._anchor = None
            self._accumulated = 0.0
            self._background_at = None
            self._reminder_boundary = 0
            self._state = TimerState.IDLE
            idle = self._snapshot_locked(now)

        if result.ok:
            logger.info(
                "Stopped session %s after %.1fs", record.id, record.total_duration
            )
        else:
            logger.error("Could not save session %s: %s", record.id, result.reason)
        self._emit(stopped)
        self._emit(idle)
        return CommandResult.OK if result.ok else CommandResult.PERSIST_FAILED

    def enter_background(self) -> CommandResult:
        """Note the moment the app went to the background."""
        with self._lock:
            if self._state is not TimerState.RUNNING or self._background_at is not None:
                return self._invalid("enter_background", "timer is not running in foreground")
            self._background_at = self.clock.now()
        logger.debug("Timer moved to background")
        return CommandResult.OK

    def enter_foreground(self) -> CommandResult:
        """Reconcile elapsed time from the wall clock after a background stint."""
        with self._lock:
            if self._background_at is None:
                return self._invalid("enter_foreground", "timer is not in background")
            now = self.clock.now()
            away = (now - self._background_at).total_seconds()
            self._background_at = None
            if self._state is TimerState.RUNNING and self._record is not None:
                self._accumulated = self._elapsed_locked(now)
                self._anchor = now
                self._record.total_duration = max(
                    self._record.total_duration, self._accumulated
                )
                self._update_next_trigger(self._accumulated, now)
            snapshot = self._snapshot_locked(now)

        logger.debug("Timer back in foreground after %.1fs", away)
        self._emit(snapshot)
        return CommandResult.OK

    def tick(self) -> Optional[TimerSnapshot]:
        """Recompute elapsed time and evaluate the reminder.

        Does nothing unless a session is running in the foreground.
        """
        with self._lock:
            if (
                self._state is not TimerState.RUNNING
                or self._record is None
                or self._background_at is not None
            ):
                return None
            now = self.clock.now()
            elapsed = self._elapsed_locked(now)
            self._record.total_duration = max(self._record.total_duration, elapsed)
            reminder_due = self._evaluate_reminder(elapsed, now)
            snapshot = self._snapshot_locked(now, reminder_due=reminder_due)

        if reminder_due:
            logger.info(
                "Reminder for %r at %.0fs", snapshot.record.activity_name, elapsed
            )
        self._emit(snapshot)
        return snapshot

    # Record edits --------------------------------------------------------

    def set_note(self, record: TimerRecord, note: Optional[str]) -> CommandResult:
        with self._lock:
            record.note = (note.strip() or None) if note else None
            return self._save_edit(record)

    def set_mood(self, record: TimerRecord, mood: Optional[Mood]) -> CommandResult:
        with self._lock:
            record.mood = mood
            return self._save_edit(record)

    def delete_record(self, record: TimerRecord) -> CommandResult:
        with self._lock:
            if self._record is not None and record.id == self._record.id:
                return self._invalid("delete_record", "record belongs to the active session")
            self.store.delete(record)
            result = self.store.save()
            self.last_save_result = result
        if not result.ok:
            logger.error("Could not delete record %s: %s", record.id, result.reason)
            return CommandResult.PERSIST_FAILED
        return CommandResult.OK

    def clear_history(self) -> CommandResult:
        """Delete every record, activity and achievement; custom categories stay."""
        with self._lock:
            if self._state in (TimerState.RUNNING, TimerState.PAUSED):
                return self._invalid("clear_history", "a session is active")
            result = self.store.clear(TimerRecord, Activity, UserAchievement)
            self.last_save_result = result
        if not result.ok:
            logger.error("Could not clear stored data: %s", result.reason)
            return CommandResult.PERSIST_FAILED
        logger.info("Cleared all records, activities and achievements")
        return CommandResult.OK

    # Observation ---------------------------------------------------------

    def elapsed_seconds(self) -> float:
        with self._lock:
            return self._elapsed_locked(self.clock.now())

    def snapshot(self) -> TimerSnapshot:
        with self._lock:
            return self._snapshot_locked(self.clock.now())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # Internals -----------------------------------------------------------

    def _elapsed_locked(self, now: datetime) -> float:
        if self._state is TimerState.RUNNING and self._anchor is not None:
            delta = max((now - self._anchor).total_seconds(), 0.0)
            return self._accumulated + delta
        if self._state in (TimerState.PAUSED, TimerState.STOPPED):
            return self._accumulated
        return 0.0

    def _evaluate_reminder(self, elapsed: float, now: datetime) -> bool:
        reminder = self._record.reminder if self._record else None
        if reminder is None or not reminder.enabled or reminder.interval_seconds <= 0:
            return False
        interval = reminder.interval_seconds
        remaining = interval - (elapsed % interval)
        reminder.next_trigger_time = now + timedelta(seconds=remaining)
        if remaining > self.settings.reminder_threshold.total_seconds():
            return False
        # One reminder per boundary, however many ticks land inside the threshold.
        boundary = int(elapsed // interval) + 1
        if boundary <= self._reminder_boundary:
            return False
        self._reminder_boundary = boundary
        return True

    def _update_next_trigger(self, elapsed: float, now: datetime) -> None:
        reminder = self._record.reminder if self._record else None
        if reminder is None or reminder.interval_seconds <= 0:
            return
        remaining = reminder.interval_seconds - (elapsed % reminder.interval_seconds)
        reminder.next_trigger_time = now + timedelta(seconds=remaining)

    def _register_activity(self, name: str) -> None:
        key = name.casefold()
        if any(activity.name.casefold() == key for activity in self.store.fetch_all(Activity)):
            return
        self.store.insert(Activity(name=name, color=self.display.accent_color))

    def _save_edit(self, record: TimerRecord) -> CommandResult:
        if self._record is not None and record.id == self._record.id:
            # The active record is written when the session stops.
            return CommandResult.OK
        self.store.mark_dirty(record)
        result = self.store.save()
        self.last_save_result = result
        if not result.ok:
            logger.error("Could not save edit to record %s: %s", record.id, result.reason)
            return CommandResult.PERSIST_FAILED
        return CommandResult.OK

    def _snapshot_locked(self, now: datetime, *, reminder_due: bool = False) -> TimerSnapshot:
        return TimerSnapshot(
            state=self._state,
            elapsed_seconds=self._elapsed_locked(now),
            record=copy.deepcopy(self._record),
            reminder_due=reminder_due,
            in_background=self._background_at is not None,
        )

    def _invalid(self, command: str, reason: str) -> CommandResult:
        logger.debug("Ignoring %s: %s (state=%s)", command, reason, self._state.value)
        return CommandResult.INVALID_STATE

    def _emit(self, snapshot: TimerSnapshot) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Timer listener %r failed.", listener)
