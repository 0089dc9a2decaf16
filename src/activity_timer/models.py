"""Domain models for timed activity sessions."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


def new_id() -> str:
    return uuid.uuid4().hex


class Mood(str, Enum):
    """Mood tag a user can attach to a finished session."""

    HAPPY = "happy"
    CALM = "calm"
    FOCUSED = "focused"
    TIRED = "tired"
    STRESSED = "stressed"

    @classmethod
    def parse(cls, value: object) -> Optional["Mood"]:
        """Return the matching mood, or None for anything unrecognized."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class PresetCategory(str, Enum):
    """Built-in category tags."""

    SPORTS = "sports"
    READING = "reading"
    WORK = "work"
    STUDY = "study"
    MEDITATION = "meditation"
    ENTERTAINMENT = "entertainment"
    WRITING = "writing"
    CODING = "coding"
    MUSIC = "music"
    SHOPPING = "shopping"
    GAMING = "gaming"
    TRAVEL = "travel"
    MOVIE = "movie"


class ReminderInterval(float, Enum):
    """Reminder intervals offered when starting a session, in seconds."""

    NONE = 0
    ONE_MINUTE = 60
    TWO_MINUTES = 120
    FIVE_MINUTES = 300
    TEN_MINUTES = 600
    TWENTY_MINUTES = 1200
    THIRTY_MINUTES = 1800
    ONE_HOUR = 3600
    TWO_HOURS = 7200


class CategoryKind(str, Enum):
    PRESET = "preset"
    CUSTOM = "custom"


@dataclass(slots=True, frozen=True)
class CategoryRef:
    """A category reference, resolved once when the record is written.

    Preset references carry a built-in tag; custom references name a
    ``CustomCategory`` without owning it.
    """

    kind: CategoryKind
    name: str

    @classmethod
    def preset(cls, tag: PresetCategory | str) -> "CategoryRef":
        return cls(CategoryKind.PRESET, PresetCategory(tag).value)

    @classmethod
    def custom(cls, name: str) -> "CategoryRef":
        return cls(CategoryKind.CUSTOM, name)


@dataclass(slots=True)
class PauseInterval:
    """A span of wall-clock time excluded from a session's duration."""

    pause_time: datetime
    resume_time: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.resume_time is None


@dataclass(slots=True)
class ReminderConfig:
    interval_seconds: float
    next_trigger_time: Optional[datetime] = None
    enabled: bool = True


@dataclass(slots=True, eq=False)
class TimerRecord:
    """One activity session, from start to stop."""

    activity_name: str
    start_time: datetime
    id: str = field(default_factory=new_id)
    end_time: Optional[datetime] = None
    total_duration: float = 0.0
    is_active: bool = True
    pause_intervals: list[PauseInterval] = field(default_factory=list)
    category: Optional[CategoryRef] = None
    note: Optional[str] = None
    mood: Optional[Mood] = None
    reminder: Optional[ReminderConfig] = None

    @property
    def is_finalized(self) -> bool:
        return self.end_time is not None

    @property
    def category_label(self) -> Optional[str]:
        return self.category.name if self.category else None

    @property
    def open_pause(self) -> Optional[PauseInterval]:
        if self.pause_intervals and self.pause_intervals[-1].is_open:
            return self.pause_intervals[-1]
        return None


@dataclass(slots=True, eq=False)
class Activity:
    """Autocomplete entry for a previously used activity name."""

    name: str
    color: str = "#007AFF"
    icon: Optional[str] = None
    id: str = field(default_factory=new_id)


@dataclass(slots=True, eq=False)
class UserAchievement:
    key: str
    title: str
    description: str
    icon: str
    is_unlocked: bool = False
    unlock_date: Optional[datetime] = None
    progress: float = 0.0
    id: str = field(default_factory=new_id)


@dataclass(slots=True, eq=False)
class CustomCategory:
    name: str
    icon: str = "star.fill"
    color: str = "#5856D6"
    id: str = field(default_factory=new_id)
