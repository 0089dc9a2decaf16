"""Progress-based achievements recomputed from the full record history."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from .aggregation import finalized, longest_streak, usage_days
from .clock import Clock, SystemClock
from .models import TimerRecord, UserAchievement
from .store import Store

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UsageMetrics:
    """Figures every achievement rule is measured against."""

    session_count: int
    total_seconds: float
    distinct_activities: int
    longest_streak_days: int

    @classmethod
    def from_records(cls, records: Iterable[TimerRecord]) -> "UsageMetrics":
        done = finalized(records)
        return cls(
            session_count=len(done),
            total_seconds=sum(record.total_duration for record in done),
            distinct_activities=len({record.activity_name for record in done}),
            longest_streak_days=longest_streak(usage_days(done)),
        )

    @property
    def total_hours(self) -> float:
        return self.total_seconds / 3600


@dataclass(slots=True, frozen=True)
class AchievementRule:
    key: str
    title: str
    description: str
    icon: str
    target: float
    metric: Callable[[UsageMetrics], float]

    def progress(self, metrics: UsageMetrics) -> float:
        return min(self.metric(metrics) / self.target, 1.0)

    def is_met(self, metrics: UsageMetrics) -> bool:
        return self.metric(metrics) >= self.target


RULES: tuple[AchievementRule, ...] = (
    AchievementRule(
        key="first_session",
        title="First Steps",
        description="Complete your first timed session",
        icon="1.circle",
        target=1,
        metric=lambda m: m.session_count,
    ),
    AchievementRule(
        key="ten_hours",
        title="Persistence",
        description="Track 10 hours in total",
        icon="clock",
        target=10,
        metric=lambda m: m.total_hours,
    ),
    AchievementRule(
        key="hundred_hours",
        title="Time Master",
        description="Track 100 hours in total",
        icon="star",
        target=100,
        metric=lambda m: m.total_hours,
    ),
    AchievementRule(
        key="five_activities",
        title="All-Rounder",
        description="Track 5 different activities",
        icon="square.grid.2x2",
        target=5,
        metric=lambda m: m.distinct_activities,
    ),
    AchievementRule(
        key="seven_day_streak",
        title="Consistency",
        description="Track something 7 days in a row",
        icon="calendar",
        target=7,
        metric=lambda m: m.longest_streak_days,
    ),
)

RULES_BY_KEY = {rule.key: rule for rule in RULES}


def default_achievements() -> list[UserAchievement]:
    return [
        UserAchievement(
            key=rule.key,
            title=rule.title,
            description=rule.description,
            icon=rule.icon,
        )
        for rule in RULES
    ]


def evaluate_achievements(
    achievements: Iterable[UserAchievement],
    records: Iterable[TimerRecord],
    now: datetime,
) -> list[UserAchievement]:
    """Update progress and unlock state in place; return the ones that changed.

    An unlocked achievement stays unlocked with full progress, even when the
    records that earned it have since been deleted.
    """
    metrics = UsageMetrics.from_records(records)
    changed: list[UserAchievement] = []
    for achievement in achievements:
        rule = RULES_BY_KEY.get(achievement.key)
        if rule is None:
            continue
        updated = False
        if achievement.is_unlocked:
            if achievement.progress != 1.0:
                achievement.progress = 1.0
                updated = True
        else:
            progress = rule.progress(metrics)
            if progress != achievement.progress:
                achievement.progress = progress
                updated = True
            if rule.is_met(metrics):
                achievement.is_unlocked = True
                achievement.unlock_date = now
                achievement.progress = 1.0
                updated = True
        if updated:
            changed.append(achievement)
    return changed


class AchievementService:
    """Keeps the stored achievements in step with the stored records."""

    def __init__(self, store: Store, clock: Optional[Clock] = None) -> None:
        self.store = store
        self.clock = clock or SystemClock()

    def ensure_defaults(self) -> list[UserAchievement]:
        achievements = self.store.fetch_all(UserAchievement)
        known = {achievement.key for achievement in achievements}
        missing = [
            achievement
            for achievement in default_achievements()
            if achievement.key not in known
        ]
        for achievement in missing:
            self.store.insert(achievement)
        if missing:
            result = self.store.save()
            if not result.ok:
                logger.error("Could not create default achievements: %s", result.reason)
        return achievements + missing

    def refresh(self) -> list[UserAchievement]:
        achievements = self.ensure_defaults()
        records = self.store.fetch_all(TimerRecord)
        changed = evaluate_achievements(achievements, records, self.clock.now())
        if not changed:
            return []
        for achievement in changed:
            self.store.mark_dirty(achievement)
        result = self.store.save()
        if result.ok:
            logger.info(
                "Updated %d achievements: %s",
                len(changed),
                ", ".join(achievement.key for achievement in changed),
            )
        else:
            logger.error("Could not save achievement progress: %s", result.reason)
        return changed

    def list_achievements(self) -> list[UserAchievement]:
        return self.ensure_defaults()
