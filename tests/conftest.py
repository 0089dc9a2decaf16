"""
Pytest configuration and shared fixtures for activity timer tests.

Fixtures:
    clock: Manually advanced clock pinned to a Monday morning
    store: Store backed by a temporary SQLite file
    timer: SessionTimer wired to the store and clock
    make_record: Factory that saves finished records directly
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

import pytest

from activity_timer.clock import ManualClock
from activity_timer.models import CategoryRef, TimerRecord
from activity_timer.store import Store
from activity_timer.timer import SessionTimer

# Monday, so week-based windows start on this very day.
BASE_TIME = datetime(2025, 3, 24, 9, 0, 0)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(BASE_TIME)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "timer.sqlite3"


@pytest.fixture
def store(db_path):
    store = Store(db_path)
    yield store
    store.close()


@pytest.fixture
def timer(store, clock) -> SessionTimer:
    return SessionTimer(store, clock=clock)


@pytest.fixture
def make_record(store) -> Callable[..., TimerRecord]:
    """
    Factory for finished records ending ``seconds`` after ``start``.

    Pass ``active=True`` for a record still in progress (no end time).
    """

    def factory(
        name: str = "Reading",
        seconds: float = 600,
        start: Optional[datetime] = None,
        category: Optional[CategoryRef] = None,
        active: bool = False,
        save: bool = True,
    ) -> TimerRecord:
        start = start or BASE_TIME
        record = TimerRecord(
            activity_name=name,
            start_time=start,
            end_time=None if active else start + timedelta(seconds=seconds),
            total_duration=0.0 if active else float(seconds),
            is_active=active,
            category=category,
        )
        store.insert(record)
        if save:
            assert store.save().ok
        return record

    return factory


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
