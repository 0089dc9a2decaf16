"""Unit-of-work store that persists the timer's entities to SQLite."""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from . import db
from .models import Activity, CustomCategory, TimerRecord, UserAchievement

logger = logging.getLogger(__name__)

T = TypeVar("T", TimerRecord, Activity, UserAchievement, CustomCategory)

_Key = tuple[type, str]

_READERS: dict[type, Callable[[sqlite3.Connection], list[Any]]] = {
    TimerRecord: db.fetch_records,
    Activity: db.fetch_activities,
    UserAchievement: db.fetch_achievements,
    CustomCategory: db.fetch_custom_categories,
}

_WRITERS: dict[type, Callable[[sqlite3.Connection, Any], None]] = {
    TimerRecord: db.upsert_record,
    Activity: db.upsert_activity,
    UserAchievement: db.upsert_achievement,
    CustomCategory: db.upsert_custom_category,
}

_DELETERS: dict[type, Callable[[sqlite3.Connection, str], None]] = {
    TimerRecord: db.delete_record,
    Activity: db.delete_activity,
    UserAchievement: db.delete_achievement,
    CustomCategory: db.delete_custom_category,
}

# Rebuildable lookup data; dropped from the pending work when a save fails.
_INDEX_TYPES: tuple[type, ...] = (Activity,)


@dataclass(slots=True)
class SaveResult:
    ok: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


@dataclass(slots=True)
class ChangeSet:
    """Entities written and removed by one committed save."""

    saved: list[Any] = field(default_factory=list)
    deleted: list[Any] = field(default_factory=list)

    def touches(self, entity_type: type) -> bool:
        return any(isinstance(entity, entity_type) for entity in self.saved) or any(
            isinstance(entity, entity_type) for entity in self.deleted
        )


Listener = Callable[[ChangeSet], None]


def _key(entity: Any) -> _Key:
    entity_type = type(entity)
    if entity_type not in _WRITERS:
        raise TypeError(f"Unsupported entity type: {entity_type.__name__}")
    return entity_type, entity.id


class Store:
    """Tracks entities in memory and writes pending changes on ``save()``.

    Entities returned by ``fetch_all`` are the tracked instances, so a caller
    can mutate one, ``mark_dirty`` it and ``save``. Every save runs in a
    single transaction; a failed save rolls back and keeps the pending work
    so it can be retried.
    """

    def __init__(self, db_path: Path | str, *, conn: Optional[sqlite3.Connection] = None) -> None:
        self.db_path = Path(db_path)
        self._conn = conn or db.open_database(self.db_path, check_same_thread=False)
        self._lock = threading.RLock()
        self._tracked: dict[_Key, Any] = {}
        self._persisted: set[_Key] = set()
        self._inserted: dict[_Key, Any] = {}
        self._dirty: dict[_Key, Any] = {}
        self._deleted: dict[_Key, Any] = {}
        self._listeners: list[Listener] = []

    def insert(self, entity: Any) -> None:
        key = _key(entity)
        with self._lock:
            self._deleted.pop(key, None)
            self._tracked[key] = entity
            if key in self._persisted:
                self._dirty[key] = entity
            else:
                self._inserted[key] = entity

    def mark_dirty(self, entity: Any) -> None:
        key = _key(entity)
        with self._lock:
            if key in self._deleted:
                return
            self._tracked[key] = entity
            if key in self._persisted:
                self._dirty[key] = entity
            else:
                self._inserted[key] = entity

    def delete(self, entity: Any) -> None:
        key = _key(entity)
        with self._lock:
            self._inserted.pop(key, None)
            self._dirty.pop(key, None)
            if key in self._persisted:
                self._deleted[key] = entity
            else:
                self._tracked.pop(key, None)

    @property
    def has_changes(self) -> bool:
        with self._lock:
            return bool(self._inserted or self._dirty or self._deleted)

    def save(self) -> SaveResult:
        """Write all pending changes atomically."""
        with self._lock:
            if not (self._inserted or self._dirty or self._deleted):
                return SaveResult(ok=True)
            pending = list(self._inserted.items()) + list(self._dirty.items())
            deleted = list(self._deleted.items())
            try:
                self._conn.execute("BEGIN")
                for (entity_type, _), entity in pending:
                    _WRITERS[entity_type](self._conn, entity)
                for (entity_type, entity_id), _ in deleted:
                    _DELETERS[entity_type](self._conn, entity_id)
                self._conn.execute("COMMIT")
            except (sqlite3.Error, ValueError) as exc:
                self._rollback()
                logger.exception("Failed to save %d pending changes.", len(pending) + len(deleted))
                self._drop_pending_index_entries()
                return SaveResult(ok=False, reason=str(exc))

            for key, _ in pending:
                self._persisted.add(key)
            for key, _ in deleted:
                self._persisted.discard(key)
                self._tracked.pop(key, None)
            self._inserted.clear()
            self._dirty.clear()
            self._deleted.clear()
            changes = ChangeSet(
                saved=[entity for _, entity in pending],
                deleted=[entity for _, entity in deleted],
            )
            listeners = list(self._listeners)

        logger.debug(
            "Saved %d entities, deleted %d.", len(changes.saved), len(changes.deleted)
        )
        self._notify(listeners, changes)
        return SaveResult(ok=True)

    def clear(self, *entity_types: type) -> SaveResult:
        """Delete every stored entity of the given types in one save."""
        for entity_type in entity_types:
            for entity in self.fetch_all(entity_type):
                self.delete(entity)
        return self.save()

    def fetch_all(self, entity_type: type[T]) -> list[T]:
        """Return a snapshot of every entity of the given type."""
        if entity_type not in _READERS:
            raise TypeError(f"Unsupported entity type: {entity_type.__name__}")
        with self._lock:
            loaded = _READERS[entity_type](self._conn)
            result: list[T] = []
            seen: set[_Key] = set()
            for entity in loaded:
                key = (entity_type, entity.id)
                seen.add(key)
                self._persisted.add(key)
                if key in self._deleted:
                    continue
                result.append(self._tracked.setdefault(key, entity))
            for key, entity in self._inserted.items():
                if key[0] is entity_type and key not in seen:
                    result.append(entity)
        if entity_type is TimerRecord:
            result.sort(key=lambda record: record.start_time)
        return result

    def get(self, entity_type: type[T], entity_id: str) -> Optional[T]:
        for entity in self.fetch_all(entity_type):
            if entity.id == entity_id:
                return entity
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after every committed save."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _drop_pending_index_entries(self) -> None:
        dropped = 0
        for pending in (self._inserted, self._dirty):
            for key in [key for key in pending if key[0] in _INDEX_TYPES]:
                del pending[key]
                if key not in self._persisted:
                    self._tracked.pop(key, None)
                dropped += 1
        if dropped:
            logger.warning("Dropped %d unsaved index entries after a failed save.", dropped)

    def _rollback(self) -> None:
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error:
            logger.debug("Rollback skipped; no transaction was open.")

    @staticmethod
    def _notify(listeners: list[Listener], changes: ChangeSet) -> None:
        for listener in listeners:
            try:
                listener(changes)
            except Exception:
                logger.exception("Store listener %r failed.", listener)
