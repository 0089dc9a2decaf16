"""Background recomputation of derived statistics."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

from .models import TimerRecord
from .store import ChangeSet, Store

logger = logging.getLogger(__name__)

R = TypeVar("R")


class StatisticsRefresher(Generic[R]):
    """Run ``compute`` over a record snapshot, one pass at a time.

    A request made while a pass is running is folded into a single follow-up
    pass. The result is published only once a pass has finished.
    """

    def __init__(
        self,
        store: Store,
        compute: Callable[[list[TimerRecord]], R],
        on_result: Optional[Callable[[R], None]] = None,
        *,
        background: bool = True,
    ) -> None:
        self._store = store
        self._compute = compute
        self._on_result = on_result
        self._background = background
        self._lock = threading.Lock()
        self._running = False
        self._pending = False
        self._idle = threading.Event()
        self._idle.set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.latest: Optional[R] = None
        self.passes = 0

    def attach(self) -> None:
        """Refresh whenever a save touches timer records."""
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._on_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def request(self) -> bool:
        """Ask for a pass; returns False when folded into one already running."""
        with self._lock:
            if self._running:
                self._pending = True
                return False
            self._running = True
            self._idle.clear()
        if self._background:
            threading.Thread(
                target=self._drain, name="statistics-refresh", daemon=True
            ).start()
        else:
            self._drain()
        return True

    def refresh_now(self, timeout: Optional[float] = None) -> Optional[R]:
        """Request a pass and wait until no pass is in flight."""
        self.request()
        self.wait_idle(timeout)
        return self.latest

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        return self._idle.wait(timeout)

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def _on_change(self, changes: ChangeSet) -> None:
        if changes.touches(TimerRecord):
            self.request()

    def _drain(self) -> None:
        while True:
            try:
                self._run_pass()
            except Exception:
                logger.exception("Statistics refresh failed.")
            with self._lock:
                if not self._pending:
                    self._running = False
                    self._idle.set()
                    return
                self._pending = False

    def _run_pass(self) -> None:
        records = self._store.fetch_all(TimerRecord)
        result = self._compute(records)
        with self._lock:
            self.latest = result
            self.passes += 1
        if self._on_result is not None:
            self._on_result(result)
