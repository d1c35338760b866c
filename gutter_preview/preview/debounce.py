from __future__ import annotations

import logging
from typing import Callable

from PySide6.QtCore import QObject, QTimer


logger = logging.getLogger(__name__)


class DebounceScheduler(QObject):
    """One cancellable single-shot timer per key; last request wins."""

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._timers: dict[str, QTimer] = {}
        self._tasks: dict[str, Callable[[], None]] = {}

    def schedule(self, key: str, delay_ms: int, task: Callable[[], None]) -> None:
        self.cancel(key)
        timer = QTimer(self)
        timer.setSingleShot(True)
        timer.timeout.connect(lambda k=key, t=timer: self._fire(k, t))
        self._timers[key] = timer
        self._tasks[key] = task
        timer.start(max(0, int(delay_ms)))

    def cancel(self, key: str) -> bool:
        timer = self._timers.pop(key, None)
        self._tasks.pop(key, None)
        if timer is None:
            return False
        timer.stop()
        timer.deleteLater()
        return True

    def cancel_all(self) -> None:
        for key in list(self._timers.keys()):
            self.cancel(key)

    def is_pending(self, key: str) -> bool:
        return key in self._timers

    def pending_keys(self) -> list[str]:
        return list(self._timers.keys())

    def _fire(self, key: str, timer: QTimer) -> None:
        # A replaced timer can still deliver a queued timeout; ignore it.
        if self._timers.get(key) is not timer:
            return
        self._timers.pop(key, None)
        task = self._tasks.pop(key, None)
        timer.deleteLater()
        if task is None:
            return
        try:
            task()
        except Exception:
            # Debounced work should never crash the UI event loop.
            logger.exception("Debounced task for %s failed", key)
