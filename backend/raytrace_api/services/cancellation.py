"""
Cancellation token shared between a job's task and its worker thread.
"""

import logging
import threading
from typing import Callable, Optional

from render_engine.base import JobCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Thread-safe, one-shot cancellation flag.

    The dispatcher cancels; worker code polls ``raise_if_cancelled`` or
    registers callbacks (e.g. killing a subprocess) that fire once on
    cancellation. A callback registered after cancellation fires at once.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self.reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove(callback)
        callback()
        return lambda: None

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelledError(self.reason or "cancelled")

    def _remove(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
