"""Cancellable background work for drill sessions.

Playback, feedback and auto-advance delays run as tasks. Each task gets a
TaskHandle; sleeping through the handle returns early the moment the handle
is cancelled, so stopping a session never waits on a pending timer.
"""
from typing import Callable
import logging
import threading

logger = logging.getLogger(__name__)


class TaskHandle:
    """Cancellation token and sleep primitive for one task."""

    def __init__(self, name: str = "task"):
        self.name = name
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def sleep(self, seconds: float) -> bool:
        """Wait ``seconds``. Returns True if the full wait elapsed, False if cancelled."""
        if seconds <= 0:
            return not self.cancelled
        return not self._cancelled.wait(seconds)


class ThreadScheduler:
    """Run each task on its own daemon thread."""

    def spawn(self, fn: Callable[[TaskHandle], None], name: str = "task") -> TaskHandle:
        handle = TaskHandle(name)

        def _run():
            try:
                fn(handle)
            except Exception:
                logger.exception("Background task %s failed", name)

        threading.Thread(target=_run, name=f"koch-{name}", daemon=True).start()
        return handle
