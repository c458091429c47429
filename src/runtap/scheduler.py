"""Cancellable deferred actions.

PUBLIC API:
  - ScheduledTask: Handle for one deferred callback
  - Scheduler: Base abstract class for deferred-call schedulers
  - TimerScheduler: threading.Timer based scheduler
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable

__all__ = ["ScheduledTask", "Scheduler", "TimerScheduler"]

logger = logging.getLogger(__name__)


class ScheduledTask:
    """One deferred callback.

    A task runs at most once. Once cancel() returns True the callback is
    guaranteed never to start.

    Attributes:
        delay: Seconds between scheduling and firing.
    """

    def __init__(self, callback: Callable[[], None], delay: float, on_cancel: Callable[[], None] | None = None):
        self.delay = delay
        self._callback = callback
        self._on_cancel = on_cancel
        self._lock = threading.Lock()
        self._state = "pending"

    @property
    def pending(self) -> bool:
        return self._state == "pending"

    @property
    def cancelled(self) -> bool:
        return self._state == "cancelled"

    @property
    def done(self) -> bool:
        return self._state == "done"

    def run(self) -> None:
        """Fire the callback unless cancelled or already fired."""
        with self._lock:
            if self._state != "pending":
                return
            self._state = "running"

        try:
            self._callback()
        except Exception:
            logger.exception("Scheduled task failed")
        finally:
            self._state = "done"

    def cancel(self) -> bool:
        """Cancel the task.

        Returns:
            True if the task was pending and will never run, False if it
            already started, finished or was cancelled.
        """
        with self._lock:
            if self._state != "pending":
                return False
            self._state = "cancelled"

        if self._on_cancel:
            self._on_cancel()
        return True


class Scheduler(ABC):
    """Base abstract class for deferred-call schedulers."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        """Schedule callback to run once after delay seconds.

        Args:
            delay: Seconds to wait.
            callback: Zero-argument callable.

        Returns:
            Task handle that can cancel the call.
        """
        pass


class TimerScheduler(Scheduler):
    """Runs each deferred call on its own daemon threading.Timer."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        timer: threading.Timer | None = None

        def _cancel_timer():
            if timer:
                timer.cancel()

        task = ScheduledTask(callback, delay, on_cancel=_cancel_timer)
        timer = threading.Timer(delay, task.run)
        timer.daemon = True
        timer.name = f"runtap-timer-{id(task):x}"
        timer.start()
        return task
