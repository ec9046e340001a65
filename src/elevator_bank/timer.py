"""Single-slot delayed action used by each elevator to end its busy window."""

from __future__ import annotations

import threading
from typing import Callable, Optional


class DelayedAction:
    """One pending delayed callback at a time, backed by ``threading.Timer``.

    Scheduling replaces whatever is pending. ``stop`` refuses new schedules,
    gives the pending callback up to ``timeout`` seconds to fire and cancels
    it otherwise. Once ``stop`` returns, no callback runs.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._state = "new"  # new, running, stopped

    @property
    def running(self) -> bool:
        with self._lock:
            return self._state == "running"

    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def start(self) -> None:
        with self._lock:
            if self._state == "new":
                self._state = "running"

    def schedule(self, delay: float, action: Callable[[], None]) -> bool:
        with self._lock:
            if self._state != "running":
                return False
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            timer = threading.Timer(delay, self._fire, args=(self._generation, action))
            timer.name = f"{self.name}-timer"
            timer.daemon = True
            self._timer = timer
            timer.start()
        return True

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Return True if nothing was left to cancel."""
        with self._lock:
            self._state = "stopped"
            timer = self._timer
        if timer is None:
            return True
        try:
            timer.join(timeout)
        except KeyboardInterrupt:
            self._cancel(timer)
            raise
        if not timer.is_alive():
            return True
        self._cancel(timer)
        return False

    def _cancel(self, timer: threading.Timer) -> None:
        with self._lock:
            # bumping the generation makes an in-flight _fire a no-op
            self._generation += 1
            self._timer = None
        timer.cancel()
        timer.join()

    def _fire(self, generation: int, action: Callable[[], None]) -> None:
        with self._lock:
            if generation != self._generation:
                return
        action()
        with self._lock:
            if generation == self._generation:
                self._timer = None
