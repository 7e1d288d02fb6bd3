"""Cancelable delay-and-restart timer over a pluggable scheduler."""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from typing import Callable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Wall-clock scheduler backed by daemon threading.Timer instances."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class _ManualHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock: callbacks run only when advance() moves time past their deadline."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self._queue: List[Tuple[float, int, _ManualHandle, Callable[[], None]]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _ManualHandle()
        heapq.heappush(self._queue, (self.now + delay, next(self._counter), handle, callback))
        return handle

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            self.now = due
            if not handle.cancelled:
                callback()
        self.now = target

    @property
    def pending(self) -> int:
        return sum(1 for entry in self._queue if not entry[2].cancelled)


class DebounceTimer:
    """Delay-and-restart timer.

    The callback receives the generation of the deadline that expired. A
    caller holding its own lock can pass it to ``is_current`` to drop a
    deadline superseded by an ``arm()`` that raced the expiry.
    """

    def __init__(self, delay: float, callback: Callable[[int], None], scheduler: Optional[Scheduler] = None) -> None:
        self.delay = delay
        self.callback = callback
        self.scheduler = scheduler or ThreadingScheduler()
        self._lock = threading.Lock()
        self._handle: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self) -> None:
        """Cancel any pending deadline and start a fresh one."""
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._generation += 1
            generation = self._generation
            self._handle = self.scheduler.call_later(self.delay, lambda: self._expire(generation))

    def cancel(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None
            self._generation += 1

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def fire(self) -> None:
        """Run the callback now, dropping any pending deadline."""
        self.cancel()
        with self._lock:
            generation = self._generation
        self.callback(generation)

    def _expire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug("Ignoring superseded debounce deadline %s", generation)
                return
            self._handle = None
        self.callback(generation)
