"""One-shot timer facility driven by an external poll loop."""
from __future__ import annotations

import heapq
import itertools
from typing import Callable, List, Optional, Tuple

from .utility import PerfCounterTimeSource, TimeSource


class TimerHandle:
    """Handle for a single armed timer. Cancelling is idempotent."""

    __slots__ = ("due", "callback", "_active")

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> bool:
        """Disarm the timer. Returns ``True`` only if it was still pending."""
        if not self._active:
            return False
        self._active = False
        self.callback = None  # drop reference so the owner can be collected
        return True

    def _fire(self) -> None:
        callback = self.callback
        self._active = False
        self.callback = None
        callback()


class TimerScheduler:
    """Cooperative scheduler for one-shot callbacks.

    No threads are involved: the owner calls :meth:`poll` from its own loop and
    every due callback runs inside that call. Timers due at the same instant fire
    in the order they were scheduled.
    """

    def __init__(self, time_source: Optional[TimeSource] = None):
        self._clock = time_source or PerfCounterTimeSource()
        self._heap: List[Tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    @property
    def time_source(self) -> TimeSource:
        return self._clock

    def now(self) -> float:
        return self._clock.now()

    def schedule_once(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        if delay < 0:
            raise ValueError(f"Timer delay must be >= 0, got {delay}.")
        handle = TimerHandle(self._clock.now() + delay, callback)
        heapq.heappush(self._heap, (handle.due, next(self._seq), handle))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._heap if h.active)

    def next_due(self) -> Optional[float]:
        """Seconds until the next live timer fires (0 if overdue), or ``None``."""
        self._discard_cancelled()
        if not self._heap:
            return None
        return max(0.0, self._heap[0][0] - self._clock.now())

    def poll(self) -> int:
        """Fire every timer that is due now. Returns the number fired.

        Exceptions raised by a callback propagate to the caller; that timer is
        already consumed and all others stay armed.
        """
        fired = 0
        while True:
            self._discard_cancelled()
            if not self._heap or self._heap[0][0] > self._clock.now():
                return fired
            _, _, handle = heapq.heappop(self._heap)
            fired += 1
            handle._fire()

    def _discard_cancelled(self) -> None:
        while self._heap and not self._heap[0][2].active:
            heapq.heappop(self._heap)
