"""
Drift-correcting tick scheduler.

A fixed-period repeating timer accumulates error and stretches by however
long each handler runs. Instead, after every tick we recompute the distance
to the next absolute boundary and arm a single one-shot timer for exactly
that long.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from .errors import SchedulingLag
from .timing import FRONT_RUN, boundary, now_ms, quarter_guard, remaining

MIN_DELAY_MS = 1


class Scheduler:
    """
    Owns the one pending wake-up. Arming always replaces (cancels) the
    previous timer, so two ticks can never be scheduled in parallel.
    """

    def __init__(
        self,
        front_run: int = FRONT_RUN,
        *,
        clock: Callable[[], int] = now_ms,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.front_run = front_run
        self._clock = clock
        self._timer_factory = timer_factory
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self.pending_delay_ms: Optional[int] = None

    def next_delay(self, resolution: int, *, now: Optional[int] = None, guard: bool = True) -> int:
        """
        Delay until the next front-run wake-up.

        With `guard`, a result under a quarter bar means "now" is already in
        the front-run window of the boundary we just served, so the wake-up
        is pushed one full bar ahead.
        """
        n = self._clock() if now is None else now
        delay = remaining(n, resolution, self.front_run)
        if guard:
            delay = quarter_guard(delay, resolution)
        return max(MIN_DELAY_MS, delay)

    def delay_until_close(self, opentime: int, resolution: int, *, now: Optional[int] = None) -> int:
        """Delay until the front-run wake-up for the bar opening at `opentime` (already due => minimum)."""
        n = self._clock() if now is None else now
        return max(MIN_DELAY_MS, opentime + resolution - self.front_run - n)

    def check_lag(self, opentime: int, resolution: int, *, now: Optional[int] = None) -> Optional[SchedulingLag]:
        n = self._clock() if now is None else now
        close = opentime + resolution
        if n > close:
            return SchedulingLag(n - close, opentime)
        return None

    def closing_opentime(self, resolution: int, *, now: Optional[int] = None) -> int:
        """Open boundary of the bar whose front-run wake-up is due now."""
        n = self._clock() if now is None else now
        return boundary(n + self.front_run, resolution) - resolution

    def arm(self, delay_ms: int, callback: Callable[[], None]) -> int:
        delay_ms = max(MIN_DELAY_MS, int(delay_ms))
        timer = self._timer_factory(delay_ms / 1000.0, callback)
        timer.daemon = True
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = timer
            self.pending_delay_ms = delay_ms
        timer.start()
        return delay_ms

    def arm_next(self, resolution: int, callback: Callable[[], None], *, guard: bool = True) -> int:
        return self.arm(self.next_delay(resolution, guard=guard), callback)

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self.pending_delay_ms = None

    @property
    def armed(self) -> bool:
        return self._timer is not None
