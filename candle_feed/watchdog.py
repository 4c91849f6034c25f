from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import ConsumerLatencyExceeded
from .models import Bar

MAX_USER_LATENCY = 15 * 1000    # ms; a consumer this slow would desync the feed from real time


@dataclass(frozen=True)
class FatalLatencyExceeded:
    """Report returned by the watchdog when a consumer blew the latency budget."""
    elapsed_ms: float
    limit_ms: int
    open_epoch: int

    def to_exception(self) -> ConsumerLatencyExceeded:
        return ConsumerLatencyExceeded(self.elapsed_ms, self.limit_ms)


class LatencyWatchdog:
    """
    Times the synchronous part of a publish call.

    Only wall time until the handler returns control counts; anything the
    handler defers to other threads afterwards is not measured. The watchdog
    never exits the process itself, it reports and lets the owner decide.
    """

    def __init__(self, limit_ms: int = MAX_USER_LATENCY, *, perf_counter: Callable[[], float] = time.perf_counter):
        self.limit_ms = limit_ms
        self._perf_counter = perf_counter
        self.last_elapsed_ms: float = 0.0

    def run(self, publish: Callable[[Bar], None], bar: Bar) -> Optional[FatalLatencyExceeded]:
        p = self._perf_counter()
        publish(bar)
        self.last_elapsed_ms = (self._perf_counter() - p) * 1000.0
        if self.last_elapsed_ms >= self.limit_ms:
            return FatalLatencyExceeded(self.last_elapsed_ms, self.limit_ms, bar.open_epoch)
        return None
