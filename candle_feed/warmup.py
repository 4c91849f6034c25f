"""
Warmup (history) backfill.

The exchange publishes completed bars with a noticeable delay (10-20s after
close is common), so before pulling history we poll for the bar that closed
at the current boundary. Only then is the batch guaranteed to end right
before the first live bar, with no gap and no duplicate.
"""

from __future__ import annotations

import time
from typing import Callable, List, Optional

from .errors import WarmupUnavailable
from .exchange import ExchangeClient
from .logs import c_rows, c_var, log_info, log_warn
from .models import Bar, BucketedBar
from .timing import to_iso

MAX_WARMUP_BARS = 1000
WARMUP_MAX_ATTEMPTS = 20
POLL_DELAY_SECONDS = 2.5


def warmup_bar(raw: BucketedBar, resolution: int) -> Bar:
    open_epoch = raw.close_epoch - resolution
    return Bar(
        open_epoch=open_epoch,
        open_timestamp=to_iso(open_epoch),
        close_timestamp=raw.timestamp,
        retrieved_timestamp=raw.timestamp,
        open=raw.open,
        high=raw.high,
        low=raw.low,
        close=raw.close,
        volume=raw.volume,
        live=False,
    )


class WarmupReconciler:
    """
    Fetches up to MAX_WARMUP_BARS most-recently-closed bars, oldest first.

    Exhausting the publication-lag wait raises WarmupUnavailable unless
    `best_effort` is set, in which case we log and fetch whatever is there.
    """

    def __init__(
        self,
        client: ExchangeClient,
        *,
        max_attempts: int = WARMUP_MAX_ATTEMPTS,
        poll_delay: float = POLL_DELAY_SECONDS,
        best_effort: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.max_attempts = max_attempts
        self.poll_delay = poll_delay
        self.best_effort = best_effort
        self._sleep = sleep

    def wait_for_publication(self, bin_label: str, resolution: int, previous_opentime: int) -> bool:
        """Poll the single latest closed bar until it opens at `previous_opentime`."""
        shown_info = False
        last_seen: Optional[int] = None

        for attempt in range(1, self.max_attempts + 1):
            latest = self.client.get_bucketed_bars(bin_label, partial=False, count=1, reverse=True)
            if latest:
                last_seen = latest[0].open_epoch(resolution)
                if last_seen == previous_opentime:
                    return True

            if not shown_info:
                log_info("Waiting for exchange to publish...")
                shown_info = True

            if attempt < self.max_attempts:
                self._sleep(self.poll_delay)

        if not self.best_effort:
            raise WarmupUnavailable(previous_opentime, self.max_attempts, last_seen)

        log_warn(f"Exchange still has not published the bar opening at {c_var(previous_opentime)} "
                 f"after {c_var(self.max_attempts)} attempts; warmup may end one bar early.")
        return False

    def fetch(self, bin_label: str, resolution: int, opentime: int, count: int, *, offline: bool = False) -> List[Bar]:
        numbars = min(MAX_WARMUP_BARS, int(count))
        if numbars <= 0:
            return []

        if not offline:
            self.wait_for_publication(bin_label, resolution, opentime - resolution)

        raw = self.client.get_bucketed_bars(bin_label, partial=False, count=numbars, reverse=True)
        raw.reverse()
        bars = [warmup_bar(r, resolution) for r in raw]
        log_info(f"Warmup: received {c_rows(len(bars))} of {c_var(numbars)} requested bars")
        return bars
