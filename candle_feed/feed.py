"""
FeedController: owns the feed state and drives start-up and the live loop.

Life cycle:

    CREATED --start()--> LEAD_TIME_FAILED          (InsufficientLeadTime raised)
                     +-> WARMING_UP --> LIVE       (one tick per bar, forever)
                                    +-> OFFLINE    (no live ticks armed)
    LIVE --> FATAL    (consumer too slow, or a consumer raised)
    LIVE --> STOPPED  (stop())

Each live tick fetches the exchange's partial bars and the latest trades
in parallel, patches the bar, hands it to subscribers under the latency
watchdog, advances one bar and arms exactly one next tick. A tick that
fires more than a bar late skips ahead to the bar closing now.
"""

from __future__ import annotations

import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .errors import FeedError, InsufficientLeadTime
from .events import BarEmitter, BarHandler
from .exchange import API_URL, DEFAULT_SYMBOL, MAX_TRADES, ExchangeClient
from .logs import (
    c_desc,
    c_ts,
    c_var,
    debug_timing_enabled,
    log_error,
    log_info,
    log_update,
    log_lag,
    log_timing,
)
from .models import Bar, BucketedBar, FeedState, Trade
from .patcher import patch_bar
from .scheduler import Scheduler
from .timing import (
    DEFAULT_BIN,
    boundary,
    has_sufficient_lead_time,
    now_ms,
    remaining,
    resolve_bin,
    safety_threshold,
    to_iso,
)
from .warmup import WarmupReconciler
from .watchdog import LatencyWatchdog

ENV_SYMBOL_KEY: str = "CANDLE_FEED_SYMBOL"
ENV_API_URL_KEY: str = "CANDLE_FEED_API_URL"


class FeedPhase(Enum):
    CREATED = "created"
    LEAD_TIME_FAILED = "lead_time_failed"
    WARMING_UP = "warming_up"
    LIVE = "live"
    OFFLINE = "offline"
    FATAL = "fatal"
    STOPPED = "stopped"


class FeedConfig:
    """
    Options accepted by FeedController.start().

    symbol/api_url fall back to CANDLE_FEED_SYMBOL / CANDLE_FEED_API_URL,
    then to the built-in defaults.
    """
    def __init__(
        self, *,
        resolution: str = DEFAULT_BIN,
        warmup: int = 0,
        offline: bool = False,
        symbol: Optional[str] = None,
        api_url: Optional[str] = None,
        best_effort_warmup: bool = False,
        verbose: bool = False,
    ):
        resolve_bin(resolution)
        warmup = int(warmup or 0)
        if warmup < 0:
            raise ValueError(f"warmup must be a non-negative bar count, got {warmup}")

        self.resolution = resolution
        self.warmup = warmup
        self.offline = bool(offline)
        self.symbol = symbol or os.environ.get(ENV_SYMBOL_KEY) or DEFAULT_SYMBOL
        self.api_url = api_url or os.environ.get(ENV_API_URL_KEY) or API_URL
        self.best_effort_warmup = bool(best_effort_warmup)
        self.verbose = bool(verbose)


class FeedController:
    """
    Single-symbol live bar feed.

    Collaborators are injectable; anything left as None is built from the
    config passed to start(), and rebuilt on every later start() so a new
    symbol, API root or warmup policy takes effect.
    """

    def __init__(
        self,
        client: Optional[ExchangeClient] = None,
        emitter: Optional[BarEmitter] = None,
        *,
        scheduler: Optional[Scheduler] = None,
        watchdog: Optional[LatencyWatchdog] = None,
        reconciler: Optional[WarmupReconciler] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.client = client
        self.emitter = emitter or BarEmitter()
        self.scheduler = scheduler or Scheduler(clock=clock)
        self.watchdog = watchdog or LatencyWatchdog()
        self.reconciler = reconciler
        self._own_client = client is None
        self._own_reconciler = reconciler is None
        self._clock = clock

        self.state = FeedState()
        self.phase = FeedPhase.CREATED
        self.config: Optional[FeedConfig] = None
        self.fatal: Optional[BaseException] = None
        self.bars_dropped = 0
        self.debug_timing = debug_timing_enabled()
        self._done = threading.Event()

    # -----------------------------
    # Public API
    # -----------------------------
    def subscribe(self, handler: BarHandler) -> BarHandler:
        return self.emitter.subscribe(handler)

    def start(self, config: Optional[FeedConfig] = None) -> bool:
        """
        Boot the feed. Raises InsufficientLeadTime when the current bar closes
        too soon, and WarmupUnavailable / FetchFailure if warmup cannot be
        served. Returns False only if a consumer turned fatal during warmup.
        """
        cfg = config or FeedConfig()
        self.config = cfg
        self.debug_timing = debug_timing_enabled(cfg.verbose)
        self.scheduler.cancel()
        self.fatal = None
        self._done.clear()

        if self._own_client:
            if self.client is not None:
                self.client.close()
            self.client = ExchangeClient(cfg.symbol, cfg.api_url, verbose=cfg.verbose)
        if self._own_reconciler:
            self.reconciler = WarmupReconciler(self.client, best_effort=cfg.best_effort_warmup)

        self.state.bin_label = cfg.resolution
        self.state.resolution = resolve_bin(cfg.resolution)
        resolution = self.state.resolution

        now = self._clock()
        left = remaining(now, resolution, self.scheduler.front_run)
        threshold = safety_threshold(cfg.warmup > 0)

        # Plenty of time is needed to boot, more so when warmup requests hit the exchange
        if not has_sufficient_lead_time(left, threshold):
            self.phase = FeedPhase.LEAD_TIME_FAILED
            raise InsufficientLeadTime(left, threshold, left + self.scheduler.front_run)

        # The live bar we're going to push next once it has closed
        self.state.opentime = boundary(now, resolution)

        if cfg.warmup > 0:
            self.phase = FeedPhase.WARMING_UP
            bars = self.reconciler.fetch(
                self.state.bin_label, resolution, self.state.opentime, cfg.warmup, offline=cfg.offline
            )
            for bar in bars:
                if not self._emit(bar):
                    return False

        self.state.initialized = True

        if cfg.offline:
            self.phase = FeedPhase.OFFLINE
            log_info(f"Offline mode: {c_var(self.state.bars_emitted)} warmup bars emitted, live polling disabled.")
            self._done.set()
            return True

        # Recalculate in case warmup took a while
        self.phase = FeedPhase.LIVE
        delay = self.scheduler.arm(
            self.scheduler.delay_until_close(self.state.opentime, resolution), self.stream
        )
        log_update(f"Streaming {c_var(cfg.symbol)} {c_var(self.state.bin_label)} bars; "
                 f"first close {c_ts(to_iso(self.state.opentime + resolution))} in {c_var(f'{delay}ms')}")
        return True

    def stream(self) -> None:
        """One live tick. Re-arms itself unless the feed stopped or went fatal."""
        if self.phase is not FeedPhase.LIVE:
            return

        t0 = time.perf_counter()
        resolution = self.state.resolution
        opentime = self.state.opentime

        lag = self.scheduler.check_lag(opentime, resolution)
        if lag is not None:
            log_lag(f"Warning: poll is lagging by {c_var(f'{lag.lag_ms}ms')}")
            # Stalled past whole bars: jump to the bar closing now, those in between are lost
            closing = self.scheduler.closing_opentime(resolution)
            if closing > opentime:
                skipped = (closing - opentime) // resolution
                self.bars_dropped += skipped
                log_lag(f"Skipping {c_var(skipped)} bar(s) from {c_ts(to_iso(opentime))}; "
                        f"serving {c_ts(to_iso(closing))}")
                opentime = self.state.opentime = closing

        bar: Optional[Bar] = None
        try:
            candidates, trades = self._fetch_tick()
            bar = patch_bar(candidates, trades, opentime, resolution, self._clock())
        except (FeedError, ValueError, KeyError, TypeError) as e:
            self.bars_dropped += 1
            log_error(f"Dropping bar {c_ts(to_iso(opentime))}: {c_desc(e)}")
        fetch_s = time.perf_counter() - t0

        if bar is not None and not self._emit(bar):
            return

        self.state.opentime += resolution

        if self.phase is not FeedPhase.LIVE:
            return
        delay = self.scheduler.arm_next(resolution, self.stream)
        if self.phase is not FeedPhase.LIVE:
            # stop() landed while this tick was running
            self.scheduler.cancel()

        if self.debug_timing:
            log_timing(
                f"tick opentime={opentime} fetch_s={fetch_s:.3f} "
                f"publish_ms={self.watchdog.last_elapsed_ms:.1f} next_delay_ms={delay}"
            )

    def stop(self) -> None:
        if self.phase not in (FeedPhase.FATAL, FeedPhase.STOPPED):
            self.phase = FeedPhase.STOPPED
        self.scheduler.cancel()
        self._done.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the feed stops, goes fatal or finishes offline. True if it did."""
        return self._done.wait(timeout)

    # -----------------------------
    # Internals
    # -----------------------------
    def _fetch_tick(self) -> Tuple[List[BucketedBar], List[Trade]]:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="candle-feed-fetch") as pool:
            bars_f = pool.submit(
                self.client.get_bucketed_bars, self.state.bin_label, partial=True, count=2, reverse=True
            )
            trades_f = pool.submit(self.client.get_recent_trades, MAX_TRADES, reverse=True)
            return bars_f.result(), trades_f.result()

    def _emit(self, bar: Bar) -> bool:
        try:
            report = self.watchdog.run(self.emitter.publish, bar)
        except Exception as exc:  # a failing consumer is fatal to the timeline
            log_error(f"Bar consumer raised: {c_desc(repr(exc))}")
            self._fail(exc)
            return False

        if report is not None:
            err = report.to_exception()
            log_error(str(err))
            self._fail(err)
            return False

        self.state.bars_emitted += 1
        return True

    def _fail(self, exc: BaseException) -> None:
        self.fatal = exc
        self.phase = FeedPhase.FATAL
        self.scheduler.cancel()
        self._done.set()
