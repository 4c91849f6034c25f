#!/usr/bin/env python3
"""
Command-line interface for the candle_feed package.

Parses args, prints a compact colored run summary, then prints every bar
the feed publishes until interrupted, stopped, or a consumer goes fatal.
"""

from __future__ import annotations

import argparse
import sys
import time
from typing import List, Optional

from colorama import Fore, Style

from . import FeedConfig, FeedController
from .errors import ConsumerLatencyExceeded, FeedError, InsufficientLeadTime
from .logs import COLOR_TYPE, COLOR_VAR, ERROR, INFO, SUCCESS, WARNING
from .models import Bar
from .timing import BITMEX_BINS, DEFAULT_BIN

# -----------------------------
# Constants
# -----------------------------
SEP_BULLET: str = " · "
EMPTY_DASH: str = "—"
RETRY_SLACK_SECONDS: float = 1.0

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_START_FAILED = 2
EXIT_INTERRUPTED = 130


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="candle-feed",
        description=(
            f"{INFO} Candle Feed — live OHLCV bars from exchange REST polling {Style.RESET_ALL}\n\n"
            "Optionally backfills recent closed bars, then publishes the just-closed bar\n"
            "at every boundary, patched with the latest trades.\n"
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "--resolution",
        choices=list(BITMEX_BINS),
        default=DEFAULT_BIN,
        help=f"Bar size (default: {DEFAULT_BIN})",
    )
    parser.add_argument("--warmup", type=int, default=0, help="Closed bars to backfill before streaming (max 1000)")
    parser.add_argument("--offline", action="store_true", help="Skip publication wait and live polling (warmup only)")
    parser.add_argument("--symbol", default=None, help="Instrument symbol (default: XBTUSD or $CANDLE_FEED_SYMBOL)")
    parser.add_argument("--api-url", default=None, help="REST API root (default: BitMEX or $CANDLE_FEED_API_URL)")
    parser.add_argument(
        "--best-effort-warmup",
        action="store_true",
        help="Proceed with warmup even if the exchange never publishes the latest closed bar",
    )
    parser.add_argument(
        "--retry-start",
        action="store_true",
        help="If the current bar closes too soon to boot, wait for it and try once more",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging and timing diagnostics")
    return parser.parse_args(argv)


def _fmt_bool(b: bool) -> str:
    return f"{Fore.GREEN}True{Style.RESET_ALL}" if b else f"{Fore.YELLOW}False{Style.RESET_ALL}"


def _one_line_run_summary(cfg: FeedConfig) -> str:
    """
    Single colored one-liner of the run parameters, e.g.
      [INFO] XBTUSD · res=5m · warmup=100 · offline=False · api=https://www.bitmex.com/api/v1
    """
    parts = [
        f"{Fore.MAGENTA}{cfg.symbol}{Style.RESET_ALL}",
        f"{COLOR_VAR}res{Style.RESET_ALL}={COLOR_TYPE}{cfg.resolution}{Style.RESET_ALL}",
        f"{COLOR_VAR}warmup{Style.RESET_ALL}={COLOR_TYPE}{cfg.warmup or EMPTY_DASH}{Style.RESET_ALL}",
        f"{COLOR_VAR}offline{Style.RESET_ALL}={_fmt_bool(cfg.offline)}",
        f"{COLOR_VAR}api{Style.RESET_ALL}={COLOR_TYPE}{cfg.api_url}{Style.RESET_ALL}",
        f"{COLOR_VAR}verbose{Style.RESET_ALL}={_fmt_bool(cfg.verbose)}",
    ]
    return f"{INFO} " + SEP_BULLET.join(parts) + f"{Style.RESET_ALL}"


def print_bar(bar: Bar) -> None:
    color = Fore.GREEN if bar.live else Fore.CYAN
    tag = "[LIVE]" if bar.live else "[WARMUP]"
    print(f"{color}{tag}{Style.RESET_ALL} {bar.open_timestamp} "
          f"o={bar.open} h={bar.high} l={bar.low} c={bar.close} v={bar.volume}", flush=True)


def _start(feed: FeedController, cfg: FeedConfig, retry: bool) -> None:
    try:
        feed.start(cfg)
    except InsufficientLeadTime as exc:
        if not retry:
            raise
        wait_s = max(0, exc.retry_after_ms) / 1000.0 + RETRY_SLACK_SECONDS
        sys.stderr.write(f"{WARNING} {exc}. Retrying in {wait_s:.1f}s.{Style.RESET_ALL}\n")
        time.sleep(wait_s)
        feed.start(cfg)


def run_cli(cfg: FeedConfig, retry_start: bool = False) -> int:
    """
    Runs the feed and prints bars. Returns a process exit code.
    """
    feed = FeedController()
    feed.subscribe(print_bar)

    try:
        _start(feed, cfg, retry_start)
    except FeedError as exc:
        sys.stderr.write(f"{ERROR} Failed to start feed: {exc}{Style.RESET_ALL}\n")
        return EXIT_START_FAILED
    except KeyboardInterrupt:
        sys.stderr.write(f"{WARNING} Interrupted by user.{Style.RESET_ALL}\n")
        return EXIT_INTERRUPTED

    try:
        # Short waits keep the main thread responsive to Ctrl-C
        while not feed.wait(timeout=1.0):
            pass
    except KeyboardInterrupt:
        feed.stop()
        sys.stderr.write(f"{WARNING} Interrupted by user.{Style.RESET_ALL}\n")
        return EXIT_INTERRUPTED

    if feed.fatal is not None:
        if isinstance(feed.fatal, ConsumerLatencyExceeded):
            sys.stderr.write(f"{ERROR} {feed.fatal}{Style.RESET_ALL}\n")
        else:
            sys.stderr.write(f"{ERROR} Feed stopped: {feed.fatal!r}{Style.RESET_ALL}\n")
        return EXIT_FATAL

    print(f"{SUCCESS} Done. {feed.state.bars_emitted} bars published.{Style.RESET_ALL}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)

    try:
        cfg = FeedConfig(
            resolution=args.resolution,
            warmup=args.warmup,
            offline=args.offline,
            symbol=args.symbol.upper() if args.symbol else None,
            api_url=args.api_url,
            best_effort_warmup=args.best_effort_warmup,
            verbose=args.verbose,
        )
    except ValueError as exc:
        sys.stderr.write(f"{ERROR} {exc}{Style.RESET_ALL}\n")
        raise SystemExit(EXIT_START_FAILED)

    print(_one_line_run_summary(cfg))
    raise SystemExit(run_cli(cfg, retry_start=args.retry_start))


if __name__ == "__main__":
    main()
