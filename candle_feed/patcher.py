"""
Live bar patching.

The exchange's own partial bar lags the tape by a few hundred ms to a few
seconds. Right after a boundary we overlay the last trades printed inside
the bar window so high/low/close reflect the very latest prints.
"""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from .errors import FetchFailure
from .models import Bar, BucketedBar, Trade
from .timing import to_iso


def select_candidate(candidates: Sequence[BucketedBar], opentime: int, resolution: int) -> BucketedBar:
    """
    Pick the partial bar that belongs to `opentime`.

    Just after a boundary the exchange can still report the previous bar as
    the newest "partial", in which case the second row is the one we want.
    """
    if not candidates:
        raise FetchFailure("Exchange returned no partial bars")

    first = candidates[0]
    if first.open_epoch(resolution) == opentime:
        return first
    if len(candidates) < 2:
        raise FetchFailure(
            f"Exchange partial bar opens at {first.open_epoch(resolution)}, expected {opentime}"
        )

    second = candidates[1]
    if second.open_epoch(resolution) != opentime:
        # Either row would stamp another bar's OHLCV onto `opentime`
        raise FetchFailure(
            f"Neither partial bar opens at {opentime} "
            f"(got {first.open_epoch(resolution)}, {second.open_epoch(resolution)})"
        )
    return second


def filter_trades(trades: Sequence[Trade], opentime: int, resolution: int) -> List[Trade]:
    """Trades inside [opentime, opentime + resolution), order preserved (most recent first)."""
    end = opentime + resolution
    return [t for t in trades if opentime <= t.epoch < end]


def patch_bar(
    candidates: Sequence[BucketedBar],
    trades: Sequence[Trade],
    opentime: int,
    resolution: int,
    now: int,
) -> Bar:
    bar = select_candidate(candidates, opentime, resolution)
    high, low, close = bar.high, bar.low, bar.close

    window = filter_trades(trades, opentime, resolution)
    if window:
        prices = np.fromiter((t.price for t in window), dtype=float, count=len(window))
        # nan-aware so a null exchange high/low (no prints yet) defers to the trades
        high = float(np.nanmax([high, prices.max()]))
        low = float(np.nanmin([low, prices.min()]))
        close = float(prices[0])

    return Bar(
        open_epoch=opentime,
        open_timestamp=to_iso(opentime),
        close_timestamp=bar.timestamp,
        retrieved_timestamp=to_iso(now),
        open=bar.open,
        high=high,
        low=low,
        close=close,
        volume=bar.volume,
        live=True,
    )
