"""Shared fixtures: a fake exchange, a settable clock and a recording timer."""
from typing import Callable, List, Optional

import pytest

from candle_feed.models import BucketedBar, Trade
from candle_feed.timing import to_iso

# 2024-01-01T12:00:00.000Z, a boundary for every supported bin below 1d
T0 = 1_704_110_400_000
RES_5M = 300_000


def bucket(close_ms: int, o=100.0, h=110.0, l=90.0, c=105.0, v=1_000.0) -> BucketedBar:
    return BucketedBar(timestamp=to_iso(close_ms), open=o, high=h, low=l, close=c, volume=v)


def trade(ts_ms: int, price: float, size: float = 1.0) -> Trade:
    return Trade(timestamp=to_iso(ts_ms), size=size, price=price)


class FakeClock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeTimer:
    def __init__(self, interval: float, function: Callable[[], None]):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function()


class TimerFactory:
    def __init__(self):
        self.timers: List[FakeTimer] = []

    def __call__(self, interval, function) -> FakeTimer:
        t = FakeTimer(interval, function)
        self.timers.append(t)
        return t

    @property
    def last(self) -> Optional[FakeTimer]:
        return self.timers[-1] if self.timers else None

    @property
    def pending(self) -> List[FakeTimer]:
        return [t for t in self.timers if t.started and not t.cancelled]


class FakeExchange:
    """
    Stands in for ExchangeClient.

    latest:   responses for the single-latest-bar poll (count=1), consumed in
              order; the last one repeats.
    history:  reverse-chronological closed bars returned for count > 1.
    partials: responses for partial=True calls, consumed in order; the last
              one repeats. An Exception instance is raised instead of returned.
    """

    def __init__(self, latest=None, history=None, partials=None, trades=None):
        self.latest = list(latest or [])
        self.history = list(history or [])
        self.partials = list(partials or [])
        self.trades = list(trades or [])
        self.calls = []

    @staticmethod
    def _next(queue):
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return list(item)

    def get_bucketed_bars(self, bin_size, *, partial, count, reverse=True):
        self.calls.append(("bucketed", bin_size, partial, count, reverse))
        if partial:
            return self._next(self.partials)
        if count == 1:
            return self._next(self.latest)
        return list(self.history[:count])

    def get_recent_trades(self, count=200, *, reverse=True):
        self.calls.append(("trades", count, reverse))
        return list(self.trades)


@pytest.fixture
def timers():
    return TimerFactory()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append
