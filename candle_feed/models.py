from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from .timing import DEFAULT_BIN, DEFAULT_RESOLUTION, to_epoch_ms


def _num(value: Any) -> float:
    # The exchange reports null OHLC for bins with no trades.
    return float(value) if value is not None else float("nan")


@dataclass(frozen=True)
class BucketedBar:
    """
    One row of the exchange's /trade/bucketed endpoint.

    `timestamp` is the bar's *close* time, as the exchange labels its bins.
    """
    timestamp: str
    open: float
    high: float
    low: float
    close: float
    volume: float

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "BucketedBar":
        return cls(
            timestamp=str(row["timestamp"]),
            open=_num(row.get("open")),
            high=_num(row.get("high")),
            low=_num(row.get("low")),
            close=_num(row.get("close")),
            volume=float(row.get("volume") or 0.0),
        )

    @property
    def close_epoch(self) -> int:
        return to_epoch_ms(self.timestamp)

    def open_epoch(self, resolution: int) -> int:
        return self.close_epoch - resolution


@dataclass(frozen=True)
class Trade:
    """A single print from the exchange's /trade endpoint."""
    timestamp: str
    size: float
    price: float

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Trade":
        return cls(
            timestamp=str(row["timestamp"]),
            size=float(row.get("size") or 0.0),
            price=float(row["price"]),
        )

    @property
    def epoch(self) -> int:
        return to_epoch_ms(self.timestamp)


@dataclass(frozen=True)
class Bar:
    """
    An OHLCV bar handed to consumers.

    live=False marks warmup (history) bars; live=True marks the bar just
    closed on the real-time stream.
    """
    open_epoch: int
    open_timestamp: str
    close_timestamp: str
    retrieved_timestamp: str
    open: float
    high: float
    low: float
    close: float
    volume: float
    live: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "live": self.live,
            "openepoch": self.open_epoch,
            "opentimestamp": self.open_timestamp,
            "closetimestamp": self.close_timestamp,
            "retrievedtimestamp": self.retrieved_timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }

    def __str__(self) -> str:
        kind = "live" if self.live else "warmup"
        return (f"{kind} :: {self.open_epoch} {self.open_timestamp} :: "
                f"o={self.open},h={self.high},l={self.low},c={self.close},v={self.volume}")


@dataclass
class FeedState:
    """Mutable feed position. Only the controller's timeline touches it."""
    resolution: int = DEFAULT_RESOLUTION
    bin_label: str = DEFAULT_BIN
    opentime: int = 0
    initialized: bool = False
    bars_emitted: int = field(default=0, compare=False)
