"""
Bar-boundary arithmetic.

Every value here is an integer count of milliseconds since the Unix epoch
(or a duration in milliseconds). Nothing in this module reads the clock
except now_ms(), so the rest is pure and trivially testable.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Dict

# ----------------------------------------------------------------------
# Exchange bins
# ----------------------------------------------------------------------
BITMEX_BINS: Dict[str, int] = {
    "1m": 60_000,
    "5m": 300_000,
    "1h": 3_600_000,
    "1d": 86_400_000,
}

DEFAULT_BIN: str = "5m"
DEFAULT_RESOLUTION: int = BITMEX_BINS[DEFAULT_BIN]

FRONT_RUN: int = 250                # ms woken before each boundary
SAFETY_TIME: int = 5_000            # ms lead time required to boot
SAFETY_TIME_WARMUP: int = 20_000    # ms lead time required when warmup bars are requested

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def resolve_bin(label: str) -> int:
    """Map an exchange bin label (e.g. '5m') to its duration in ms."""
    try:
        return BITMEX_BINS[label]
    except KeyError:
        raise ValueError(
            f"Unsupported resolution '{label}', expected one of: {', '.join(BITMEX_BINS)}"
        ) from None


def now_ms() -> int:
    return int(time.time() * 1000)


def boundary(now: int, resolution: int) -> int:
    """Open time of the bar containing `now`."""
    return now - (now % resolution)


def remaining(now: int, resolution: int, front_run: int = FRONT_RUN) -> int:
    """
    Milliseconds until `front_run` ms before the next boundary.

    Can be negative or very small right after a front-run wake-up; the
    scheduler corrects that with quarter_guard().
    """
    return (resolution - (now % resolution)) - front_run


def quarter_guard(remaining_ms: int, resolution: int) -> int:
    """Push a wake-up that would land on the current bar onto the next one."""
    if remaining_ms < (resolution >> 2):
        remaining_ms += resolution
    return remaining_ms


def safety_threshold(warmup: bool) -> int:
    return SAFETY_TIME_WARMUP if warmup else SAFETY_TIME


def has_sufficient_lead_time(remaining_ms: int, threshold_ms: int) -> bool:
    return remaining_ms >= threshold_ms


# ----------------------------------------------------------------------
# Timestamp conversion
# ----------------------------------------------------------------------
def to_epoch_ms(stamp: str) -> int:
    """
    Parse an exchange ISO-8601 timestamp ('2024-01-01T12:05:00.000Z') to epoch ms.
    Naive timestamps are taken as UTC.
    """
    s = stamp.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = dt - EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def to_iso(ms: int) -> str:
    """Render epoch ms the way the exchange does: millisecond precision, 'Z' suffix."""
    ms = int(ms)
    dt = EPOCH + timedelta(milliseconds=ms)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms % 1000:03d}Z"
