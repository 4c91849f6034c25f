from .errors import (
    ConsumerLatencyExceeded,
    FeedError,
    FetchFailure,
    InsufficientLeadTime,
    SchedulingLag,
    WarmupUnavailable,
)
from .events import BarEmitter
from .exchange import ExchangeClient
from .feed import FeedConfig, FeedController, FeedPhase
from .models import Bar, FeedState, Trade
from .timing import BITMEX_BINS

__version__ = "0.1.0"
__all__ = [
    "Bar",
    "BarEmitter",
    "BITMEX_BINS",
    "ConsumerLatencyExceeded",
    "ExchangeClient",
    "FeedConfig",
    "FeedController",
    "FeedError",
    "FeedPhase",
    "FeedState",
    "FetchFailure",
    "InsufficientLeadTime",
    "SchedulingLag",
    "Trade",
    "WarmupUnavailable",
]
