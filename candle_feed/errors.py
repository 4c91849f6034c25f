from __future__ import annotations

from typing import Optional


class FeedError(Exception):
    """Base class for every error raised by candle_feed."""


class InsufficientLeadTime(FeedError):
    """
    Raised by FeedController.start() when the current bar closes too soon
    to boot safely. Recoverable: retry once the bar has closed.
    """

    def __init__(self, remaining_ms: int, threshold_ms: int, retry_after_ms: int):
        self.remaining_ms = remaining_ms
        self.threshold_ms = threshold_ms
        self.retry_after_ms = retry_after_ms
        super().__init__(
            f"Insufficient remaining time to safely boot ({remaining_ms}ms < {threshold_ms}ms), "
            f"try again after this bar closes in {max(0, retry_after_ms) // 1000} seconds"
        )


class FetchFailure(FeedError):
    """Non-success response or transport error from the exchange, after retries."""

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None):
        self.url = url
        self.status = status
        super().__init__(message)


class WarmupUnavailable(FeedError):
    """The exchange never published the expected most-recent bar within the retry budget."""

    def __init__(self, expected_opentime: int, attempts: int, last_seen: Optional[int] = None):
        self.expected_opentime = expected_opentime
        self.attempts = attempts
        self.last_seen = last_seen
        super().__init__(
            f"Exchange did not publish bar opening at {expected_opentime} after {attempts} attempts "
            f"(last seen open: {last_seen})"
        )


class SchedulingLag(FeedError):
    """A tick fired after its bar had already closed. Logged, never raised by the feed."""

    def __init__(self, lag_ms: int, opentime: int):
        self.lag_ms = lag_ms
        self.opentime = opentime
        super().__init__(f"Poll is lagging by {lag_ms}ms (bar opened at {opentime})")


class ConsumerLatencyExceeded(FeedError):
    """A bar consumer blocked for longer than the allowed budget. Fatal."""

    def __init__(self, elapsed_ms: float, limit_ms: int):
        self.elapsed_ms = elapsed_ms
        self.limit_ms = limit_ms
        super().__init__(
            f"Script processing time exceeded safe tolerance of {limit_ms}ms (took {elapsed_ms:.0f}ms)"
        )
