from __future__ import annotations

from typing import Callable, List

from .models import Bar

BarHandler = Callable[[Bar], None]


class BarEmitter:
    """
    Minimal publish/subscribe hub for bars.

    publish() calls every handler synchronously, in subscription order, and
    returns only once the last one has returned. Exceptions propagate to the
    publisher.
    """

    def __init__(self) -> None:
        self._handlers: List[BarHandler] = []

    def subscribe(self, handler: BarHandler) -> BarHandler:
        self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: BarHandler) -> None:
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def publish(self, bar: Bar) -> None:
        for handler in list(self._handlers):
            handler(bar)
