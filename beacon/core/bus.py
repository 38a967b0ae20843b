"""
Beacon Event Bus — synchronous publish/subscribe with a middleware chain.

Everything runs on the caller's thread. A schedule request or a tap is a
few microseconds of work, so events are delivered inline, never queued.
"""

from __future__ import annotations

import fnmatch
import logging
from typing import Callable

from beacon.core.events import Event

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], None]
MiddlewareNext = Callable[[Event], Event]
MiddlewareFunc = Callable[[Event, MiddlewareNext], Event]


def _matches(pattern: str, event_type: str) -> bool:
    if pattern == "*" or pattern == event_type:
        return True
    return "*" in pattern and fnmatch.fnmatchcase(event_type, pattern)


def _link(middleware: MiddlewareFunc, next_handler: MiddlewareNext) -> MiddlewareNext:
    return lambda event: middleware(event, next_handler)


class EventBus:
    """
    Usage:
        bus = EventBus()

        bus.on("notification:scheduled", on_scheduled)
        bus.on("notification:*", audit)
        bus.use(journal.middleware)

        bus.emit(Event(type="notification:scheduled", data={...}))

    Subscribers run in the order they subscribed, whatever pattern they used.
    """

    def __init__(self) -> None:
        self._subscriptions: list[tuple[str, EventHandler]] = []
        self._middleware: list[MiddlewareFunc] = []

    def on(self, pattern: str, handler: EventHandler) -> None:
        """Subscribe to an exact type or a pattern like 'notification:*'."""
        self._subscriptions.append((pattern, handler))

    def off(self, pattern: str, handler: EventHandler) -> bool:
        """Drop a subscription. Returns False if it was not there."""
        before = len(self._subscriptions)
        self._subscriptions = [
            (p, h) for p, h in self._subscriptions if not (p == pattern and h is handler)
        ]
        return len(self._subscriptions) != before

    def use(self, middleware: MiddlewareFunc) -> None:
        """
        Append middleware. It receives the event and the rest of the chain:

            def stamp(event: Event, next_handler: MiddlewareNext) -> Event:
                event.metadata["seen"] = True
                return next_handler(event)

        Not calling ``next_handler`` stops delivery.
        """
        self._middleware.append(middleware)

    def emit(self, event: Event) -> Event:
        """Run the middleware chain, then deliver. Subscriber errors are logged only."""
        chain: MiddlewareNext = self._deliver
        for mw in reversed(self._middleware):
            chain = _link(mw, chain)
        return chain(event)

    def _deliver(self, event: Event) -> Event:
        for pattern, handler in list(self._subscriptions):
            if not _matches(pattern, event.type):
                continue
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Subscriber error for {event.type}: {e}", exc_info=e)
        return event

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)
