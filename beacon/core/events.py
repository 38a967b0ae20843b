"""
Notification lifecycle events.

The service emits one event per outbound request and per tap; subscribers
and middleware (the event journal, a host's analytics) see them in order.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any


class EventType:
    """"category:action" names. Patterns like "notification:*" match a category."""

    # Requests to the tray
    NOTIFICATION_SHOWN = "notification:shown"
    NOTIFICATION_SCHEDULED = "notification:scheduled"
    NOTIFICATION_CANCELLED = "notification:cancelled"
    NOTIFICATION_SKIPPED = "notification:skipped"  # reminder already in the past
    NOTIFICATION_FAILED = "notification:failed"  # tray refused, entry rolled back

    # Taps
    NOTIFICATION_TAPPED = "notification:tapped"
    NOTIFICATION_DISPATCHED = "notification:dispatched"
    NOTIFICATION_FALLBACK = "notification:fallback"

    NOTIFICATION_REHYDRATED = "notification:rehydrated"

    NOTIFICATION_ALL = "notification:*"
    ALL = "*"


def _new_id() -> str:
    return uuid.uuid4().hex[:16]


@dataclass(slots=True)
class Event:
    """
    One emitted event. ``data`` holds plain values (ids, kinds, ISO times);
    ``parent_id`` links a follow-up, e.g. a dispatch to its tap.
    """

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    source: str = ""
    id: str = field(default_factory=_new_id)
    timestamp: float = field(default_factory=time.time)
    parent_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def category(self) -> str:
        return self.type.split(":", 1)[0]

    def child(self, event_type: str, data: dict[str, Any] | None = None) -> Event:
        """Follow-up event from the same source, linked by ``parent_id``."""
        return Event(type=event_type, data=data or {}, source=self.source, parent_id=self.id)
