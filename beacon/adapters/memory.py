"""
In-process adapters: a dict-backed tray and a navigator that records calls.

Used by tests and by hosts that bridge to a real tray themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Mapping

from beacon.adapters.base import NotificationAdapter, Navigator


@dataclass
class TrayRequest:
    identity: int
    title: str
    body: str
    payload: str
    fire_at: datetime | None = None


class MemoryTrayAdapter(NotificationAdapter):
    """
    Keeps shown and scheduled notifications in dicts keyed by identity.

    ``fail_next`` makes the next request report failure, and ``raise_next``
    makes it raise, for exercising rollback.
    """

    def __init__(self) -> None:
        self.shown: dict[int, TrayRequest] = {}
        self.scheduled: dict[int, TrayRequest] = {}
        self.cancelled: list[int] = []
        self.fail_next = False
        self.raise_next: Exception | None = None

    @property
    def name(self) -> str:
        return "memory"

    def _accept(self) -> bool:
        if self.raise_next is not None:
            exc, self.raise_next = self.raise_next, None
            raise exc
        if self.fail_next:
            self.fail_next = False
            return False
        return True

    def request_show(self, identity: int, title: str, body: str, payload: str) -> bool:
        if not self._accept():
            return False
        self.shown[identity] = TrayRequest(identity, title, body, payload)
        return True

    def request_schedule(
        self,
        identity: int,
        title: str,
        body: str,
        payload: str,
        fire_at: datetime,
    ) -> bool:
        if not self._accept():
            return False
        self.scheduled[identity] = TrayRequest(identity, title, body, payload, fire_at)
        return True

    def request_cancel(self, identity: int) -> bool:
        if not self._accept():
            return False
        self.shown.pop(identity, None)
        self.scheduled.pop(identity, None)
        self.cancelled.append(identity)
        return True

    def request_cancel_all(self) -> bool:
        if not self._accept():
            return False
        self.cancelled.extend([*self.shown, *self.scheduled])
        self.shown.clear()
        self.scheduled.clear()
        return True

    def pending(self) -> list[tuple[int, str]]:
        return [(r.identity, r.payload) for r in self.scheduled.values()]


class RecordingNavigator(Navigator):
    """Remembers every navigate() call as (route, arguments)."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, str]]] = []

    def navigate(self, route: str, arguments: Mapping[str, str]) -> None:
        self.calls.append((route, dict(arguments)))

    @property
    def last(self) -> tuple[str, dict[str, str]] | None:
        return self.calls[-1] if self.calls else None
