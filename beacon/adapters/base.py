"""
Adapter contracts — the only places Beacon touches the outside world.

NotificationAdapter wraps the OS tray (or a local stand-in). Navigator wraps
the UI's navigation stack. The core hands both fully resolved values: an
integer identity, an encoded payload and an absolute fire time. It never
passes a ScheduleSpec across this boundary.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Mapping


class NotificationAdapter(ABC):
    """
    Abstract OS-notification tray.

    Each request returns True when the tray accepted it. Returning False (or
    raising) makes the service roll back its registry entry, so an
    implementation should only return True once the request really stuck.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier, e.g. 'memory', 'sqlite'."""
        ...

    @abstractmethod
    def request_show(self, identity: int, title: str, body: str, payload: str) -> bool:
        """Show a notification now."""
        ...

    @abstractmethod
    def request_schedule(
        self,
        identity: int,
        title: str,
        body: str,
        payload: str,
        fire_at: datetime,
    ) -> bool:
        """Schedule (or replace) the notification with this identity."""
        ...

    @abstractmethod
    def request_cancel(self, identity: int) -> bool:
        """Cancel one notification. Cancelling an unknown identity is not an error."""
        ...

    @abstractmethod
    def request_cancel_all(self) -> bool:
        """Cancel everything this app has pending or shown."""
        ...

    def pending(self) -> list[tuple[int, str]]:
        """
        (identity, payload) for every notification the tray still holds.

        Used to rehydrate the registry at start-up. Trays that cannot be
        queried return an empty list.
        """
        return []


class Navigator(ABC):
    """Abstract UI navigation stack."""

    @abstractmethod
    def navigate(self, route: str, arguments: Mapping[str, str]) -> None:
        """Open ``route`` with string arguments."""
        ...
