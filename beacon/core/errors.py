"""
Beacon exception hierarchy.

Every error in the system inherits from BeaconError.
Each subsystem has its own error class for targeted catching.

Usage:
    try:
        payload = codec.encode(envelope)
    except EncodingError as e:
        # Envelope is not transport-safe
    except BeaconError as e:
        # Handle any Beacon error
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class BeaconError(Exception):
    """Base exception for all Beacon errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ━━━ Configuration ━━━


class ConfigError(BeaconError):
    """Configuration is invalid, missing, or malformed."""

    pass


# ━━━ Envelope codec ━━━


class CodecError(BeaconError):
    """Envelope could not be converted to or from its transport string."""

    pass


class EncodingError(CodecError):
    """Envelope cannot be serialized (bad field types, empty kind, too large)."""

    pass


class DecodingError(CodecError):
    """Raw payload is empty or structurally invalid."""

    pass


# ━━━ Scheduling ━━━


class ScheduleError(BeaconError):
    """Schedule construction or resolution failure."""

    pass


class PastTimeError(ScheduleError):
    """A one-shot schedule's target is not after the reference time."""

    def __init__(
        self,
        message: str,
        at: datetime | None = None,
        now: datetime | None = None,
        details: dict | None = None,
    ):
        self.at = at
        self.now = now
        super().__init__(message, details)


class InvalidScheduleFieldError(ScheduleError):
    """Hour, minute or weekday outside its valid range."""

    def __init__(
        self,
        message: str,
        field: str = "",
        value: Any = None,
        details: dict | None = None,
    ):
        self.field = field
        self.value = value
        super().__init__(message, details)


# ━━━ Adapters ━━━


class AdapterError(BeaconError):
    """The OS-notification adapter failed to honour a request."""

    def __init__(
        self,
        message: str,
        adapter: str = "",
        details: dict | None = None,
    ):
        self.adapter = adapter
        super().__init__(message, details)
