"""
Beacon — notification envelopes, stable ids, fire times and tap routing.

Public API:
    from beacon import NotificationService, NotificationEnvelope, Daily
"""

__version__ = "0.1.0"

# Core
from beacon.core.config import BeaconConfig
from beacon.core.errors import (
    AdapterError,
    BeaconError,
    DecodingError,
    EncodingError,
    InvalidScheduleFieldError,
    PastTimeError,
)
from beacon.core.events import Event, EventType
from beacon.core.service import NotificationService, TaskDeadline

# Notifications
from beacon.notifications.codec import EnvelopeCodec, decode, encode
from beacon.notifications.envelope import NotificationEnvelope, NotificationKind
from beacon.notifications.identity import derive_id
from beacon.notifications.registry import NotificationRegistry, RegistryEntry
from beacon.notifications.router import DispatchOutcome, DispatchResult, DispatchRouter

# Scheduling
from beacon.scheduler.calculator import next_fire_time
from beacon.scheduler.schedule import Daily, Once, ScheduleSpec, Weekly

# Adapters
from beacon.adapters.base import NotificationAdapter, Navigator

__all__ = [
    # Core
    "BeaconConfig",
    "BeaconError",
    "EncodingError",
    "DecodingError",
    "PastTimeError",
    "InvalidScheduleFieldError",
    "AdapterError",
    "Event",
    "EventType",
    "NotificationService",
    "TaskDeadline",
    # Notifications
    "EnvelopeCodec",
    "encode",
    "decode",
    "NotificationEnvelope",
    "NotificationKind",
    "derive_id",
    "NotificationRegistry",
    "RegistryEntry",
    "DispatchRouter",
    "DispatchResult",
    "DispatchOutcome",
    # Scheduling
    "ScheduleSpec",
    "Once",
    "Daily",
    "Weekly",
    "next_fire_time",
    # Adapters
    "NotificationAdapter",
    "Navigator",
]
