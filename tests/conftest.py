"""Shared test fixtures for Beacon."""

from datetime import datetime, timezone

import pytest

from beacon.adapters.memory import MemoryTrayAdapter, RecordingNavigator
from beacon.core.bus import EventBus
from beacon.core.config import BeaconConfig
from beacon.core.service import NotificationService
from beacon.notifications.codec import EnvelopeCodec

# Monday
MONDAY = datetime(2026, 3, 2, 10, 0)
CREATED = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def config():
    """Create a default config without loading from disk."""
    return BeaconConfig()


@pytest.fixture
def bus():
    """Create a fresh event bus."""
    return EventBus()


@pytest.fixture
def codec():
    """Codec with a fixed clock."""
    return EnvelopeCodec(clock=lambda: CREATED)


@pytest.fixture
def tray():
    return MemoryTrayAdapter()


@pytest.fixture
def navigator():
    return RecordingNavigator()


@pytest.fixture
def service(config, tray, navigator, bus):
    """Service on the in-memory tray with recorded navigation."""
    return NotificationService(config=config, adapter=tray, navigator=navigator, bus=bus)
