"""Pytest configuration and shared fixtures for geosentinel tests."""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from geosentinel import InMemoryRegionStore, MockNotificationSink, MockSensorGateway, Region

# Configure logging for tests
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)8s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

# A weekday noon, outside the default 22 -> 7 quiet hours
NOON = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable time source."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock fixed at noon UTC."""
    return FakeClock(NOON)


@pytest.fixture
def gateway():
    """Create a mock sensor gateway."""
    return MockSensorGateway()


@pytest.fixture
def notifier():
    """Create a recording notification sink."""
    return MockNotificationSink()


@pytest.fixture
def store():
    """Create an empty in-memory store."""
    return InMemoryRegionStore()


@pytest.fixture
def make_region():
    """Factory for regions, defaulting to a point near Tijuana."""

    def _make(name: str = "Home", latitude: float = 32.5149, longitude: float = -117.0382, **kwargs):
        return Region(name=name, latitude=latitude, longitude=longitude, **kwargs)

    return _make
