"""
geosentinel: debounced, prioritized geofence presence tracking.

This library turns a noisy, capped platform geofencing service into stable
enter/exit notifications:
- Per-region presence state machine with dwell / exit-debounce confirmation
- Priority scheduler that keeps the nearest regions under the monitoring cap
- Quiet hours and per-region snooze for notifications
- A single serialized event loop owning all state
"""

from geosentinel.core.region import Region
from geosentinel.core.settings import Settings, BatteryMode
from geosentinel.core.manager import RegionManager
from geosentinel.core.bus import Event, EventBus, EventFilter
from geosentinel.core.store import RegionStore, InMemoryRegionStore, JsonFileRegionStore
from geosentinel.gateway import SensorGateway, MockSensorGateway, RegionState
from geosentinel.notifications import NotificationSink, MockNotificationSink
from geosentinel.service import GeofenceService

__version__ = "0.1.0"

__all__ = [
    "Region",
    "Settings",
    "BatteryMode",
    "RegionManager",
    "Event",
    "EventBus",
    "EventFilter",
    "RegionStore",
    "InMemoryRegionStore",
    "JsonFileRegionStore",
    "SensorGateway",
    "MockSensorGateway",
    "RegionState",
    "NotificationSink",
    "MockNotificationSink",
    "GeofenceService",
]
