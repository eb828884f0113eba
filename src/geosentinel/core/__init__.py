"""
Core components of geosentinel.

This package contains:
- region: Region dataclass and radius clamping
- settings: Settings and BatteryMode
- manager: RegionManager for region definitions
- bus: Event Bus implementation
- store: RegionStore persistence contract
- diagnostics: Append-only diagnostic trail
- geo: Great-circle distance
"""

from geosentinel.core.region import Region, clamp_radius, MIN_RADIUS_M, MAX_RADIUS_M
from geosentinel.core.settings import Settings, BatteryMode
from geosentinel.core.manager import RegionManager
from geosentinel.core.bus import Event, EventBus, EventFilter
from geosentinel.core.store import RegionStore, InMemoryRegionStore, JsonFileRegionStore, StoreKeys
from geosentinel.core.diagnostics import DiagnosticLog, LogEntry
from geosentinel.core.geo import haversine_m

__all__ = [
    "Region",
    "clamp_radius",
    "MIN_RADIUS_M",
    "MAX_RADIUS_M",
    "Settings",
    "BatteryMode",
    "RegionManager",
    "Event",
    "EventBus",
    "EventFilter",
    "RegionStore",
    "InMemoryRegionStore",
    "JsonFileRegionStore",
    "StoreKeys",
    "DiagnosticLog",
    "LogEntry",
    "haversine_m",
]
