"""
Region dataclass and helpers.

A Region is a user-defined circular geofence: a center point and a radius in meters.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

MIN_RADIUS_M = 50.0
MAX_RADIUS_M = 2000.0


def _new_region_id() -> str:
    """Generate a fresh region identifier (for default factory)."""
    return str(uuid.uuid4())


@dataclass
class Region:
    """
    A circular geofence.

    Attributes:
        name: Human-readable name
        latitude: Center latitude in degrees
        longitude: Center longitude in degrees
        radius: Radius in meters (clamped to [50, 2000] when monitored)
        enabled: Whether the region takes part in monitoring at all
        notify_on_entry: Deliver a notification on confirmed entry
        notify_on_exit: Deliver a notification on confirmed exit
        id: Opaque unique identifier (UUID string)
    """

    name: str
    latitude: float
    longitude: float
    radius: float = 200.0
    enabled: bool = True
    notify_on_entry: bool = True
    notify_on_exit: bool = True
    id: str = field(default_factory=_new_region_id)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "id": self.id,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "radius": self.radius,
            "enabled": self.enabled,
            "notify_on_entry": self.notify_on_entry,
            "notify_on_exit": self.notify_on_exit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Region":
        """Deserialize from dict."""
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            radius=float(data.get("radius", 200.0)),
            enabled=bool(data.get("enabled", True)),
            notify_on_entry=bool(data.get("notify_on_entry", True)),
            notify_on_exit=bool(data.get("notify_on_exit", True)),
        )


def clamp_radius(radius: float) -> float:
    """
    Clamp a radius to the monitorable range.

    Out-of-range values are rewritten to the nearest bound, never rejected.

    Args:
        radius: Requested radius in meters

    Returns:
        Radius within [MIN_RADIUS_M, MAX_RADIUS_M]
    """
    if radius < MIN_RADIUS_M:
        return MIN_RADIUS_M
    if radius > MAX_RADIUS_M:
        return MAX_RADIUS_M
    return radius


def parse_region_id(raw: Any) -> Optional[str]:
    """
    Normalize a region identifier received from outside the core.

    Args:
        raw: Identifier as delivered by the gateway or a notification action

    Returns:
        Canonical UUID string, or None if the identifier is malformed
    """
    if raw is None:
        return None
    try:
        return str(uuid.UUID(str(raw)))
    except (ValueError, TypeError, AttributeError):
        return None
