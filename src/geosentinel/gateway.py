"""
Sensor gateway interface.

The gateway is the device's region-monitoring capability. The host platform
provides a concrete implementation that translates these calls to the
platform geofencing service and forwards its callbacks as GatewayEvents.

Design Principle:
    The gateway is a black box. It delivers raw, possibly duplicated,
    out-of-order enter/exit signals and accepts start/stop commands for at
    most MAX_MONITORED_REGIONS regions at a time. Debouncing, prioritization
    and suppression live in the core, never here.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

MAX_MONITORED_REGIONS = 20


class RegionState(Enum):
    """One-shot state reported by the gateway for a monitored region."""

    INSIDE = "inside"
    OUTSIDE = "outside"
    UNKNOWN = "unknown"


class AuthorizationStatus(Enum):
    """Location permission as reported by the platform."""

    NOT_DETERMINED = "not_determined"
    RESTRICTED = "restricted"
    DENIED = "denied"
    AUTHORIZED_WHEN_IN_USE = "authorized_when_in_use"
    AUTHORIZED_ALWAYS = "authorized_always"

    @property
    def description(self) -> str:
        return {
            AuthorizationStatus.NOT_DETERMINED: "Not determined",
            AuthorizationStatus.RESTRICTED: "Restricted",
            AuthorizationStatus.DENIED: "Denied",
            AuthorizationStatus.AUTHORIZED_WHEN_IN_USE: "When In Use",
            AuthorizationStatus.AUTHORIZED_ALWAYS: "Always",
        }[self]

    @property
    def is_authorized(self) -> bool:
        return self in (
            AuthorizationStatus.AUTHORIZED_WHEN_IN_USE,
            AuthorizationStatus.AUTHORIZED_ALWAYS,
        )


@dataclass(frozen=True)
class MonitoredRegion:
    """What the gateway is asked to watch (radius already clamped)."""

    id: str
    latitude: float
    longitude: float
    radius: float
    notify_on_entry: bool = True
    notify_on_exit: bool = True


# Events emitted by the gateway. Region ids arrive unvalidated.


@dataclass(frozen=True)
class RawEnter:
    region_id: str


@dataclass(frozen=True)
class RawExit:
    region_id: str


@dataclass(frozen=True)
class StateDetermined:
    region_id: str
    state: RegionState


@dataclass(frozen=True)
class Visit:
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True)
class LocationUpdate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class AuthorizationChanged:
    status: AuthorizationStatus
    precise: bool = True


@dataclass(frozen=True)
class GatewayError:
    reason: str


GatewayEvent = Union[
    RawEnter, RawExit, StateDetermined, Visit, LocationUpdate, AuthorizationChanged, GatewayError
]
GatewayListener = Callable[[GatewayEvent], None]


class SensorGateway(ABC):
    """
    Abstract interface for the platform region-monitoring service.

    This interface is intentionally minimal:
    - start_monitoring / stop_monitoring: manage the active set
    - monitored_region_ids: what the platform currently watches
    - request_state: one-shot inside/outside snapshot
    - start_coarse_mode / stop_coarse_mode: significant-change + visit tracking
    - set_listener: where raw events are delivered
    """

    max_monitored_regions: int = MAX_MONITORED_REGIONS

    @abstractmethod
    def set_listener(self, listener: Optional[GatewayListener]) -> None:
        """
        Register the single consumer of gateway events.

        Args:
            listener: Callable receiving GatewayEvent objects (None = detach)
        """
        pass

    @abstractmethod
    def start_monitoring(self, region: MonitoredRegion) -> None:
        """Begin monitoring a region."""
        pass

    @abstractmethod
    def stop_monitoring(self, region_id: str) -> None:
        """Stop monitoring a region (no-op if not monitored)."""
        pass

    @abstractmethod
    def monitored_region_ids(self) -> List[str]:
        """IDs of regions the platform currently monitors."""
        pass

    @abstractmethod
    def request_state(self, region: MonitoredRegion) -> RegionState:
        """
        Ask for the current inside/outside state of a region.

        Returns:
            The platform's one-shot answer (UNKNOWN if undetermined)
        """
        pass

    @abstractmethod
    def start_coarse_mode(self) -> None:
        """Enable significant-location-change and visit tracking."""
        pass

    @abstractmethod
    def stop_coarse_mode(self) -> None:
        """Disable significant-location-change and visit tracking."""
        pass


class MockSensorGateway(SensorGateway):
    """
    Mock gateway for testing.

    Records every command in order and lets tests inject raw events.

    Example:
        gateway = MockSensorGateway()
        gateway.set_region_state(region.id, RegionState.INSIDE)
        gateway.emit(RawEnter(region.id))
    """

    def __init__(self) -> None:
        self._listener: Optional[GatewayListener] = None
        self._monitored: Dict[str, MonitoredRegion] = {}
        self._states: Dict[str, RegionState] = {}
        self._calls: list[tuple[str, Optional[str]]] = []
        self.coarse_mode_active = False

    def set_region_state(self, region_id: str, state: RegionState) -> None:
        """Set the answer request_state() returns for a region."""
        self._states[region_id] = state

    def emit(self, event: GatewayEvent) -> None:
        """Deliver an event to the registered listener."""
        if self._listener:
            self._listener(event)

    def get_calls(self) -> list[tuple[str, Optional[str]]]:
        """Get recorded commands as (command, region_id) tuples."""
        return self._calls.copy()

    def clear_calls(self) -> None:
        self._calls.clear()

    def monitored(self) -> Dict[str, MonitoredRegion]:
        """Currently monitored regions keyed by id."""
        return dict(self._monitored)

    # SensorGateway implementation

    def set_listener(self, listener: Optional[GatewayListener]) -> None:
        self._listener = listener

    def start_monitoring(self, region: MonitoredRegion) -> None:
        self._calls.append(("start", region.id))
        self._monitored[region.id] = region

    def stop_monitoring(self, region_id: str) -> None:
        self._calls.append(("stop", region_id))
        self._monitored.pop(region_id, None)

    def monitored_region_ids(self) -> List[str]:
        return list(self._monitored)

    def request_state(self, region: MonitoredRegion) -> RegionState:
        self._calls.append(("request_state", region.id))
        return self._states.get(region.id, RegionState.UNKNOWN)

    def start_coarse_mode(self) -> None:
        self._calls.append(("start_coarse", None))
        self.coarse_mode_active = True

    def stop_coarse_mode(self) -> None:
        self._calls.append(("stop_coarse", None))
        self.coarse_mode_active = False
