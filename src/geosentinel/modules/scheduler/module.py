"""SchedulerModule - Choose which regions the gateway actively monitors.

The gateway can only watch a limited number of regions at once. Every
recomputation stops everything and re-registers the nearest enabled
regions, up to the cap. Regions beyond the cap produce no events until a
later recomputation rotates them in.
"""

import logging
from typing import Callable, List, Optional, Set, Tuple

from geosentinel.core.bus import Event, EventBus, EventFilter
from geosentinel.core.diagnostics import DiagnosticLog
from geosentinel.core.geo import haversine_m
from geosentinel.core.manager import RegionManager
from geosentinel.core.region import Region, clamp_radius
from geosentinel.core.settings import BatteryMode, Settings
from geosentinel.gateway import MonitoredRegion, SensorGateway
from geosentinel.modules.base import GeofenceModule

from .models import Coordinate, MonitoringPlan

logger = logging.getLogger(__name__)

NEAREST_REPORTED = 5


def select_active_regions(
    regions: List[Region],
    location: Optional[Coordinate],
    cap: int,
) -> Tuple[List[Region], List[Region], dict]:
    """
    Pick the regions to monitor.

    Args:
        regions: All regions, in their stored order
        location: Last known (latitude, longitude), or None
        cap: Maximum number of regions to select

    Returns:
        (active, skipped, distances). Disabled regions appear in neither list.
        Without a location the stored order is kept.
    """
    enabled = [r for r in regions if r.enabled]
    distances: dict = {}

    if location is not None:
        lat, lon = location
        for r in enabled:
            distances[r.id] = haversine_m(lat, lon, r.latitude, r.longitude)
        # sorted() is stable: equidistant regions keep their stored order
        enabled = sorted(enabled, key=lambda r: distances[r.id])

    count = min(cap, len(enabled))
    return enabled[:count], enabled[count:], distances


class SchedulerModule(GeofenceModule):
    """
    Priority scheduler module.

    Recomputes the active set on demand and on every confirmed transition.

    Events Consumed:
    - presence.confirmed: Triggers a recomputation

    Events Emitted:
    - scheduler.recomputed: Summary of the new active set
    - region.state_determined: One-shot state for a newly monitored region
    """

    def __init__(
        self,
        gateway: SensorGateway,
        settings: Callable[[], Settings],
        diagnostics: Optional[DiagnosticLog] = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            gateway: Sensor gateway that receives start/stop commands
            settings: Returns the current Settings (battery mode)
            diagnostics: Diagnostic trail (a private one is created if omitted)
        """
        self._gateway = gateway
        self._settings = settings
        self._diagnostics = diagnostics or DiagnosticLog(max_entries=None)
        self._bus: Optional[EventBus] = None
        self._regions: Optional[RegionManager] = None
        self._active_ids: Set[str] = set()
        self.last_location: Optional[Coordinate] = None
        self.last_plan: Optional[MonitoringPlan] = None

    @property
    def id(self) -> str:
        return "scheduler"

    @property
    def cap(self) -> int:
        return self._gateway.max_monitored_regions

    def attach(self, bus: EventBus, region_manager: RegionManager) -> None:
        """Attach to service components."""
        self._bus = bus
        self._regions = region_manager

        bus.subscribe(
            handler=self._on_presence_confirmed,
            event_filter=EventFilter(event_type="presence.confirmed"),
        )
        logger.info("SchedulerModule attached")

    def _on_presence_confirmed(self, event: Event) -> None:
        self.recompute()

    def update_location(self, latitude: float, longitude: float) -> MonitoringPlan:
        """Record the device location and recompute."""
        self.last_location = (latitude, longitude)
        self._diagnostics.log("Updated user location for priority scheduler.")
        return self.recompute()

    def on_region_removed(self, region_id: str) -> None:
        self._active_ids.discard(region_id)

    def recompute(self) -> MonitoringPlan:
        """
        Rebuild the gateway's active set from scratch.

        Returns:
            The resulting MonitoringPlan
        """
        assert self._regions is not None

        # 1. Full stop (regions and coarse modes)
        for region_id in self._gateway.monitored_region_ids():
            self._gateway.stop_monitoring(region_id)
        self._gateway.stop_coarse_mode()

        # 2-4. Filter, prioritize, cap
        active, skipped, distances = select_active_regions(
            self._regions.all_regions(), self.last_location, self.cap
        )

        # 5. Register the active set
        newly_active: List[str] = []
        initial_states = {}
        for region in active:
            monitored = self._to_monitored(region)
            self._gateway.start_monitoring(monitored)
            if region.id not in self._active_ids:
                newly_active.append(region.id)
                initial_states[region.id] = self._gateway.request_state(monitored)

        self._active_ids = {r.id for r in active}

        # 6. Coarse modes only in saver mode
        coarse = self._settings().battery_mode is BatteryMode.SAVER
        if coarse:
            self._gateway.start_coarse_mode()

        plan = MonitoringPlan(
            active=active,
            skipped=skipped,
            distances=distances,
            coarse_mode=coarse,
            newly_active=newly_active,
            initial_states=initial_states,
        )
        self.last_plan = plan

        # 7. Make starvation observable
        self._report(plan)
        self._publish(plan)
        return plan

    def _to_monitored(self, region: Region) -> MonitoredRegion:
        radius = clamp_radius(region.radius)
        if radius != region.radius:
            size = "small" if region.radius < radius else "large"
            self._diagnostics.warning(
                f"Warning: radius {int(region.radius)}m is {size}, clamped to {int(radius)} m."
            )
        return MonitoredRegion(
            id=region.id,
            latitude=region.latitude,
            longitude=region.longitude,
            radius=radius,
            notify_on_entry=region.notify_on_entry,
            notify_on_exit=region.notify_on_exit,
        )

    def _report(self, plan: MonitoringPlan) -> None:
        self._diagnostics.log(
            f"Priority scheduler: monitoring {len(plan.active)} / {plan.enabled_count} regions."
        )
        if plan.distances:
            for region in plan.active[:NEAREST_REPORTED]:
                self._diagnostics.log(f" • {region.name} at {int(plan.distances[region.id])}m")
        if plan.is_starved:
            logger.warning(
                f"{len(plan.skipped)} enabled regions exceed the monitoring cap of {self.cap}"
            )

    def _publish(self, plan: MonitoringPlan) -> None:
        if not self._bus:
            return
        self._bus.publish(
            Event(
                type="scheduler.recomputed",
                source=self.id,
                payload={
                    "active": plan.active_ids,
                    "skipped": [r.id for r in plan.skipped],
                    "enabled_count": plan.enabled_count,
                    "coarse_mode": plan.coarse_mode,
                },
            )
        )
        for region_id, state in plan.initial_states.items():
            self._bus.publish(
                Event(
                    type="region.state_determined",
                    source=self.id,
                    region_id=region_id,
                    payload={"state": state.value},
                )
            )
