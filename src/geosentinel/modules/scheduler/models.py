"""Data models for the priority scheduler."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from geosentinel.core.region import Region
from geosentinel.gateway import RegionState

Coordinate = Tuple[float, float]


@dataclass(frozen=True)
class MonitoringPlan:
    """The outcome of one scheduler recomputation.

    Attributes:
        active: Regions selected for monitoring, nearest first when a location is known.
        skipped: Enabled regions left out because of the cap.
        distances: Distance in meters from the last known location (empty without one).
        coarse_mode: Whether coarse location/visit tracking was enabled.
        newly_active: IDs that were not monitored before this recomputation.
        initial_states: One-shot states reported for newly active regions.
    """

    active: List[Region] = field(default_factory=list)
    skipped: List[Region] = field(default_factory=list)
    distances: Dict[str, float] = field(default_factory=dict)
    coarse_mode: bool = False
    newly_active: List[str] = field(default_factory=list)
    initial_states: Dict[str, RegionState] = field(default_factory=dict)

    @property
    def enabled_count(self) -> int:
        return len(self.active) + len(self.skipped)

    @property
    def active_ids(self) -> List[str]:
        return [r.id for r in self.active]

    @property
    def is_starved(self) -> bool:
        """True when more regions are enabled than the cap allows."""
        return bool(self.skipped)

    def distance_to(self, region_id: str) -> Optional[float]:
        return self.distances.get(region_id)
