"""
RegionManager for region definitions.

The RegionManager owns the region list, not the behavior.
"""

from dataclasses import replace
from typing import Any, Dict, List, Optional
import logging

from geosentinel.core.region import Region

logger = logging.getLogger(__name__)


class RegionManager:
    """
    Manages the set of user-defined regions.

    Regions passed in are copied; mutate them through the manager.

    Responsibilities:
    - Store regions in insertion order
    - Provide lookups (by id, enabled subset)
    - Validate CRUD operations

    Does NOT implement presence tracking or monitoring logic.
    """

    def __init__(self) -> None:
        """Initialize an empty region manager."""
        self._regions: Dict[str, Region] = {}

    def add_region(self, region: Region) -> Region:
        """
        Add a region.

        Args:
            region: The region to add

        Returns:
            The stored copy of the region

        Raises:
            ValueError: If a region with the same ID already exists
        """
        if region.id in self._regions:
            raise ValueError(f"Region with id '{region.id}' already exists")

        region = replace(region)
        self._regions[region.id] = region
        logger.info(f"Added region: {region.id} ({region.name})")

        return region

    def create_region(
        self,
        name: str,
        latitude: float,
        longitude: float,
        radius: float = 200.0,
        **kwargs: Any,
    ) -> Region:
        """
        Create and add a new region.

        Args:
            name: Human-readable name
            latitude: Center latitude
            longitude: Center longitude
            radius: Radius in meters
            **kwargs: Remaining Region fields (id, enabled, notify flags)

        Returns:
            The created Region
        """
        return self.add_region(
            Region(name=name, latitude=latitude, longitude=longitude, radius=radius, **kwargs)
        )

    def update_region(self, region: Region) -> Region:
        """
        Replace an existing region definition, keeping its position.

        Raises:
            ValueError: If the region doesn't exist
        """
        if region.id not in self._regions:
            raise ValueError(f"Region '{region.id}' does not exist")

        region = replace(region)
        self._regions[region.id] = region
        logger.info(f"Updated region: {region.id} ({region.name})")
        return region

    def delete_region(self, region_id: str) -> Region:
        """
        Remove a region.

        Returns:
            The removed Region

        Raises:
            ValueError: If the region doesn't exist
        """
        region = self._regions.pop(region_id, None)
        if region is None:
            raise ValueError(f"Region '{region_id}' does not exist")

        logger.info(f"Deleted region: {region_id} ({region.name})")
        return region

    def set_enabled(self, region_id: str, enabled: bool) -> Region:
        """
        Enable or disable a region.

        Raises:
            ValueError: If the region doesn't exist
        """
        region = self.get_region(region_id)
        if not region:
            raise ValueError(f"Region '{region_id}' does not exist")

        region.enabled = enabled
        logger.debug(f"Region {region_id} enabled={enabled}")
        return region

    def toggle_enabled(self, region_id: str) -> Region:
        """Flip a region's enabled flag."""
        region = self.get_region(region_id)
        if not region:
            raise ValueError(f"Region '{region_id}' does not exist")
        return self.set_enabled(region_id, not region.enabled)

    def get_region(self, region_id: str) -> Optional[Region]:
        """
        Get a region by ID.

        Args:
            region_id: The region ID

        Returns:
            The Region, or None if not found
        """
        return self._regions.get(region_id)

    def all_regions(self) -> List[Region]:
        """Get all regions in insertion order."""
        return list(self._regions.values())

    def enabled_regions(self) -> List[Region]:
        """Get enabled regions in insertion order."""
        return [r for r in self._regions.values() if r.enabled]

    def __contains__(self, region_id: object) -> bool:
        return region_id in self._regions

    def __len__(self) -> int:
        return len(self._regions)

    # Persistence

    def dump(self) -> List[Dict[str, Any]]:
        """Serialize the region list."""
        return [r.to_dict() for r in self._regions.values()]

    def load(self, data: List[Dict[str, Any]]) -> None:
        """
        Replace the region list from serialized form.

        Unreadable entries are skipped with a warning.
        """
        self._regions.clear()
        for item in data or []:
            try:
                region = Region.from_dict(item)
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping unreadable region {item!r}: {e}")
                continue
            self._regions[region.id] = region

        logger.info(f"Loaded {len(self._regions)} regions")
