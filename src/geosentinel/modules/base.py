"""
Base classes for geosentinel modules.

Modules are the behavioral units wired together by the GeofenceService.
"""

from abc import ABC, abstractmethod
from typing import Dict


class GeofenceModule(ABC):
    """
    Base class for geofence modules.

    A module:
    - Receives its inputs from the service's single consumer loop
    - Uses the RegionManager to read region definitions
    - Maintains its own runtime state
    - Emits semantic events that other modules can consume
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique identifier for this module type."""
        pass

    @abstractmethod
    def attach(self, bus, region_manager) -> None:
        """
        Attach the module to the service.

        Register event subscriptions and capture references to bus and region manager.

        Args:
            bus: EventBus instance
            region_manager: RegionManager instance
        """
        pass

    def on_region_removed(self, region_id: str) -> None:
        """
        React to a region being deleted.

        Args:
            region_id: The deleted region's ID
        """
        pass

    def dump_state(self) -> Dict:
        """
        Serialize runtime state for persistence.

        Optional: Override to enable state dump/restore.
        Host is responsible for storage.

        Returns:
            Serialized state dict
        """
        return {}

    def restore_state(self, state: Dict) -> None:
        """
        Restore runtime state from serialized form.

        Optional: Override to enable state dump/restore.

        Args:
            state: Previously serialized state dict
        """
        pass
