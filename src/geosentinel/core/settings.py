"""
Process-wide settings for geofence monitoring.

Settings are user-editable and persisted by the host through a RegionStore.
"""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class BatteryMode(Enum):
    """Trade-off between monitoring precision and power use.

    SAVER additionally enables the gateway's coarse significant-location-change
    and visit tracking so the monitored subset stays current at low cost.
    HIGH_FIDELITY keeps those coarse modes off.
    """

    SAVER = "saver"
    HIGH_FIDELITY = "high_fidelity"

    @property
    def title(self) -> str:
        return "Battery Saver" if self is BatteryMode.SAVER else "High Fidelity"


@dataclass
class Settings:
    """
    Monitoring settings.

    Attributes:
        dwell_seconds: How long a raw "inside" signal must persist before it is confirmed
        exit_debounce_seconds: How long a raw "outside" signal must persist before it is confirmed
        quiet_start: Hour of day (0-23) at which quiet hours begin
        quiet_end: Hour of day (0-23) at which quiet hours end
        battery_mode: Saver or high-fidelity monitoring
    """

    dwell_seconds: float = 10
    exit_debounce_seconds: float = 15
    quiet_start: int = 22
    quiet_end: int = 7
    battery_mode: BatteryMode = BatteryMode.HIGH_FIDELITY

    def __post_init__(self) -> None:
        """Coerce out-of-range values instead of rejecting them."""
        self.dwell_seconds = max(0.0, float(self.dwell_seconds))
        self.exit_debounce_seconds = max(0.0, float(self.exit_debounce_seconds))
        self.quiet_start = int(self.quiet_start) % 24
        self.quiet_end = int(self.quiet_end) % 24
        if not isinstance(self.battery_mode, BatteryMode):
            self.battery_mode = _parse_battery_mode(self.battery_mode)

    def to_dict(self) -> dict:
        """Serialize to dict."""
        return {
            "dwell_seconds": self.dwell_seconds,
            "exit_debounce_seconds": self.exit_debounce_seconds,
            "quiet_start": self.quiet_start,
            "quiet_end": self.quiet_end,
            "battery_mode": self.battery_mode.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Deserialize from dict.

        Missing or unreadable fields fall back to their defaults.
        """
        return cls(
            dwell_seconds=_coerce(data.get("dwell_seconds"), float, 10),
            exit_debounce_seconds=_coerce(data.get("exit_debounce_seconds"), float, 15),
            quiet_start=_coerce(data.get("quiet_start"), int, 22),
            quiet_end=_coerce(data.get("quiet_end"), int, 7),
            battery_mode=_parse_battery_mode(data.get("battery_mode")),
        )


def _parse_battery_mode(value: object) -> BatteryMode:
    try:
        return BatteryMode(value)
    except (TypeError, ValueError):
        return BatteryMode.HIGH_FIDELITY


def _coerce(value: object, kind: type, default: float) -> float:
    if value is None:
        return default
    try:
        return kind(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unreadable setting {value!r}, using {default}")
        return default
