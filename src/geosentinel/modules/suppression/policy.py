"""Notification suppression policy.

Suppression gates notification delivery only. Presence and its persisted
timestamps are updated regardless.
"""

import logging
from datetime import datetime, tzinfo
from typing import TYPE_CHECKING, Callable, Optional

from geosentinel.core.settings import Settings

if TYPE_CHECKING:
    from geosentinel.modules.presence.models import RegionRuntimeState

logger = logging.getLogger(__name__)

QUIET_HOURS = "quiet_hours"
SNOOZED = "snoozed"


def is_quiet_hours(hour: int, quiet_start: int, quiet_end: int) -> bool:
    """
    Check if an hour of day falls inside the quiet window.

    start < end is a same-day window (e.g. 9 -> 17, end exclusive).
    Otherwise the window wraps midnight (e.g. 22 -> 7).
    """
    if quiet_start < quiet_end:
        return quiet_start <= hour < quiet_end
    return hour >= quiet_start or hour < quiet_end


class SuppressionPolicy:
    """
    Decides whether a confirmed transition may notify.

    A transition is suppressed during quiet hours or while its region is snoozed.
    """

    def __init__(
        self,
        settings: Callable[[], Settings],
        tz: Optional[tzinfo] = None,
    ) -> None:
        """
        Initialize the policy.

        Args:
            settings: Returns the current Settings (read on every check)
            tz: Timezone used to derive the hour of day (None = use `now` as given)
        """
        self._settings = settings
        self._tz = tz

    def _hour(self, now: datetime) -> int:
        if self._tz is not None:
            return now.astimezone(self._tz).hour
        return now.hour

    def is_quiet_hours(self, now: datetime) -> bool:
        settings = self._settings()
        return is_quiet_hours(self._hour(now), settings.quiet_start, settings.quiet_end)

    def reason(self, state: Optional["RegionRuntimeState"], now: datetime) -> Optional[str]:
        """
        Get why a notification would be suppressed.

        Returns:
            QUIET_HOURS, SNOOZED, or None if delivery is allowed
        """
        if self.is_quiet_hours(now):
            return QUIET_HOURS
        if state is not None and state.is_snoozed(now):
            return SNOOZED
        return None

    def is_suppressed(self, state: Optional["RegionRuntimeState"], now: datetime) -> bool:
        return self.reason(state, now) is not None
