"""
Suppression policy for geofence notifications.

Quiet hours (a daily window, possibly wrapping midnight) and per-region
snooze windows mute notifications without affecting presence tracking.
"""

from .policy import SuppressionPolicy, is_quiet_hours, QUIET_HOURS, SNOOZED

__all__ = [
    "SuppressionPolicy",
    "is_quiet_hours",
    "QUIET_HOURS",
    "SNOOZED",
]
