"""
Presence module for geosentinel.

Turns noisy raw enter/exit signals into confirmed transitions.

Features:
- Per-region presence: UNKNOWN / INSIDE / OUTSIDE
- Dwell (enter) and exit-debounce (exit) confirmation timers
- At most one pending timer per region, cancel-on-supersede
- Authoritative one-shot initial state (no debounce)
- Snooze: per-region notification mute that keeps tracking

Events Emitted:
- presence.changed: Raw signal accepted or initial state applied
- presence.confirmed: Transition survived its confirmation window
"""

from .models import (
    Presence,
    TimerKind,
    TransitionKind,
    RegionRuntimeState,
    RawEventResult,
    ConfirmedTransition,
)
from .engine import PresenceEngine
from .timers import ConfirmationTimerRegistry, PendingTimer
from .module import PresenceModule

__all__ = [
    "PresenceModule",
    "PresenceEngine",
    "ConfirmationTimerRegistry",
    "PendingTimer",
    "Presence",
    "TimerKind",
    "TransitionKind",
    "RegionRuntimeState",
    "RawEventResult",
    "ConfirmedTransition",
]
