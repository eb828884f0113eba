"""Data models for the presence state machine.

Runtime state is frozen (immutable); the engine replaces a region's state
object on every mutation.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional


class Presence(Enum):
    """Presence of the device relative to one region.

    There is no "pending" value: presence follows the latest valid raw signal
    immediately and a separate timer confirms or abandons it.
    """

    UNKNOWN = "unknown"  # No raw signal yet
    INSIDE = "inside"
    OUTSIDE = "outside"


class TimerKind(Enum):
    """Kind of confirmation timer."""

    DWELL = "dwell"  # Confirms an enter
    EXIT_DEBOUNCE = "exit_debounce"  # Confirms an exit


class TransitionKind(Enum):
    """Direction of a confirmed transition."""

    ENTER = "enter"
    EXIT = "exit"


TIMER_TO_TRANSITION = {
    TimerKind.DWELL: TransitionKind.ENTER,
    TimerKind.EXIT_DEBOUNCE: TransitionKind.EXIT,
}

TIMER_EXPECTED_PRESENCE = {
    TimerKind.DWELL: Presence.INSIDE,
    TimerKind.EXIT_DEBOUNCE: Presence.OUTSIDE,
}


@dataclass(frozen=True)
class RegionRuntimeState:
    """Runtime state for a region (Immutable).

    Attributes:
        presence: Current (optimistic) presence.
        last_raw_enter: When the last raw enter arrived.
        last_raw_exit: When the last raw exit arrived.
        last_confirmed_enter: When an enter was last confirmed.
        last_confirmed_exit: When an exit was last confirmed.
        snoozed_until: Notifications for this region are muted until this time.
    """

    presence: Presence = Presence.UNKNOWN
    last_raw_enter: Optional[datetime] = None
    last_raw_exit: Optional[datetime] = None
    last_confirmed_enter: Optional[datetime] = None
    last_confirmed_exit: Optional[datetime] = None
    snoozed_until: Optional[datetime] = None

    def is_snoozed(self, now: datetime) -> bool:
        """Check if the snooze window is still open at `now`."""
        return self.snoozed_until is not None and self.snoozed_until > now

    def evolve(self, **changes) -> "RegionRuntimeState":
        return replace(self, **changes)


@dataclass(frozen=True)
class RawEventResult:
    """Outcome of a raw enter/exit.

    Attributes:
        region_id: Target region.
        accepted: False when the event was a duplicate of the current presence.
        timer: Timer the host must (re)start, or None.
        previous_state: State before the event.
        new_state: State after the event.
    """

    region_id: str
    accepted: bool
    timer: Optional[TimerKind]
    previous_state: RegionRuntimeState
    new_state: RegionRuntimeState


@dataclass(frozen=True)
class ConfirmedTransition:
    """A raw signal that survived its dwell/debounce window."""

    region_id: str
    kind: TransitionKind
    timestamp: datetime
    state: RegionRuntimeState
