"""The Core Logic Engine for region presence.

This module contains the pure business logic. It accepts raw signals and
time, and returns state changes plus timer instructions. It never sleeps and
never schedules anything itself: the host owns the timers and calls
confirm() when one elapses.

Rules:
- Raw enter/exit set presence optimistically and ask for a confirmation timer.
- A raw signal matching the current presence is a duplicate: ignored, no timer restart.
- confirm() re-validates against the current presence before committing.
- Initial-state snapshots are authoritative and bypass confirmation.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from .models import (
    ConfirmedTransition,
    Presence,
    RawEventResult,
    RegionRuntimeState,
    TimerKind,
    TIMER_EXPECTED_PRESENCE,
    TIMER_TO_TRANSITION,
)

_LOGGER = logging.getLogger(__name__)


class PresenceEngine:
    """The functional core of the presence state machine."""

    def __init__(self, initial_state: Dict[str, RegionRuntimeState] | None = None) -> None:
        """Initialize the engine.

        Args:
            initial_state: Optional state dictionary for restoration.
        """
        self.state: Dict[str, RegionRuntimeState] = dict(initial_state) if initial_state else {}

    def get(self, region_id: str) -> Optional[RegionRuntimeState]:
        return self.state.get(region_id)

    def ensure(self, region_id: str) -> RegionRuntimeState:
        """Get a region's state, creating it lazily."""
        if region_id not in self.state:
            self.state[region_id] = RegionRuntimeState()
        return self.state[region_id]

    def reset(self, region_id: str) -> None:
        """Start a region over with a fresh runtime state."""
        self.state[region_id] = RegionRuntimeState()

    def remove(self, region_id: str) -> None:
        self.state.pop(region_id, None)

    def handle_raw_enter(self, region_id: str, now: datetime) -> RawEventResult:
        """Process a raw enter signal.

        Args:
            region_id: The region the signal refers to.
            now: Current datetime (time-agnostic).

        Returns:
            RawEventResult; timer is DWELL when accepted.
        """
        return self._handle_raw(region_id, Presence.INSIDE, TimerKind.DWELL, now)

    def handle_raw_exit(self, region_id: str, now: datetime) -> RawEventResult:
        """Process a raw exit signal.

        Returns:
            RawEventResult; timer is EXIT_DEBOUNCE when accepted.
        """
        return self._handle_raw(region_id, Presence.OUTSIDE, TimerKind.EXIT_DEBOUNCE, now)

    def _handle_raw(
        self,
        region_id: str,
        implied: Presence,
        timer: TimerKind,
        now: datetime,
    ) -> RawEventResult:
        current = self.ensure(region_id)

        # The raw timestamp is recorded even for duplicates
        if implied is Presence.INSIDE:
            stamped = current.evolve(last_raw_enter=now)
        else:
            stamped = current.evolve(last_raw_exit=now)

        if current.presence is implied:
            self.state[region_id] = stamped
            _LOGGER.debug(f"  {region_id}: duplicate raw {implied.value}, ignored")
            return RawEventResult(
                region_id=region_id,
                accepted=False,
                timer=None,
                previous_state=current,
                new_state=stamped,
            )

        new_state = stamped.evolve(presence=implied)
        self.state[region_id] = new_state
        _LOGGER.info(
            f"  {region_id}: {current.presence.value.upper()} -> {implied.value.upper()} "
            f"(raw, awaiting {timer.value})"
        )
        return RawEventResult(
            region_id=region_id,
            accepted=True,
            timer=timer,
            previous_state=current,
            new_state=new_state,
        )

    def confirm(self, region_id: str, kind: TimerKind, now: datetime) -> Optional[ConfirmedTransition]:
        """Re-validate and commit after a confirmation timer elapsed.

        Args:
            region_id: The region whose timer elapsed.
            kind: Which timer elapsed.
            now: Current datetime.

        Returns:
            ConfirmedTransition, or None if a contradicting signal changed
            presence during the wait (the transition is abandoned).
        """
        current = self.state.get(region_id)
        if current is None:
            _LOGGER.debug(f"  {region_id}: {kind.value} elapsed for unknown region, ignored")
            return None

        expected = TIMER_EXPECTED_PRESENCE[kind]
        if current.presence is not expected:
            _LOGGER.info(
                f"  {region_id}: {kind.value} abandoned "
                f"(presence is {current.presence.value}, expected {expected.value})"
            )
            return None

        transition = TIMER_TO_TRANSITION[kind]
        if kind is TimerKind.DWELL:
            new_state = current.evolve(last_confirmed_enter=now)
        else:
            new_state = current.evolve(last_confirmed_exit=now)
        self.state[region_id] = new_state

        _LOGGER.info(f"  {region_id}: {transition.value.upper()} confirmed")
        return ConfirmedTransition(
            region_id=region_id,
            kind=transition,
            timestamp=now,
            state=new_state,
        )

    def apply_initial_state(self, region_id: str, presence: Presence) -> RegionRuntimeState:
        """Set presence from a one-shot snapshot. No confirmation involved."""
        new_state = self.ensure(region_id).evolve(presence=presence)
        self.state[region_id] = new_state
        _LOGGER.info(f"  {region_id}: initial state {presence.value.upper()}")
        return new_state

    def snooze(self, region_id: str, until: datetime) -> RegionRuntimeState:
        """Mute notifications for a region until `until`."""
        new_state = self.ensure(region_id).evolve(snoozed_until=until)
        self.state[region_id] = new_state
        return new_state

    def export_state(self) -> Dict[str, Dict[str, Any]]:
        """Creates a JSON-serializable dump of the current state.

        Returns:
            dict: { "<region id>": { "presence": "inside",
                "last_raw_enter": "iso-string", ... } }
        """
        return {
            region_id: {
                "presence": state.presence.value,
                "last_raw_enter": _iso(state.last_raw_enter),
                "last_raw_exit": _iso(state.last_raw_exit),
                "last_confirmed_enter": _iso(state.last_confirmed_enter),
                "last_confirmed_exit": _iso(state.last_confirmed_exit),
                "snoozed_until": _iso(state.snoozed_until),
            }
            for region_id, state in self.state.items()
        }

    def restore_state(self, snapshot: Dict[str, Dict[str, Any]]) -> None:
        """Hydrates state from a snapshot.

        Unknown presence values restore as UNKNOWN; unparseable timestamps as None.
        """
        self.state.clear()
        for region_id, data in (snapshot or {}).items():
            if not isinstance(data, dict):
                continue
            try:
                presence = Presence(data.get("presence", Presence.UNKNOWN.value))
            except ValueError:
                presence = Presence.UNKNOWN

            self.state[region_id] = RegionRuntimeState(
                presence=presence,
                last_raw_enter=_parse(data.get("last_raw_enter")),
                last_raw_exit=_parse(data.get("last_raw_exit")),
                last_confirmed_enter=_parse(data.get("last_confirmed_enter")),
                last_confirmed_exit=_parse(data.get("last_confirmed_exit")),
                snoozed_until=_parse(data.get("snoozed_until")),
            )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (ValueError, TypeError):
        return None
