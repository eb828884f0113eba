"""PresenceModule - Debounced enter/exit tracking per region.

This module wraps the presence engine and drives it with real timers,
the suppression policy and the notification sink.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from geosentinel.core.bus import Event, EventBus, EventFilter
from geosentinel.core.diagnostics import DiagnosticLog
from geosentinel.core.manager import RegionManager
from geosentinel.core.region import Region
from geosentinel.core.settings import Settings
from geosentinel.gateway import RegionState
from geosentinel.modules.base import GeofenceModule
from geosentinel.modules.suppression import SuppressionPolicy, QUIET_HOURS
from geosentinel.notifications import NotificationSink

from .engine import PresenceEngine
from .models import ConfirmedTransition, Presence, RegionRuntimeState, TimerKind, TransitionKind
from .timers import ConfirmationTimerRegistry

logger = logging.getLogger(__name__)

_INITIAL_STATE_MAP = {
    RegionState.INSIDE: Presence.INSIDE,
    RegionState.OUTSIDE: Presence.OUTSIDE,
    RegionState.UNKNOWN: Presence.UNKNOWN,
}

_NOTIFICATION_TEXT = {
    TransitionKind.ENTER: ("Entered Region", "You entered {name}"),
    TransitionKind.EXIT: ("Exited Region", "You left {name}"),
}


class PresenceModule(GeofenceModule):
    """
    Presence tracking module.

    Features:
    - Optimistic presence on raw enter/exit, confirmed after dwell / exit-debounce
    - Duplicate raw signals ignored without restarting timers
    - Superseding signals cancel the pending confirmation
    - Snooze and quiet hours mute notifications, never tracking

    Events Emitted:
    - presence.changed: Raw signal accepted or initial state applied
    - presence.confirmed: A transition survived its confirmation window

    Timer elapses are reported through `schedule_elapsed` so the host can
    route them through its serialized event queue. Without one, elapses are
    handled directly on the event loop.
    """

    def __init__(
        self,
        notifier: NotificationSink,
        settings: Callable[[], Settings],
        diagnostics: Optional[DiagnosticLog] = None,
        clock: Optional[Callable[[], datetime]] = None,
        suppression: Optional[SuppressionPolicy] = None,
        schedule_elapsed: Optional[Callable[[str, TimerKind, int], None]] = None,
        persist: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Initialize the presence module.

        Args:
            notifier: Sink for confirmed, non-suppressed transitions
            settings: Returns the current Settings
            diagnostics: Diagnostic trail (a private one is created if omitted)
            clock: Time source (defaults to local, timezone-aware now)
            suppression: Suppression policy (defaults to one built on `settings`)
            schedule_elapsed: Receives timer elapses for serialized processing
            persist: Called after every runtime-state mutation
        """
        self._notifier = notifier
        self._settings = settings
        self._diagnostics = diagnostics or DiagnosticLog(max_entries=None)
        self._clock = clock or (lambda: datetime.now().astimezone())
        self._suppression = suppression or SuppressionPolicy(settings)
        self._schedule_elapsed = schedule_elapsed
        self._persist = persist
        self._bus: Optional[EventBus] = None
        self._regions: Optional[RegionManager] = None
        self._engine = PresenceEngine()
        self.timers = ConfirmationTimerRegistry(self._report_elapsed)

    @property
    def id(self) -> str:
        return "presence"

    @property
    def engine(self) -> PresenceEngine:
        return self._engine

    def attach(self, bus: EventBus, region_manager: RegionManager) -> None:
        """Attach to service components."""
        self._bus = bus
        self._regions = region_manager

        # One-shot states for regions the scheduler just started monitoring
        bus.subscribe(
            handler=self._on_state_determined,
            event_filter=EventFilter(event_type="region.state_determined"),
        )

        logger.info("PresenceModule attached")

    def _on_state_determined(self, event: Event) -> None:
        if not event.region_id:
            return
        try:
            state = RegionState(event.payload.get("state"))
        except ValueError:
            logger.warning(f"Unreadable region state in event: {event.payload!r}")
            return
        self.apply_initial_state(event.region_id, state)

    # Raw signals

    def handle_raw_enter(self, region_id: str) -> bool:
        """
        Process a raw enter from the gateway.

        Returns:
            True if the signal was accepted and a dwell timer started
        """
        region = self._lookup(region_id, "RAW ENTER")
        if region is None:
            return False

        self._diagnostics.log(f"RAW ENTER for {region.name}")
        result = self._engine.handle_raw_enter(region.id, self._clock())
        self._save()

        if not result.accepted:
            self._diagnostics.log(f"Dwell not started for {region.name}: already INSIDE.")
            return False

        dwell = self._settings().dwell_seconds
        self.timers.start(region.id, TimerKind.DWELL, dwell)
        self._diagnostics.log(f"RAW ENTER for {region.name}. Waiting {dwell:g}s to confirm...")
        self._publish_changed(region, result.new_state, reason="raw_enter")
        return True

    def handle_raw_exit(self, region_id: str) -> bool:
        """
        Process a raw exit from the gateway.

        Returns:
            True if the signal was accepted and an exit-debounce timer started
        """
        region = self._lookup(region_id, "RAW EXIT")
        if region is None:
            return False

        self._diagnostics.log(f"RAW EXIT for {region.name}")
        result = self._engine.handle_raw_exit(region.id, self._clock())
        self._save()

        if not result.accepted:
            self._diagnostics.log(f"Exit debounce not started for {region.name}: already OUTSIDE.")
            return False

        debounce = self._settings().exit_debounce_seconds
        self.timers.start(region.id, TimerKind.EXIT_DEBOUNCE, debounce)
        self._diagnostics.log(f"RAW EXIT for {region.name}. Debouncing {debounce:g}s...")
        self._publish_changed(region, result.new_state, reason="raw_exit")
        return True

    def apply_initial_state(self, region_id: str, state: RegionState) -> Optional[RegionRuntimeState]:
        """Apply a one-shot state snapshot (no debounce)."""
        region = self._lookup(region_id, "Initial state")
        if region is None:
            return None

        presence = _INITIAL_STATE_MAP[state]
        new_state = self._engine.apply_initial_state(region.id, presence)
        self._save()
        self._diagnostics.log(f"Initial state: {presence.value.upper()} for {region.name}")
        self._publish_changed(region, new_state, reason="initial_state")
        return new_state

    # Timers

    def _report_elapsed(self, region_id: str, kind: TimerKind, token: int) -> None:
        if self._schedule_elapsed is not None:
            self._schedule_elapsed(region_id, kind, token)
        else:
            self.handle_timer_elapsed(region_id, kind, token)

    def handle_timer_elapsed(
        self, region_id: str, kind: TimerKind, token: int
    ) -> Optional[ConfirmedTransition]:
        """
        Re-validate and possibly confirm after a timer elapsed.

        Returns:
            The confirmed transition, or None if superseded or abandoned
        """
        if not self.timers.consume(region_id, kind, token):
            logger.debug(f"Stale {kind.value} elapse for {region_id} (token={token}), ignored")
            return None

        region = self._regions.get_region(region_id) if self._regions else None
        name = region.name if region else region_id
        word = "ENTER" if kind is TimerKind.DWELL else "EXIT"

        now = self._clock()
        transition = self._engine.confirm(region_id, kind, now)
        if transition is None:
            self._diagnostics.log(f"{word} cancelled for {name}: state changed during wait.")
            return None

        self._save()
        past = "ENTERED" if transition.kind is TransitionKind.ENTER else "EXITED"
        self._diagnostics.log(f"{past} confirmed for {name}.")

        reason = self._suppression.reason(transition.state, now)
        if reason == QUIET_HOURS:
            self._diagnostics.log(f"{past} confirmed for {name} but silenced due to Quiet Hours.")
        elif reason is not None:
            self._diagnostics.log(f"{word} for {name} not notified due to snooze.")
        else:
            self._notify(region, transition)

        if self._bus:
            self._bus.publish(
                Event(
                    type="presence.confirmed",
                    source=self.id,
                    region_id=region_id,
                    payload={
                        "region_name": name,
                        "kind": transition.kind.value,
                        "presence": transition.state.presence.value,
                        "suppressed": reason is not None,
                        "suppressed_reason": reason,
                        "timestamp": now.isoformat(),
                    },
                    timestamp=now,
                )
            )
        return transition

    def _notify(self, region: Optional[Region], transition: ConfirmedTransition) -> None:
        if region is not None:
            wanted = (
                region.notify_on_entry
                if transition.kind is TransitionKind.ENTER
                else region.notify_on_exit
            )
            if not wanted:
                logger.debug(f"{region.name}: {transition.kind.value} notifications disabled")
                return

        title, body = _NOTIFICATION_TEXT[transition.kind]
        name = region.name if region else transition.region_id
        try:
            self._notifier.post_geofence_notification(
                title, body.format(name=name), transition.region_id
            )
        except Exception as e:
            logger.error(f"Notification delivery failed for {name}: {e}", exc_info=True)

    # Commands

    def snooze(self, region_id: str, duration: timedelta) -> Optional[RegionRuntimeState]:
        """
        Mute notifications for a region for `duration`.

        Tracking continues; confirmations inside the window update state silently.
        """
        region = self._lookup(region_id, "Snooze")
        if region is None:
            return None

        until = self._clock() + duration
        new_state = self._engine.snooze(region.id, until)
        self._save()
        minutes = int(duration.total_seconds() // 60)
        self._diagnostics.log(f"Region {region.name} snoozed for {minutes} minutes.")
        return new_state

    def on_region_added(self, region_id: str) -> None:
        self.timers.cancel_all(region_id)
        self._engine.reset(region_id)
        self._save()

    def on_region_removed(self, region_id: str) -> None:
        self.timers.cancel_all(region_id)
        self._engine.remove(region_id)
        self._save()

    def shutdown(self) -> None:
        self.timers.shutdown()

    # Queries

    def get_region_state(self, region_id: str) -> Optional[Dict[str, Any]]:
        """Get current presence for a region as a plain dict."""
        state = self._engine.get(region_id)
        if state is None:
            return None

        pending = self.timers.pending(region_id)
        return {
            "presence": state.presence.value,
            "last_confirmed_enter": _iso(state.last_confirmed_enter),
            "last_confirmed_exit": _iso(state.last_confirmed_exit),
            "snoozed_until": _iso(state.snoozed_until),
            "is_snoozed": state.is_snoozed(self._clock()),
            "pending_timer": pending.kind.value if pending else None,
        }

    def dump_state(self) -> Dict:
        """Export engine state for persistence."""
        return self._engine.export_state()

    def restore_state(self, state: Dict) -> None:
        """Restore engine state from persistence."""
        self._engine.restore_state(state)
        logger.info(f"Restored presence state for {len(self._engine.state)} regions")

    # Helpers

    def _lookup(self, region_id: str, what: str) -> Optional[Region]:
        region = self._regions.get_region(region_id) if self._regions else None
        if region is None:
            self._diagnostics.warning(f"{what} dropped: unknown region {region_id!r}")
        return region

    def _save(self) -> None:
        if self._persist is None:
            return
        try:
            self._persist()
        except Exception as e:
            logger.error(f"Failed to persist presence state: {e}", exc_info=True)

    def _publish_changed(self, region: Region, state: RegionRuntimeState, reason: str) -> None:
        if not self._bus:
            return
        self._bus.publish(
            Event(
                type="presence.changed",
                source=self.id,
                region_id=region.id,
                payload={
                    "region_name": region.name,
                    "presence": state.presence.value,
                    "reason": reason,
                },
            )
        )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
