"""
GeofenceService - the single owner of all geofence state.

Every input (gateway events, timer elapses, user commands) is put on one
inbound queue and processed by one consumer task, one message at a time.
Processing never awaits, so no two mutations can interleave and no locks
are needed.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from geosentinel.core.bus import EventBus
from geosentinel.core.diagnostics import DiagnosticLog
from geosentinel.core.manager import RegionManager
from geosentinel.core.region import Region, parse_region_id
from geosentinel.core.settings import BatteryMode, Settings
from geosentinel.core.store import InMemoryRegionStore, RegionStore, StoreKeys
from geosentinel.gateway import (
    AuthorizationChanged,
    AuthorizationStatus,
    GatewayError,
    GatewayEvent,
    LocationUpdate,
    RawEnter,
    RawExit,
    SensorGateway,
    StateDetermined,
    Visit,
)
from geosentinel.modules.presence import PresenceModule, TimerKind
from geosentinel.modules.scheduler import MonitoringPlan, SchedulerModule
from geosentinel.notifications import NotificationSink

logger = logging.getLogger(__name__)

SNOOZE_ACTION = "snooze_15"
DONE_ACTION = "done"
SNOOZE_ACTION_MINUTES = 15


@dataclass(frozen=True)
class TimerElapsed:
    """A confirmation timer finished sleeping."""

    region_id: str
    kind: TimerKind
    token: int


@dataclass(frozen=True)
class _Command:
    fn: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    kwargs: Optional[Dict[str, Any]] = None


class GeofenceService:
    """
    Geofence presence service.

    Wires the region manager, presence module and priority scheduler to a
    sensor gateway, a notification sink and a region store.

    Example:
        service = GeofenceService(gateway, notifier, store)
        await service.start()
        await service.add_region(Region(name="Home", latitude=32.51, longitude=-117.04))
        ...
        await service.stop()
    """

    def __init__(
        self,
        gateway: SensorGateway,
        notifier: NotificationSink,
        store: Optional[RegionStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        bus: Optional[EventBus] = None,
        max_log_entries: Optional[int] = 1000,
    ) -> None:
        """
        Initialize the service.

        Args:
            gateway: Platform region-monitoring service
            notifier: Sink for confirmed, non-suppressed transitions
            store: Persistence for regions, settings, runtime state and logs
            clock: Time source (defaults to local, timezone-aware now)
            bus: Event bus for semantic events (a new one if omitted)
            max_log_entries: Size bound of the diagnostic trail
        """
        self._gateway = gateway
        self._clock = clock or (lambda: datetime.now().astimezone())
        self.store = store or InMemoryRegionStore()
        self.bus = bus or EventBus()
        self.regions = RegionManager()
        self.settings = Settings()
        self.diagnostics = DiagnosticLog(
            store=self.store, max_entries=max_log_entries, clock=self._clock
        )

        self.authorization_status = AuthorizationStatus.NOT_DETERMINED
        self.precise_location = True

        self.presence = PresenceModule(
            notifier=notifier,
            settings=lambda: self.settings,
            diagnostics=self.diagnostics,
            clock=self._clock,
            schedule_elapsed=self._enqueue_elapsed,
            persist=self._save_runtime,
        )
        self.scheduler = SchedulerModule(
            gateway=gateway,
            settings=lambda: self.settings,
            diagnostics=self.diagnostics,
        )
        self.modules = [self.presence, self.scheduler]
        for module in self.modules:
            module.attach(self.bus, self.regions)

        self._queue: asyncio.Queue = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # Lifecycle

    @property
    def is_running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    async def start(self) -> None:
        """Start the consumer loop, attach to the gateway and bootstrap."""
        if self.is_running:
            return
        self._loop = asyncio.get_running_loop()
        self._consumer = self._loop.create_task(self._consume(), name="geosentinel-consumer")
        self._gateway.set_listener(self.submit)
        await self._call(self._bootstrap)

    async def stop(self) -> None:
        """Detach from the gateway, cancel timers and stop the consumer loop."""
        self._gateway.set_listener(None)
        self.presence.shutdown()
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        self._fail_pending()
        logger.info("GeofenceService stopped")

    def _fail_pending(self) -> None:
        """Fail commands still queued when the consumer stopped."""
        while not self._queue.empty():
            message, future = self._queue.get_nowait()
            if future is not None and not future.done():
                future.set_exception(RuntimeError("GeofenceService is not running"))
            else:
                logger.debug(f"Discarding unprocessed {type(message).__name__}")
            self._queue.task_done()

    async def __aenter__(self) -> "GeofenceService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def join(self) -> None:
        """Wait until every queued message has been processed."""
        await self._queue.join()

    # Inbound queue

    def submit(self, event: GatewayEvent) -> None:
        """
        Queue a gateway event for processing.

        Must be called from the event loop thread; use submit_threadsafe()
        from platform callback threads.
        """
        self._queue.put_nowait((event, None))

    def submit_threadsafe(self, event: GatewayEvent) -> None:
        """Queue a gateway event from any thread."""
        if self._loop is None:
            raise RuntimeError("GeofenceService is not running")
        self._loop.call_soon_threadsafe(self.submit, event)

    def _enqueue_elapsed(self, region_id: str, kind: TimerKind, token: int) -> None:
        self._queue.put_nowait((TimerElapsed(region_id, kind, token), None))

    async def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        if not self.is_running:
            raise RuntimeError("GeofenceService is not running")
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((_Command(fn, args, kwargs), future))
        return await future

    async def _consume(self) -> None:
        while True:
            message, future = await self._queue.get()
            try:
                result = self._process(message)
            except Exception as e:
                logger.error(f"Error processing {type(message).__name__}: {e}", exc_info=True)
                if future is not None and not future.done():
                    future.set_exception(e)
            else:
                if future is not None and not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()

    def _process(self, message: Any) -> Any:
        """Handle one inbound message. Runs only on the consumer task."""
        if isinstance(message, _Command):
            return message.fn(*message.args, **(message.kwargs or {}))
        elif isinstance(message, TimerElapsed):
            return self.presence.handle_timer_elapsed(message.region_id, message.kind, message.token)
        elif isinstance(message, RawEnter):
            region_id = self._resolve_region_id(message.region_id, "RAW ENTER")
            if region_id:
                return self.presence.handle_raw_enter(region_id)
        elif isinstance(message, RawExit):
            region_id = self._resolve_region_id(message.region_id, "RAW EXIT")
            if region_id:
                return self.presence.handle_raw_exit(region_id)
        elif isinstance(message, StateDetermined):
            region_id = self._resolve_region_id(message.region_id, "Initial state")
            if region_id:
                return self.presence.apply_initial_state(region_id, message.state)
        elif isinstance(message, Visit):
            self.diagnostics.log("Visit event received.")
        elif isinstance(message, LocationUpdate):
            return self.scheduler.update_location(message.latitude, message.longitude)
        elif isinstance(message, AuthorizationChanged):
            self._on_authorization_changed(message)
        elif isinstance(message, GatewayError):
            self.diagnostics.warning(f"Location error: {message.reason}")
        else:
            logger.warning(f"Unknown inbound message: {message!r}")
        return None

    def _resolve_region_id(self, raw: Any, what: str) -> Optional[str]:
        """Map a gateway-supplied id to a known region, or drop it with a diagnostic."""
        if isinstance(raw, str) and raw in self.regions:
            return raw

        region_id = parse_region_id(raw)
        if region_id is None:
            self.diagnostics.warning(f"{what} dropped: malformed region id {raw!r}")
            return None
        if region_id not in self.regions:
            self.diagnostics.warning(f"{what} dropped: unknown region {region_id}")
            return None
        return region_id

    # Public commands (serialized through the queue)

    async def add_region(self, region: Region) -> Region:
        return await self._call(self._add_region, region)

    async def update_region(self, region: Region) -> Region:
        return await self._call(self._update_region, region)

    async def delete_region(self, region_id: str) -> Region:
        return await self._call(self._delete_region, region_id)

    async def toggle_enabled(self, region_id: str) -> Region:
        return await self._call(self._toggle_enabled, region_id)

    async def toggle_battery_mode(self) -> BatteryMode:
        return await self._call(self._toggle_battery_mode)

    async def update_settings(self, **changes: Any) -> Settings:
        return await self._call(self._update_settings, **changes)

    async def snooze(self, region_id: str, minutes: float = SNOOZE_ACTION_MINUTES) -> None:
        await self._call(self._snooze, region_id, minutes)

    async def handle_notification_action(self, action: str, region_id: str) -> None:
        await self._call(self._handle_notification_action, action, region_id)

    async def recompute(self) -> MonitoringPlan:
        return await self._call(self.scheduler.recompute)

    # Command implementations

    def _bootstrap(self) -> None:
        self.regions.load(self.store.load(StoreKeys.REGIONS, []))

        raw_settings = self.store.load(StoreKeys.SETTINGS, {})
        self.settings = Settings.from_dict(raw_settings if isinstance(raw_settings, dict) else {})

        raw_runtime = self.store.load(StoreKeys.RUNTIME, {})
        self.presence.restore_state(raw_runtime if isinstance(raw_runtime, dict) else {})
        self.diagnostics.load()

        self.scheduler.recompute()
        self.diagnostics.log(
            f"Bootstrap complete. Regions: {len(self.regions)}. "
            f"Mode: {self.settings.battery_mode.title}."
        )

    def _add_region(self, region: Region) -> Region:
        region = self.regions.add_region(region)
        self.presence.on_region_added(region.id)
        self._save_regions()
        self.scheduler.recompute()
        self.diagnostics.log(f"Added region: {region.name} ({int(region.radius)} m).")
        return region

    def _update_region(self, region: Region) -> Region:
        region = self.regions.update_region(region)
        self._save_regions()
        self.scheduler.recompute()
        self.diagnostics.log(f"Updated region: {region.name}.")
        return region

    def _delete_region(self, region_id: str) -> Region:
        region = self.regions.delete_region(region_id)
        for module in self.modules:
            module.on_region_removed(region_id)
        self._save_regions()
        self.scheduler.recompute()
        self.diagnostics.log(f"Deleted region: {region.name}.")
        return region

    def _toggle_enabled(self, region_id: str) -> Region:
        region = self.regions.toggle_enabled(region_id)
        self._save_regions()
        self.scheduler.recompute()
        state = "enabled" if region.enabled else "disabled"
        self.diagnostics.log(f"Toggled {region.name} to {state}.")
        return region

    def _toggle_battery_mode(self) -> BatteryMode:
        mode = (
            BatteryMode.HIGH_FIDELITY
            if self.settings.battery_mode is BatteryMode.SAVER
            else BatteryMode.SAVER
        )
        self.settings.battery_mode = mode
        self._save_settings()
        self.scheduler.recompute()
        self.diagnostics.log(f"Battery mode: {mode.title}.")
        return mode

    def _update_settings(self, **changes: Any) -> Settings:
        current = self.settings.to_dict()
        unknown = set(changes) - set(current)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

        if isinstance(changes.get("battery_mode"), BatteryMode):
            changes["battery_mode"] = changes["battery_mode"].value

        previous_mode = self.settings.battery_mode
        # Direct construction so unreadable values reach the caller
        self.settings = Settings(**{**current, **changes})
        self._save_settings()
        self.diagnostics.log(f"Settings updated: {', '.join(sorted(changes))}.")

        if self.settings.battery_mode is not previous_mode:
            self.scheduler.recompute()
        return self.settings

    def _snooze(self, region_id: str, minutes: float) -> None:
        resolved = self._resolve_region_id(region_id, "Snooze")
        if resolved:
            self.presence.snooze(resolved, timedelta(minutes=minutes))

    def _handle_notification_action(self, action: str, region_id: str) -> None:
        resolved = self._resolve_region_id(region_id, f"Action {action!r}")
        if resolved is None:
            return

        if action == SNOOZE_ACTION:
            self.presence.snooze(resolved, timedelta(minutes=SNOOZE_ACTION_MINUTES))
        elif action == DONE_ACTION:
            region = self.regions.get_region(resolved)
            self.diagnostics.log(f"DONE tapped for region {region.name if region else resolved}.")
        else:
            self.diagnostics.warning(f"Unknown notification action {action!r} ignored.")

    def _on_authorization_changed(self, event: AuthorizationChanged) -> None:
        was_authorized = self.authorization_status.is_authorized
        self.authorization_status = event.status
        self.precise_location = event.precise
        self.diagnostics.log(
            f"Auth changed: {event.status.description}. Precise={event.precise}"
        )

        if event.status.is_authorized and not was_authorized:
            # Monitoring resumes once permission is back
            self.scheduler.recompute()
        elif not event.status.is_authorized:
            self.diagnostics.warning("Location permission unavailable; monitoring paused.")

    # Queries

    @property
    def authorization_description(self) -> str:
        return self.authorization_status.description

    @property
    def monitoring_plan(self) -> Optional[MonitoringPlan]:
        return self.scheduler.last_plan

    def region_state(self, region_id: str) -> Optional[Dict[str, Any]]:
        return self.presence.get_region_state(region_id)

    def log_messages(self) -> List[str]:
        return self.diagnostics.messages()

    # Persistence

    def _save(self, key: str, value: Any) -> None:
        try:
            self.store.save(key, value)
        except Exception as e:
            logger.error(f"Failed to save {key}: {e}", exc_info=True)

    def _save_regions(self) -> None:
        self._save(StoreKeys.REGIONS, self.regions.dump())

    def _save_settings(self) -> None:
        self._save(StoreKeys.SETTINGS, self.settings.to_dict())

    def _save_runtime(self) -> None:
        self._save(StoreKeys.RUNTIME, self.presence.dump_state())
