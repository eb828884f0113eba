#!/usr/bin/env python3
"""
Example: GeofenceService - Stable enter/exit notifications

This example demonstrates:
1. Starting the service with a mock gateway and notification sink
2. Adding regions and letting the scheduler pick the nearest ones
3. A flicker (enter then quick exit) that never notifies
4. A real entry confirmed after the dwell window
5. Snoozing a region from a notification action
6. Reading the diagnostic trail

Run with: PYTHONPATH=src python3 examples/geofence-demo.py
"""

import asyncio
import logging
import tempfile

from geosentinel import (
    GeofenceService,
    JsonFileRegionStore,
    MockNotificationSink,
    MockSensorGateway,
    Region,
)
from geosentinel.core.bus import EventFilter
from geosentinel.gateway import LocationUpdate, RawEnter, RawExit
from geosentinel.service import SNOOZE_ACTION


def print_section(title: str):
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


async def settle(service: GeofenceService, seconds: float):
    await service.join()
    await asyncio.sleep(seconds)
    await service.join()


async def main():
    logging.basicConfig(level=logging.WARNING)
    print_section("geosentinel: GeofenceService Example")

    gateway = MockSensorGateway()
    notifier = MockNotificationSink()
    store = JsonFileRegionStore(tempfile.mkdtemp(prefix="geosentinel-"))

    # 1. Start the service
    print("\n1. Starting service...")
    service = GeofenceService(gateway, notifier, store=store)
    await service.start()
    # Short windows for the demo; quiet hours squeezed into 03:00-04:00
    await service.update_settings(dwell_seconds=0.2, exit_debounce_seconds=0.3, quiet_start=3, quiet_end=4)
    print(f"   ✓ Running, store at {store.directory}")

    confirmed = []
    service.bus.subscribe(confirmed.append, EventFilter(event_type="presence.confirmed"))

    # 2. Regions
    print("\n2. Adding regions...")
    home = await service.add_region(Region(name="Home", latitude=32.5149, longitude=-117.0382))
    office = await service.add_region(
        Region(name="Office", latitude=32.5331, longitude=-117.0197, radius=20)
    )
    gateway.emit(LocationUpdate(latitude=32.5150, longitude=-117.0380))
    await service.join()
    plan = service.monitoring_plan
    for region in plan.active:
        print(f"   ✓ Monitoring {region.name} at {int(plan.distance_to(region.id))}m")

    # 3. Flicker
    print("\n3. Enter then exit inside the dwell window...")
    gateway.emit(RawEnter(office.id))
    gateway.emit(RawExit(office.id))
    await settle(service, 0.5)
    print(f"   ✓ Notifications so far: {[n.title for n in notifier.posted]}")

    # 4. Real entry
    print("\n4. Entering Home and staying...")
    gateway.emit(RawEnter(home.id))
    await settle(service, 0.5)
    for notification in notifier.posted:
        print(f"   ✓ {notification.title}: {notification.body}")

    # 5. Snooze
    print("\n5. Snoozing Home from the notification...")
    await service.handle_notification_action(SNOOZE_ACTION, home.id)
    gateway.emit(RawExit(home.id))
    await settle(service, 0.6)
    print(f"   ✓ Home state: {service.region_state(home.id)}")
    print(f"   ✓ Confirmed transitions: {[e.payload['kind'] for e in confirmed]}")

    # 6. Diagnostics
    print_section("Diagnostic trail")
    print(service.diagnostics.as_text())

    await service.stop()


if __name__ == "__main__":
    asyncio.run(main())
