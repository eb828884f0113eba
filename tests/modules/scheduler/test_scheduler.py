"""Tests for the priority scheduler."""

import random

import pytest

from geosentinel import Event, EventBus, EventFilter, RegionManager, Settings, BatteryMode
from geosentinel.core.diagnostics import DiagnosticLog
from geosentinel.gateway import MAX_MONITORED_REGIONS, RegionState
from geosentinel.modules.scheduler import SchedulerModule, select_active_regions

ORIGIN = (0.0, 0.0)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def regions():
    return RegionManager()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def diagnostics():
    return DiagnosticLog(max_entries=None)


@pytest.fixture
def scheduler(gateway, settings, diagnostics, bus, regions):
    module = SchedulerModule(gateway=gateway, settings=lambda: settings, diagnostics=diagnostics)
    module.attach(bus, regions)
    return module


def add_line_of_regions(regions, count):
    """Regions north of the origin, r0 nearest, added in shuffled order."""
    order = list(range(count))
    random.Random(7).shuffle(order)
    for i in order:
        regions.create_region(name=f"r{i}", latitude=0.01 * (i + 1), longitude=0.0, id=f"r{i}")


def started(gateway):
    return [region_id for call, region_id in gateway.get_calls() if call == "start"]


class TestSelectActiveRegions:
    def test_nearest_first(self, make_region):
        far = make_region(name="far", latitude=1.0, longitude=0.0, id="far")
        near = make_region(name="near", latitude=0.1, longitude=0.0, id="near")

        active, skipped, distances = select_active_regions([far, near], ORIGIN, cap=1)

        assert active == [near]
        assert skipped == [far]
        assert distances["near"] < distances["far"]

    def test_without_location_keeps_stored_order(self, make_region):
        items = [make_region(name=str(i), id=str(i)) for i in range(3)]

        active, skipped, distances = select_active_regions(items, None, cap=2)

        assert [r.id for r in active] == ["0", "1"]
        assert [r.id for r in skipped] == ["2"]
        assert distances == {}

    def test_disabled_regions_excluded(self, make_region):
        on = make_region(name="on", id="on")
        off = make_region(name="off", id="off", enabled=False)

        active, skipped, _ = select_active_regions([off, on], ORIGIN, cap=20)

        assert active == [on]
        assert skipped == []

    def test_ties_keep_stored_order(self, make_region):
        a = make_region(name="a", latitude=0.5, longitude=0.0, id="a")
        b = make_region(name="b", latitude=0.5, longitude=0.0, id="b")

        active, _, _ = select_active_regions([a, b], ORIGIN, cap=20)

        assert [r.id for r in active] == ["a", "b"]


class TestRecompute:
    """Full stop-then-start recomputation."""

    def test_cap_selects_twenty_nearest(self, scheduler, gateway, regions):
        add_line_of_regions(regions, 25)

        plan = scheduler.update_location(*ORIGIN)

        assert MAX_MONITORED_REGIONS == 20
        assert started(gateway) == [f"r{i}" for i in range(20)]
        assert plan.enabled_count == 25
        assert plan.is_starved is True
        assert [r.id for r in plan.skipped] == [f"r{i}" for i in range(20, 25)]

        touched = {region_id for _, region_id in gateway.get_calls()}
        for i in range(20, 25):
            assert f"r{i}" not in touched

    def test_location_change_rotates_regions(self, scheduler, gateway, regions):
        add_line_of_regions(regions, 25)
        scheduler.update_location(*ORIGIN)

        # Far end of the line: r24 is now nearest
        scheduler.update_location(0.25, 0.0)

        assert set(gateway.monitored()) == {f"r{i}" for i in range(5, 25)}
        assert scheduler.last_plan.active[0].id == "r24"

    def test_stop_everything_before_starting(self, scheduler, gateway, regions):
        add_line_of_regions(regions, 3)
        scheduler.recompute()
        gateway.clear_calls()

        scheduler.recompute()

        calls = [call for call, _ in gateway.get_calls()]
        assert calls.count("stop") == 3
        last_stop = max(i for i, c in enumerate(calls) if c in ("stop", "stop_coarse"))
        first_start = min(i for i, c in enumerate(calls) if c == "start")
        assert last_stop < first_start

    def test_recompute_is_idempotent(self, scheduler, gateway, regions):
        add_line_of_regions(regions, 3)
        scheduler.update_location(*ORIGIN)
        first = dict(gateway.monitored())

        scheduler.recompute()

        assert gateway.monitored() == first

    def test_no_enabled_regions(self, scheduler, gateway, regions, diagnostics):
        regions.create_region(name="off", latitude=0, longitude=0, enabled=False)

        plan = scheduler.recompute()

        assert started(gateway) == []
        assert plan.active == []
        assert "Priority scheduler: monitoring 0 / 0 regions." in diagnostics.messages()

    def test_radius_clamped(self, scheduler, gateway, regions, diagnostics):
        regions.create_region(name="tiny", latitude=0, longitude=0, radius=10, id="tiny")
        regions.create_region(name="huge", latitude=0, longitude=0, radius=5000, id="huge")

        scheduler.recompute()

        monitored = gateway.monitored()
        assert monitored["tiny"].radius == 50
        assert monitored["huge"].radius == 2000
        # The stored region keeps its requested radius
        assert regions.get_region("tiny").radius == 10
        assert "Warning: radius 10m is small, clamped to 50 m." in diagnostics.messages()
        assert "Warning: radius 5000m is large, clamped to 2000 m." in diagnostics.messages()

    def test_diagnostics_list_nearest(self, scheduler, regions, diagnostics):
        add_line_of_regions(regions, 25)

        scheduler.update_location(*ORIGIN)

        messages = diagnostics.messages()
        assert "Updated user location for priority scheduler." in messages
        assert "Priority scheduler: monitoring 20 / 25 regions." in messages
        nearest = [m for m in messages if m.startswith(" • ")]
        assert len(nearest) == 5
        assert nearest[0].startswith(" • r0 at ")


class TestBatteryMode:
    def test_saver_enables_coarse_mode(self, scheduler, gateway, regions, settings):
        settings.battery_mode = BatteryMode.SAVER

        plan = scheduler.recompute()

        assert plan.coarse_mode is True
        assert gateway.coarse_mode_active is True
        assert ("start_coarse", None) in gateway.get_calls()

    def test_high_fidelity_disables_coarse_mode(self, scheduler, gateway, settings):
        settings.battery_mode = BatteryMode.SAVER
        scheduler.recompute()

        settings.battery_mode = BatteryMode.HIGH_FIDELITY
        plan = scheduler.recompute()

        assert plan.coarse_mode is False
        assert gateway.coarse_mode_active is False


class TestInitialStates:
    def test_state_requested_for_newly_active_only(self, scheduler, gateway, regions):
        regions.create_region(name="home", latitude=0, longitude=0, id="home")
        scheduler.recompute()
        assert ("request_state", "home") in gateway.get_calls()

        gateway.clear_calls()
        regions.create_region(name="work", latitude=0, longitude=0, id="work")
        plan = scheduler.recompute()

        requested = [rid for call, rid in gateway.get_calls() if call == "request_state"]
        assert requested == ["work"]
        assert plan.newly_active == ["work"]

    def test_state_determined_published(self, scheduler, gateway, regions, bus):
        received = []
        bus.subscribe(received.append, EventFilter(event_type="region.state_determined"))
        regions.create_region(name="home", latitude=0, longitude=0, id="home")
        gateway.set_region_state("home", RegionState.INSIDE)

        scheduler.recompute()

        assert [(e.region_id, e.payload["state"]) for e in received] == [("home", "inside")]

    def test_region_removed_becomes_new_again(self, scheduler, gateway, regions):
        regions.create_region(name="home", latitude=0, longitude=0, id="home")
        scheduler.recompute()
        regions.toggle_enabled("home")
        scheduler.recompute()

        gateway.clear_calls()
        regions.toggle_enabled("home")
        scheduler.recompute()

        assert ("request_state", "home") in gateway.get_calls()


class TestTriggers:
    def test_confirmed_transition_triggers_recompute(self, scheduler, gateway, regions, bus):
        regions.create_region(name="home", latitude=0, longitude=0, id="home")
        recomputed = []
        bus.subscribe(recomputed.append, EventFilter(event_type="scheduler.recomputed"))

        bus.publish(Event(type="presence.confirmed", source="presence", region_id="home"))

        assert len(recomputed) == 1
        assert recomputed[0].payload["active"] == ["home"]

    def test_custom_cap(self, scheduler, gateway, regions):
        gateway.max_monitored_regions = 2
        add_line_of_regions(regions, 5)

        scheduler.update_location(*ORIGIN)

        assert started(gateway) == ["r0", "r1"]
