"""Tests for the pure presence engine."""

from datetime import datetime, timedelta, timezone

import pytest

from geosentinel.modules.presence import (
    Presence,
    PresenceEngine,
    RegionRuntimeState,
    TimerKind,
    TransitionKind,
)

T0 = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    return PresenceEngine()


class TestRawSignals:
    """Optimistic presence from raw enter/exit."""

    def test_enter_from_unknown(self, engine):
        result = engine.handle_raw_enter("home", T0)

        assert result.accepted is True
        assert result.timer is TimerKind.DWELL
        assert result.previous_state.presence is Presence.UNKNOWN
        assert result.new_state.presence is Presence.INSIDE
        assert result.new_state.last_raw_enter == T0
        assert engine.get("home").presence is Presence.INSIDE

    def test_exit_from_unknown(self, engine):
        result = engine.handle_raw_exit("home", T0)

        assert result.accepted is True
        assert result.timer is TimerKind.EXIT_DEBOUNCE
        assert engine.get("home").presence is Presence.OUTSIDE
        assert engine.get("home").last_raw_exit == T0

    def test_duplicate_enter_is_ignored(self, engine):
        """A second enter while INSIDE asks for no timer but stamps the raw time."""
        engine.handle_raw_enter("home", T0)
        later = T0 + timedelta(seconds=3)

        result = engine.handle_raw_enter("home", later)

        assert result.accepted is False
        assert result.timer is None
        assert engine.get("home").presence is Presence.INSIDE
        assert engine.get("home").last_raw_enter == later

    def test_duplicate_exit_is_ignored(self, engine):
        engine.handle_raw_exit("home", T0)
        result = engine.handle_raw_exit("home", T0)

        assert result.accepted is False
        assert result.timer is None

    def test_exit_supersedes_enter(self, engine):
        engine.handle_raw_enter("home", T0)
        result = engine.handle_raw_exit("home", T0 + timedelta(seconds=2))

        assert result.accepted is True
        assert result.previous_state.presence is Presence.INSIDE
        assert engine.get("home").presence is Presence.OUTSIDE
        # Raw enter timestamp survives
        assert engine.get("home").last_raw_enter == T0

    def test_regions_are_independent(self, engine):
        engine.handle_raw_enter("home", T0)
        engine.handle_raw_exit("work", T0)

        assert engine.get("home").presence is Presence.INSIDE
        assert engine.get("work").presence is Presence.OUTSIDE


class TestConfirm:
    """Re-validation after a timer elapsed."""

    def test_dwell_confirms_enter(self, engine):
        engine.handle_raw_enter("home", T0)
        now = T0 + timedelta(seconds=10)

        transition = engine.confirm("home", TimerKind.DWELL, now)

        assert transition is not None
        assert transition.kind is TransitionKind.ENTER
        assert transition.timestamp == now
        assert engine.get("home").last_confirmed_enter == now
        assert engine.get("home").last_confirmed_exit is None

    def test_debounce_confirms_exit(self, engine):
        engine.handle_raw_exit("home", T0)
        transition = engine.confirm("home", TimerKind.EXIT_DEBOUNCE, T0)

        assert transition.kind is TransitionKind.EXIT
        assert engine.get("home").last_confirmed_exit == T0

    def test_dwell_abandoned_after_exit(self, engine):
        """Presence flipped during the wait: nothing is confirmed."""
        engine.handle_raw_enter("home", T0)
        engine.handle_raw_exit("home", T0 + timedelta(seconds=1))

        assert engine.confirm("home", TimerKind.DWELL, T0 + timedelta(seconds=10)) is None
        assert engine.get("home").last_confirmed_enter is None

    def test_confirm_unknown_region(self, engine):
        assert engine.confirm("ghost", TimerKind.DWELL, T0) is None
        assert engine.get("ghost") is None


class TestInitialStateAndSnooze:
    def test_initial_state_bypasses_confirmation(self, engine):
        state = engine.apply_initial_state("home", Presence.INSIDE)

        assert state.presence is Presence.INSIDE
        assert state.last_confirmed_enter is None

        # A later raw enter is now a duplicate
        assert engine.handle_raw_enter("home", T0).accepted is False

    def test_snooze(self, engine):
        until = T0 + timedelta(minutes=15)
        state = engine.snooze("home", until)

        assert state.snoozed_until == until
        assert state.is_snoozed(T0) is True
        assert state.is_snoozed(until) is False

    def test_reset_and_remove(self, engine):
        engine.handle_raw_enter("home", T0)

        engine.reset("home")
        assert engine.get("home") == RegionRuntimeState()

        engine.remove("home")
        assert engine.get("home") is None


class TestPersistence:
    def test_export_and_restore(self, engine):
        engine.handle_raw_enter("home", T0)
        engine.confirm("home", TimerKind.DWELL, T0 + timedelta(seconds=10))
        engine.snooze("home", T0 + timedelta(minutes=15))

        snapshot = engine.export_state()
        assert snapshot["home"]["presence"] == "inside"
        assert snapshot["home"]["last_raw_enter"] == T0.isoformat()

        restored = PresenceEngine()
        restored.restore_state(snapshot)

        assert restored.get("home") == engine.get("home")

    def test_restore_tolerates_bad_values(self, engine):
        engine.restore_state(
            {
                "home": {"presence": "hovering", "last_raw_enter": "not a date"},
                "work": "garbage",
            }
        )

        assert engine.get("home").presence is Presence.UNKNOWN
        assert engine.get("home").last_raw_enter is None
        assert engine.get("work") is None
