"""Tests for the confirmation timer registry."""

import asyncio

import pytest

from geosentinel.modules.presence import ConfirmationTimerRegistry, TimerKind


@pytest.fixture
def elapsed():
    return []


@pytest.fixture
def registry(elapsed):
    return ConfirmationTimerRegistry(lambda *args: elapsed.append(args))


class TestConfirmationTimerRegistry:
    """At most one timer per region, superseded timers never fire."""

    @pytest.mark.asyncio
    async def test_timer_elapses(self, registry, elapsed):
        token = registry.start("home", TimerKind.DWELL, 0.01)
        await asyncio.sleep(0.05)

        assert elapsed == [("home", TimerKind.DWELL, token)]
        # Still pending until the elapse is consumed
        assert registry.consume("home", TimerKind.DWELL, token) is True
        assert registry.pending("home") is None

    @pytest.mark.asyncio
    async def test_start_supersedes_existing_timer(self, registry, elapsed):
        registry.start("home", TimerKind.DWELL, 0.01)
        second = registry.start("home", TimerKind.EXIT_DEBOUNCE, 0.01)

        assert registry.pending_count("home") == 1
        assert registry.pending("home").kind is TimerKind.EXIT_DEBOUNCE

        await asyncio.sleep(0.05)
        assert elapsed == [("home", TimerKind.EXIT_DEBOUNCE, second)]

    @pytest.mark.asyncio
    async def test_stale_token_is_rejected(self, registry):
        """An elapse that lost the race against a newer timer is not honored."""
        first = registry.start("home", TimerKind.DWELL, 0.01)
        second = registry.start("home", TimerKind.DWELL, 0.01)

        assert registry.consume("home", TimerKind.DWELL, first) is False
        assert registry.consume("home", TimerKind.EXIT_DEBOUNCE, second) is False
        assert registry.consume("home", TimerKind.DWELL, second) is True
        await asyncio.sleep(0.05)

    @pytest.mark.asyncio
    async def test_cancel_all(self, registry, elapsed):
        token = registry.start("home", TimerKind.DWELL, 0.01)

        assert registry.cancel_all("home") is True
        assert registry.cancel_all("home") is False

        await asyncio.sleep(0.05)
        assert elapsed == []
        assert registry.consume("home", TimerKind.DWELL, token) is False

    @pytest.mark.asyncio
    async def test_regions_have_independent_timers(self, registry):
        registry.start("home", TimerKind.DWELL, 10)
        registry.start("work", TimerKind.EXIT_DEBOUNCE, 10)

        assert {t.region_id for t in registry.all_pending()} == {"home", "work"}

        registry.shutdown()
        assert registry.all_pending() == []

    @pytest.mark.asyncio
    async def test_callback_errors_are_contained(self):
        def broken(*args):
            raise RuntimeError("boom")

        registry = ConfirmationTimerRegistry(broken)
        registry.start("home", TimerKind.DWELL, 0.01)
        await asyncio.sleep(0.05)

        task = registry.pending("home").task
        assert task.done()
        assert task.exception() is None

    def test_start_requires_running_loop(self, registry):
        with pytest.raises(RuntimeError):
            registry.start("home", TimerKind.DWELL, 1)
