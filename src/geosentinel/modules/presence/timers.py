"""Confirmation timer registry.

Owns the single-timer-per-region invariant. Each timer is an asyncio task
that sleeps for its duration and then reports the elapse through a callback.
The callback is expected to hand the elapse to the service's inbound queue;
the elapse is only honored if consume() still recognizes its token, so a
timer superseded after it fired but before it was processed is ignored.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .models import TimerKind

logger = logging.getLogger(__name__)

ElapsedCallback = Callable[[str, TimerKind, int], None]


@dataclass
class PendingTimer:
    """A scheduled confirmation timer.

    Attributes:
        region_id: Region the timer belongs to.
        kind: DWELL or EXIT_DEBOUNCE.
        token: Unique identity of this timer instance.
        seconds: Configured duration.
        task: Sleeping task (done once the timer elapsed).
    """

    region_id: str
    kind: TimerKind
    token: int
    seconds: float
    task: asyncio.Task


class ConfirmationTimerRegistry:
    """At most one pending confirmation timer per region.

    start() synchronously cancels whatever timer the region had (of either
    kind) before scheduling the new one. Cancelled timers never call back.
    """

    def __init__(self, on_elapsed: ElapsedCallback) -> None:
        """Initialize the registry.

        Args:
            on_elapsed: Called as on_elapsed(region_id, kind, token) when a timer elapses.
        """
        self._on_elapsed = on_elapsed
        self._timers: Dict[str, PendingTimer] = {}
        self._tokens = itertools.count(1)

    def start(self, region_id: str, kind: TimerKind, seconds: float) -> int:
        """Start a timer for a region, superseding any existing one.

        Must be called with a running event loop.

        Returns:
            The new timer's token.
        """
        self.cancel_all(region_id)

        token = next(self._tokens)
        task = asyncio.get_running_loop().create_task(
            self._sleep_then_report(region_id, kind, token, seconds),
            name=f"confirm-{kind.value}-{region_id}",
        )
        self._timers[region_id] = PendingTimer(
            region_id=region_id,
            kind=kind,
            token=token,
            seconds=seconds,
            task=task,
        )
        logger.debug(f"Started {kind.value} timer for {region_id} ({seconds}s, token={token})")
        return token

    def cancel_all(self, region_id: str) -> bool:
        """Cancel any timer for a region.

        Returns:
            True if a timer was cancelled.
        """
        timer = self._timers.pop(region_id, None)
        if timer is None:
            return False
        timer.task.cancel()
        logger.debug(f"Cancelled {timer.kind.value} timer for {region_id} (token={timer.token})")
        return True

    def consume(self, region_id: str, kind: TimerKind, token: int) -> bool:
        """Claim an elapsed timer for processing.

        Returns:
            True if the timer is still the region's current one (and removes it),
            False if it was superseded or cancelled in the meantime.
        """
        timer = self._timers.get(region_id)
        if timer is None or timer.token != token or timer.kind is not kind:
            return False
        del self._timers[region_id]
        return True

    def shutdown(self) -> None:
        """Cancel every pending timer."""
        for region_id in list(self._timers):
            self.cancel_all(region_id)

    # Instrumentation

    def pending(self, region_id: str) -> Optional[PendingTimer]:
        return self._timers.get(region_id)

    def pending_count(self, region_id: str) -> int:
        return 1 if region_id in self._timers else 0

    def all_pending(self) -> List[PendingTimer]:
        return list(self._timers.values())

    async def _sleep_then_report(
        self, region_id: str, kind: TimerKind, token: int, seconds: float
    ) -> None:
        await asyncio.sleep(seconds)
        try:
            self._on_elapsed(region_id, kind, token)
        except Exception as e:
            logger.error(f"Error reporting {kind.value} elapse for {region_id}: {e}", exc_info=True)
