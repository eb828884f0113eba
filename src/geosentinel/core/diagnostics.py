"""
Append-only diagnostic trail.

Diagnostics are user-facing observability (a debug console), not correctness.
Every entry is also mirrored into the Python logger.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Callable, Deque, List, Optional

from geosentinel.core.store import RegionStore, StoreKeys

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    """Get current UTC time (for default factory)."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class LogEntry:
    """A single diagnostic message."""

    message: str
    timestamp: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> dict:
        """Serialize to dict."""
        return {"timestamp": self.timestamp.isoformat(), "message": self.message}

    @classmethod
    def from_dict(cls, data: dict) -> "LogEntry":
        """Deserialize from dict."""
        return cls(
            message=str(data.get("message", "")),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )

    def format(self) -> str:
        return f"{self.timestamp.isoformat(timespec='seconds')} • {self.message}"


class DiagnosticLog:
    """
    Bounded, append-only list of LogEntry objects.

    When a store is attached the trail is saved after every append. Save
    failures are logged and otherwise ignored.
    """

    def __init__(
        self,
        store: Optional[RegionStore] = None,
        max_entries: Optional[int] = 1000,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize the diagnostic trail.

        Args:
            store: Optional store used to persist the trail
            max_entries: Oldest entries are dropped past this size (None = unbounded)
            clock: Time source for entry timestamps
        """
        self._store = store
        self._clock = clock or _utc_now
        self._entries: Deque[LogEntry] = deque(maxlen=max_entries)

    def log(self, message: str, level: int = logging.INFO) -> LogEntry:
        """
        Append a diagnostic message.

        Args:
            message: Human-readable message
            level: Level used when mirroring into the Python logger

        Returns:
            The appended entry
        """
        entry = LogEntry(message=message, timestamp=self._clock())
        self._entries.append(entry)
        logger.log(level, message)
        self._persist()
        return entry

    def warning(self, message: str) -> LogEntry:
        return self.log(message, level=logging.WARNING)

    @property
    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def messages(self) -> List[str]:
        return [e.message for e in self._entries]

    def as_text(self) -> str:
        """Render the trail as newline-separated lines (for copy/export)."""
        return "\n".join(e.format() for e in self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._persist()

    def load(self) -> None:
        """Restore previously persisted entries from the attached store."""
        if not self._store:
            return
        raw = self._store.load(StoreKeys.LOGS, [])
        restored = []
        for item in raw or []:
            try:
                restored.append(LogEntry.from_dict(item))
            except (KeyError, ValueError, TypeError, AttributeError):
                logger.debug(f"Skipping unreadable log entry: {item!r}")
        self._entries.clear()
        self._entries.extend(restored)

    def _persist(self) -> None:
        if not self._store:
            return
        try:
            self._store.save(StoreKeys.LOGS, [e.to_dict() for e in self._entries])
        except Exception as e:
            logger.error(f"Failed to persist diagnostics: {e}", exc_info=True)
