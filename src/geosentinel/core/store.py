"""
Persistence contract for regions, settings and runtime presence.

The core never owns durable storage. It reads and writes independently
named JSON-compatible blobs through a RegionStore supplied by the host.
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Union

logger = logging.getLogger(__name__)


class StoreKeys:
    """Names of the persisted blobs."""

    REGIONS = "regions"
    SETTINGS = "settings"
    RUNTIME = "runtime"
    LOGS = "logs"


class RegionStore(ABC):
    """
    Abstract load/save interface for named blobs.

    Each blob is loaded independently; a missing blob yields the caller's default.
    """

    @abstractmethod
    def load(self, key: str, default: Any) -> Any:
        """
        Load a blob.

        Args:
            key: Blob name (see StoreKeys)
            default: Value returned when the blob is absent or unreadable

        Returns:
            The stored JSON-compatible value, or default
        """
        pass

    @abstractmethod
    def save(self, key: str, value: Any) -> None:
        """
        Save a blob, replacing any previous value.

        Args:
            key: Blob name (see StoreKeys)
            value: JSON-compatible value
        """
        pass


class InMemoryRegionStore(RegionStore):
    """Dict-backed store for tests and ephemeral hosts."""

    def __init__(self, initial: Dict[str, Any] | None = None) -> None:
        self._blobs: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self.save_count = 0

    def load(self, key: str, default: Any) -> Any:
        if key not in self._blobs:
            return default
        return copy.deepcopy(self._blobs[key])

    def save(self, key: str, value: Any) -> None:
        self._blobs[key] = copy.deepcopy(value)
        self.save_count += 1

    def keys(self) -> list[str]:
        """Names of the blobs saved so far."""
        return list(self._blobs)


class JsonFileRegionStore(RegionStore):
    """
    Stores each blob as ``<directory>/<key>.json``.

    Unreadable or corrupt files load as the default.
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str, default: Any) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read {path}: {e}; using default")
            return default

    def save(self, key: str, value: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(value, f, indent=2, sort_keys=True)
        tmp.replace(path)
