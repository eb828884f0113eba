"""
Notification sink interface.

Only confirmed, non-suppressed transitions reach the sink. Delivery itself
(push, local notification, banner) belongs to the host platform.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class Notification:
    """A delivered geofence notification."""

    title: str
    body: str
    region_id: str


class NotificationSink(ABC):
    """Abstract interface for user-visible alert delivery."""

    @abstractmethod
    def post_geofence_notification(self, title: str, body: str, region_id: str) -> None:
        """
        Deliver a geofence notification.

        Args:
            title: Short title (e.g. "Entered Region")
            body: Message body
            region_id: Region the notification refers to (used for actions like snooze)
        """
        pass


class MockNotificationSink(NotificationSink):
    """Mock sink for testing. Records every posted notification."""

    def __init__(self) -> None:
        self._posted: List[Notification] = []

    @property
    def posted(self) -> List[Notification]:
        return self._posted.copy()

    def clear(self) -> None:
        self._posted.clear()

    def post_geofence_notification(self, title: str, body: str, region_id: str) -> None:
        self._posted.append(Notification(title=title, body=body, region_id=region_id))
