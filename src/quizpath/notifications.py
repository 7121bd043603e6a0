"""Best-effort progress notifications."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)

PROGRESS_UPDATED = "progress-updated"


class NotificationSink(Protocol):
    def publish(self, user_id: int, event: str, payload: dict[str, Any]) -> None: ...


class LoggingNotificationSink:
    """Default sink: records the event in the log and nothing else."""

    def publish(self, user_id: int, event: str, payload: dict[str, Any]) -> None:
        logger.debug("notify user-%s %s %s", user_id, event, payload)


@dataclass(frozen=True, slots=True)
class Notification:
    user_id: int
    event: str
    payload: dict[str, Any]


class InMemoryNotificationSink:
    """Keeps published events in a list, one room per user."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: list[Notification] = []

    def publish(self, user_id: int, event: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self.events.append(Notification(user_id, event, dict(payload)))

    def for_user(self, user_id: int) -> list[Notification]:
        with self._lock:
            return [item for item in self.events if item.user_id == user_id]


def publish_safely(sink: NotificationSink | None, user_id: int, event: str, payload: dict[str, Any]) -> bool:
    """Publish and report success; a failing sink never propagates."""
    if sink is None:
        return False
    try:
        sink.publish(user_id, event, payload)
    except Exception:
        logger.warning("notification %s for user %s failed", event, user_id, exc_info=True)
        return False
    return True


__all__ = [
    "InMemoryNotificationSink",
    "LoggingNotificationSink",
    "Notification",
    "NotificationSink",
    "PROGRESS_UPDATED",
    "publish_safely",
]
