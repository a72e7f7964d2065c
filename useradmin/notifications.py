"""In-memory notification sink for toast-style operator messages."""
from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Protocol

from .models import Notification


_MAX_NOTIFICATIONS = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationSink(Protocol):
    def publish(self, notification: Notification) -> None:
        ...


@dataclass
class NotificationEntry:
    """A published notification together with its position in the log."""

    sequence: int
    timestamp: datetime
    notification: Notification

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "sequence": self.sequence,
            "timestamp": self.timestamp.isoformat(),
        }
        payload.update(self.notification.to_dict())
        return payload


class NotificationLog:
    """Collects notifications until the presentation layer consumes them."""

    def __init__(self, *, max_entries: int = _MAX_NOTIFICATIONS) -> None:
        self._entries: List[NotificationEntry] = []
        self._next_sequence = 1
        self._max_entries = max_entries
        self._lock = threading.Lock()

    def publish(self, notification: Notification) -> None:
        with self._lock:
            entry = NotificationEntry(
                sequence=self._next_sequence,
                timestamp=_utcnow(),
                notification=notification,
            )
            self._next_sequence += 1
            self._entries.append(entry)
            excess = len(self._entries) - self._max_entries
            if excess > 0:
                self._entries = self._entries[excess:]

    def consume(self) -> List[NotificationEntry]:
        """Return every pending notification and clear the log."""
        with self._lock:
            entries = self._entries
            self._entries = []
            return entries


__all__ = ["NotificationEntry", "NotificationLog", "NotificationSink"]
