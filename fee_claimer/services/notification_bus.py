"""
Transient notification bus.

Holds auto-expiring status messages for the display layer. Entries are
only ever inserted or removed on expiry.
"""

import itertools
import time
from typing import Callable, Dict, List, Optional

import structlog

from fee_claimer.core.config import settings
from fee_claimer.models.notifications import Notification, Severity


logger = structlog.get_logger(__name__)

Listener = Callable[[Notification], None]


class NotificationBus:
    """Auto-expiring set of operator notifications."""

    def __init__(self, ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = settings.notification_ttl if ttl is None else ttl
        self._clock = clock
        self._ids = itertools.count(1)
        self._entries: Dict[int, Notification] = {}
        self._listeners: List[Listener] = []
        self.logger = logger.bind(service="notification_bus")

    def push(self, message: str, severity: Severity) -> int:
        notification = Notification(
            id=next(self._ids),
            message=message,
            severity=Severity(severity),
            created_at=self._clock(),
            ttl=self.ttl,
        )
        self._entries[notification.id] = notification

        self.logger.info(
            "Notification pushed",
            notification_id=notification.id,
            severity=notification.severity.value,
            message=message
        )

        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception as e:
                self.logger.error("Notification listener failed", error=str(e))

        return notification.id

    def success(self, message: str) -> int:
        return self.push(message, Severity.SUCCESS)

    def error(self, message: str) -> int:
        return self.push(message, Severity.ERROR)

    def expire(self, notification_id: int) -> None:
        self._entries.pop(notification_id, None)

    def _prune(self) -> None:
        now = self._clock()
        for notification_id in [n.id for n in self._entries.values() if not n.is_live(now)]:
            self.expire(notification_id)

    def live(self) -> List[Notification]:
        """Current notifications in insertion order."""
        self._prune()
        return list(self._entries.values())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a push listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def __len__(self) -> int:
        return len(self.live())
