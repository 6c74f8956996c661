"""
Local notification scheduling.

Notifications are posted to a channel, which has to be created first
(creation is idempotent). Future notifications wait on a timer thread;
anything due now or in the past is delivered right away. Delivery itself
is a pluggable callable so the app shell can hand notifications to the
platform, while the default just logs them.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Union

from goaleasy.core.models import parse_iso, to_iso, utcnow
from goaleasy.utils.ids import new_id

logger = logging.getLogger(__name__)

# Recent deliveries kept for inspection
DELIVERED_HISTORY = 100


class NotificationError(Exception):
    """A notification could not be scheduled."""

    pass


class Importance(Enum):
    MIN = "min"
    LOW = "low"
    DEFAULT = "default"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Union["Importance", str]) -> "Importance":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


@dataclass(frozen=True)
class Channel:
    id: str
    name: str
    importance: Importance = Importance.HIGH
    description: str = ""


@dataclass
class Notification:
    """A local notification request."""

    title: str
    body: str
    fire_date: datetime
    channel: str
    data: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "fireDate": to_iso(self.fire_date),
            "androidChannel": self.channel,
            "data": dict(self.data),
        }


def log_delivery(notification: Notification) -> None:
    logger.info(
        "Notification [%s] %s: %s", notification.channel, notification.title, notification.body
    )


class LocalNotificationScheduler:
    """One-shot notifications on timer threads."""

    def __init__(
        self,
        deliver: Callable[[Notification], None] = log_delivery,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._deliver_fn = deliver
        self._clock = clock or utcnow
        self._channels: Dict[str, Channel] = {}
        self._pending: Dict[str, Notification] = {}
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()
        self.delivered: Deque[Notification] = deque(maxlen=DELIVERED_HISTORY)

    # ── Channels ─────────────────────────────────────────────────────

    def create_channel(
        self,
        channel_id: str,
        name: str,
        importance: Union[Importance, str] = Importance.HIGH,
        description: str = "",
    ) -> str:
        """Register a channel. Calling again with the same id keeps the first definition."""
        with self._lock:
            if channel_id in self._channels:
                return channel_id
            self._channels[channel_id] = Channel(
                id=channel_id,
                name=name,
                importance=Importance.parse(importance),
                description=description,
            )
        logger.info("Notification channel created: %s (%s)", channel_id, name)
        return channel_id

    def has_channel(self, channel_id: str) -> bool:
        with self._lock:
            return channel_id in self._channels

    # ── Scheduling ───────────────────────────────────────────────────

    def schedule_at(self, notification: Notification) -> str:
        """
        Schedule a notification for its ``fire_date``.

        Returns:
            The scheduling id (the notification's own id when it has one)

        Raises:
            NotificationError: the channel does not exist
        """
        if not self.has_channel(notification.channel):
            raise NotificationError(
                f"Channel {notification.channel!r} has not been created"
            )
        notification_id = notification.id or new_id()
        notification = replace(notification, id=notification_id)

        delay = (parse_iso(notification.fire_date) - self._clock()).total_seconds()
        if delay <= 0:
            self._deliver(notification)
            return notification_id

        timer = threading.Timer(delay, self._fire, args=(notification_id,))
        timer.daemon = True
        with self._lock:
            old = self._timers.pop(notification_id, None)
            if old is not None:
                old.cancel()
            self._pending[notification_id] = notification
            self._timers[notification_id] = timer
        timer.start()
        logger.info(
            "Scheduled notification %s for %s: %s",
            notification_id, to_iso(notification.fire_date), notification.title,
        )
        return notification_id

    def display(self, notification: Notification) -> str:
        """Deliver immediately, regardless of ``fire_date``."""
        return self.schedule_at(replace(notification, fire_date=self._clock()))

    def cancel(self, notification_id: str) -> bool:
        with self._lock:
            timer = self._timers.pop(notification_id, None)
            self._pending.pop(notification_id, None)
        if timer is None:
            return False
        timer.cancel()
        logger.info("Cancelled notification %s", notification_id)
        return True

    def pending(self) -> List[Notification]:
        """Scheduled but not yet delivered, soonest first."""
        with self._lock:
            items = list(self._pending.values())
        return sorted(items, key=lambda n: parse_iso(n.fire_date))

    def shutdown(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
            self._pending.clear()
        for timer in timers:
            timer.cancel()
        if timers:
            logger.info("Dropped %d pending notifications on shutdown", len(timers))

    # ── Delivery ─────────────────────────────────────────────────────

    def _fire(self, notification_id: str) -> None:
        with self._lock:
            self._timers.pop(notification_id, None)
            notification = self._pending.pop(notification_id, None)
        if notification is not None:
            self._deliver(notification)

    def _deliver(self, notification: Notification) -> None:
        try:
            self._deliver_fn(notification)
        except Exception as e:
            logger.error("Delivering notification %s failed: %s", notification.id, e)
            return
        with self._lock:
            self.delivered.append(notification)
