"""
Goal reminders and milestone celebrations.

NotificationTask turns goal store events into notifications: a morning
reminder the day after a goal is created, and an immediate notification
when a milestone is completed. Scheduling problems are logged and never
reach the store.
"""

import logging
from collections import deque
from datetime import datetime, time, timedelta
from typing import Any, Callable, Deque, Optional

from goaleasy.core.events import EventType, StoreEvent
from goaleasy.core.models import Goal, Milestone, utcnow
from goaleasy.notifications.scheduler import DELIVERED_HISTORY, Importance, Notification

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_ID = "goaleasy-channel"
DEFAULT_CHANNEL_NAME = "GoalEasy Notifications"


def ensure_channel(
    scheduler: Any,
    channel_id: str = DEFAULT_CHANNEL_ID,
    name: str = DEFAULT_CHANNEL_NAME,
    importance: Any = Importance.HIGH,
) -> str:
    """Create the app's notification channel (safe to call on every start)."""
    return scheduler.create_channel(
        channel_id,
        name,
        importance=importance,
        description="Goal reminders and milestone updates",
    )


def next_reminder_time(now: datetime, hour: int = 8, minute: int = 0) -> datetime:
    """Tomorrow at hour:minute on the local wall clock.

    The offset is looked up for tomorrow, so a DST change overnight does
    not shift the reminder by an hour.
    """
    tomorrow = now.astimezone().date() + timedelta(days=1)
    return datetime.combine(tomorrow, time(hour, minute)).astimezone()


def goal_reminder(
    goal: Goal,
    channel: str,
    now: datetime,
    hour: int = 8,
    minute: int = 0,
) -> Notification:
    return Notification(
        title="Good Morning! 🌅",
        body=f"Time to work on: {goal.title}",
        fire_date=next_reminder_time(now, hour, minute),
        channel=channel,
        data={"goalId": goal.id},
    )


def milestone_completed(goal: Goal, milestone: Milestone, channel: str, now: datetime) -> Notification:
    return Notification(
        title="Milestone Completed! 🎉",
        body="Keep up the great work!",
        fire_date=now,
        channel=channel,
        data={"goalId": goal.id, "milestoneId": milestone.id},
    )


class NotificationTask:
    """Store listener that schedules notifications for qualifying events."""

    def __init__(
        self,
        scheduler: Any,
        channel_id: str = DEFAULT_CHANNEL_ID,
        reminder_hour: int = 8,
        reminder_minute: int = 0,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.scheduler = scheduler
        self.channel_id = channel_id
        self.reminder_hour = reminder_hour
        self.reminder_minute = reminder_minute
        self._clock = clock or utcnow
        self.scheduled_ids: Deque[str] = deque(maxlen=DELIVERED_HISTORY)
        self.failures = 0

    def attach(self, store: Any) -> None:
        store.subscribe(self.on_event)

    def detach(self, store: Any) -> None:
        store.unsubscribe(self.on_event)

    def on_event(self, event: StoreEvent) -> None:
        if event.type == EventType.GOAL_CREATED and event.goal is not None:
            self._schedule(
                goal_reminder(
                    event.goal,
                    self.channel_id,
                    self._clock(),
                    self.reminder_hour,
                    self.reminder_minute,
                )
            )
        elif event.type == EventType.MILESTONE_COMPLETED and event.goal is not None and event.milestone is not None:
            self._schedule(
                milestone_completed(event.goal, event.milestone, self.channel_id, self._clock())
            )

    def _schedule(self, notification: Notification) -> Optional[str]:
        try:
            notification_id = self.scheduler.schedule_at(notification)
        except Exception as e:
            self.failures += 1
            logger.warning("Could not schedule %r: %s", notification.title, e)
            return None
        self.scheduled_ids.append(notification_id)
        return notification_id
