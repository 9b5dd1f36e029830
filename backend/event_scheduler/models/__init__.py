from event_scheduler.models.notification import NotificationRow
from event_scheduler.models.scheduled_event import ScheduledEventRow
from event_scheduler.models.scheduled_notification import ScheduledNotificationRow

__all__ = [
    "ScheduledEventRow",
    "ScheduledNotificationRow",
    "NotificationRow",
]
