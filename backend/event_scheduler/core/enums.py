from enum import Enum


class ScheduledEventType(str, Enum):
    REMINDER = "REMINDER"
    MEETING = "MEETING"
    TASK_DEADLINE = "TASK_DEADLINE"
    FOLLOW_UP = "FOLLOW_UP"
    RECURRING = "RECURRING"
    CUSTOM = "CUSTOM"


class ScheduledEventStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    SNOOZED = "SNOOZED"


class RecurrenceType(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class NotificationMethod(str, Enum):
    IN_APP = "IN_APP"
    EMAIL = "EMAIL"
    SMS = "SMS"
    PUSH = "PUSH"


class NotificationType(str, Enum):
    SYSTEM = "SYSTEM"
    SCHEDULED_REMINDER = "SCHEDULED_REMINDER"
    SCHEDULED_EVENT = "SCHEDULED_EVENT"
    RECURRING_EVENT = "RECURRING_EVENT"


class StoreCollection(str, Enum):
    SCHEDULED_EVENTS = "scheduled_events"
    SCHEDULED_NOTIFICATIONS = "scheduled_notifications"
    NOTIFICATIONS = "notifications"
