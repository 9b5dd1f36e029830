from __future__ import annotations

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from event_scheduler.core.enums import (
    NotificationMethod,
    NotificationType,
    RecurrenceType,
    ScheduledEventStatus,
    ScheduledEventType,
)
from event_scheduler.schemas.common import BaseReadModel


def _unique_methods(value: list[NotificationMethod]) -> list[NotificationMethod]:
    # Order is preserved so channels are attempted in the order the user picked them.
    return list(dict.fromkeys(value))


class ScheduledEventFields(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    type: ScheduledEventType = ScheduledEventType.REMINDER
    status: ScheduledEventStatus = ScheduledEventStatus.ACTIVE

    scheduled_date: date
    scheduled_time: time
    timezone: str | None = None

    notification_methods: list[NotificationMethod] = Field(default_factory=lambda: [NotificationMethod.IN_APP], min_length=1)
    notify_before: int = Field(default=0, ge=0)

    is_recurring: bool = False
    recurrence_type: RecurrenceType | None = None
    recurrence_interval: int = Field(default=1, ge=1)
    recurrence_end: date | None = None

    related_task_id: str | None = None
    related_contact_id: str | None = None
    related_deal_id: str | None = None

    created_by: str = Field(min_length=1)
    assigned_to: str | None = None
    is_private: bool = False
    can_be_edited_by_assigned: bool = True

    snooze_until: datetime | None = None

    @field_validator("notification_methods")
    @classmethod
    def dedupe_methods(cls, value: list[NotificationMethod]) -> list[NotificationMethod]:
        return _unique_methods(value)

    @model_validator(mode="after")
    def validate_recurrence(self):
        if not self.title.strip():
            raise ValueError("title must not be empty")
        if self.is_recurring and self.recurrence_type is None:
            raise ValueError("recurrence_type is required for recurring events")
        return self


class ScheduledEventCreate(ScheduledEventFields):
    model_config = ConfigDict(extra="forbid")


class ScheduledEventUpdate(BaseModel):
    """Partial patch. Engine-owned fields are accepted so an explicit reschedule can reset them."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    type: ScheduledEventType | None = None
    status: ScheduledEventStatus | None = None
    scheduled_date: date | None = None
    scheduled_time: time | None = None
    timezone: str | None = None
    notification_methods: list[NotificationMethod] | None = Field(default=None, min_length=1)
    notify_before: int | None = Field(default=None, ge=0)
    is_recurring: bool | None = None
    recurrence_type: RecurrenceType | None = None
    recurrence_interval: int | None = Field(default=None, ge=1)
    recurrence_end: date | None = None
    related_task_id: str | None = None
    related_contact_id: str | None = None
    related_deal_id: str | None = None
    assigned_to: str | None = None
    is_private: bool | None = None
    can_be_edited_by_assigned: bool | None = None
    snooze_until: datetime | None = None
    last_notified_at: datetime | None = None
    completed_at: datetime | None = None

    @field_validator("notification_methods")
    @classmethod
    def dedupe_methods(cls, value: list[NotificationMethod] | None) -> list[NotificationMethod] | None:
        return _unique_methods(value) if value is not None else None


class ScheduledEvent(ScheduledEventFields, BaseReadModel):
    id: UUID
    timezone: str
    last_notified_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ScheduledNotification(BaseReadModel):
    id: UUID
    scheduled_event_id: UUID
    user_id: str
    method: NotificationMethod
    title: str
    message: str
    scheduled_for: datetime
    is_sent: bool = False
    is_delivered: bool = False
    retry_count: int = 0
    max_retries: int = 3
    last_error: str | None = None
    created_at: datetime
    sent_at: datetime | None = None
    delivered_at: datetime | None = None


class Notification(BaseReadModel):
    id: UUID
    user_id: str
    type: NotificationType
    title: str
    message: str
    link: str | None = None
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime


class ServiceStatus(BaseModel):
    running: bool
    tasks_active: int = Field(ge=0, le=2)
