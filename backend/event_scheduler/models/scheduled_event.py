from __future__ import annotations

from datetime import date, datetime, time

from sqlalchemy import CheckConstraint, Date, DateTime, Index, Integer, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column

from event_scheduler.core.enums import NotificationMethod, RecurrenceType, ScheduledEventStatus, ScheduledEventType
from event_scheduler.db.base import Base
from event_scheduler.db.types import EnumList, db_enum
from event_scheduler.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class ScheduledEventRow(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "scheduled_events"
    __table_args__ = (
        CheckConstraint("notify_before >= 0", name="ck_scheduled_events_notify_before"),
        CheckConstraint("recurrence_interval >= 1", name="ck_scheduled_events_recurrence_interval"),
        CheckConstraint("NOT is_recurring OR recurrence_type IS NOT NULL", name="ck_scheduled_events_recurrence_type"),
        Index("ix_scheduled_events_status_date", "status", "scheduled_date"),
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[ScheduledEventType] = mapped_column(
        db_enum(ScheduledEventType, "scheduled_event_type"),
        default=ScheduledEventType.REMINDER,
        nullable=False,
    )
    status: Mapped[ScheduledEventStatus] = mapped_column(
        db_enum(ScheduledEventStatus, "scheduled_event_status"),
        default=ScheduledEventStatus.ACTIVE,
        nullable=False,
    )

    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    scheduled_time: Mapped[time] = mapped_column(Time, nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)

    notification_methods: Mapped[list[NotificationMethod]] = mapped_column(EnumList(NotificationMethod), nullable=False)
    notify_before: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_recurring: Mapped[bool] = mapped_column(default=False, nullable=False)
    recurrence_type: Mapped[RecurrenceType | None] = mapped_column(db_enum(RecurrenceType, "recurrence_type"), nullable=True)
    recurrence_interval: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    recurrence_end: Mapped[date | None] = mapped_column(Date, nullable=True)

    related_task_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    related_contact_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    related_deal_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    assigned_to: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    is_private: Mapped[bool] = mapped_column(default=False, nullable=False)
    can_be_edited_by_assigned: Mapped[bool] = mapped_column(default=True, nullable=False)

    last_notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    snooze_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
