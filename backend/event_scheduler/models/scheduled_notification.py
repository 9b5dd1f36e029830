from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from event_scheduler.core.enums import NotificationMethod
from event_scheduler.db.base import Base
from event_scheduler.db.types import db_enum
from event_scheduler.models.mixins import CreatedAtMixin, UUIDPrimaryKeyMixin


class ScheduledNotificationRow(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    __tablename__ = "scheduled_notifications"
    __table_args__ = (Index("ix_scheduled_notifications_event_method", "scheduled_event_id", "method"),)

    # No FK: delivery history outlives events removed by the retention sweep.
    scheduled_event_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    method: Mapped[NotificationMethod] = mapped_column(db_enum(NotificationMethod, "notification_method"), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    scheduled_for: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    is_sent: Mapped[bool] = mapped_column(default=False, nullable=False)
    is_delivered: Mapped[bool] = mapped_column(default=False, nullable=False)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
