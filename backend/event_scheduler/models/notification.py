from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from event_scheduler.core.enums import NotificationType
from event_scheduler.db.base import Base
from event_scheduler.db.types import db_enum
from event_scheduler.models.mixins import CreatedAtMixin, UUIDPrimaryKeyMixin


class NotificationRow(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_read", "user_id", "is_read"),)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[NotificationType] = mapped_column(db_enum(NotificationType, "notification_type"), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_read: Mapped[bool] = mapped_column(default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
