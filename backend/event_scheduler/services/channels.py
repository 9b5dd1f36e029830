from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol
from uuid import uuid4

from event_scheduler.core.enums import NotificationMethod, NotificationType, StoreCollection
from event_scheduler.core.exceptions import DeliveryError, StoreError
from event_scheduler.integrations.realtime import PushGateway
from event_scheduler.repositories.store import EventStore
from event_scheduler.schemas.scheduler import Notification, ScheduledEvent, ScheduledNotification

logger = logging.getLogger(__name__)


def build_notification_title(event: ScheduledEvent) -> str:
    return f"Scheduler Event: {event.title}"


def build_notification_message(event: ScheduledEvent) -> str:
    moment = datetime.combine(event.scheduled_date, event.scheduled_time)
    date_text = f"{moment:%A}, {moment:%B} {moment.day}, {moment.year}"
    message = f"Event scheduled for {date_text} at {moment:%I:%M %p}."
    if event.description:
        message += f"\n\n{event.description}"
    return message


class DeliveryChannel(Protocol):
    method: NotificationMethod

    async def send(self, event: ScheduledEvent, notification: ScheduledNotification, now: datetime) -> bool:
        """Attempt delivery. True when the recipient has it, False when only attempted."""
        ...


class InAppChannel:
    method = NotificationMethod.IN_APP

    def __init__(self, store: EventStore, push_gateway: PushGateway, link_template: str) -> None:
        self.store = store
        self.push_gateway = push_gateway
        self.link_template = link_template

    async def send(self, event: ScheduledEvent, notification: ScheduledNotification, now: datetime) -> bool:
        item = Notification(
            id=uuid4(),
            user_id=notification.user_id,
            type=NotificationType.SCHEDULED_EVENT,
            title=notification.title,
            message=notification.message,
            link=self.link_template.format(event_id=event.id),
            is_read=False,
            created_at=now,
        )
        try:
            await self.store.create(StoreCollection.NOTIFICATIONS, item.id, item)
        except StoreError as exc:
            raise DeliveryError("In-app notification could not be stored", details={"error": exc.message}) from exc

        await self.push_gateway.notify_user(notification.user_id)
        logger.info(
            "In-app notification sent",
            extra={"user_id": notification.user_id, "event_id": str(event.id)},
        )
        return True


class ReservedChannel:
    """EMAIL / SMS / PUSH: no provider is wired yet, so sends are recorded as attempted only."""

    def __init__(self, method: NotificationMethod) -> None:
        self.method = method

    async def send(self, event: ScheduledEvent, notification: ScheduledNotification, now: datetime) -> bool:
        logger.info(
            "No delivery integration configured",
            extra={"method": self.method.value, "user_id": notification.user_id, "event_id": str(event.id)},
        )
        return False


def default_channels(store: EventStore, push_gateway: PushGateway, link_template: str) -> dict[NotificationMethod, DeliveryChannel]:
    channels: dict[NotificationMethod, DeliveryChannel] = {
        NotificationMethod.IN_APP: InAppChannel(store, push_gateway, link_template),
    }
    for method in (NotificationMethod.EMAIL, NotificationMethod.SMS, NotificationMethod.PUSH):
        channels[method] = ReservedChannel(method)
    return channels
