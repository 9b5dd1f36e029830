from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID, uuid4

from event_scheduler.core.enums import NotificationMethod, ScheduledEventStatus, StoreCollection
from event_scheduler.core.exceptions import AppError, RecurrenceComputeError
from event_scheduler.repositories.store import EventStore
from event_scheduler.schemas.scheduler import ScheduledEvent, ScheduledNotification
from event_scheduler.services.channels import DeliveryChannel, build_notification_message, build_notification_title
from event_scheduler.services.event_time import event_datetime, notify_at
from event_scheduler.services.recurrence import build_successor

logger = logging.getLogger(__name__)


class EventLease(Protocol):
    async def acquire(self, event_id: UUID) -> bool: ...

    async def release(self, event_id: UUID) -> None: ...


@dataclass
class DispatchReport:
    notified: int = 0
    completed: int = 0
    successors: int = 0
    failed_deliveries: int = 0
    skipped: int = 0


def _is_active(event: ScheduledEvent) -> bool:
    return event.status == ScheduledEventStatus.ACTIVE


class NotificationDispatcher:
    """One pass over ACTIVE events: notify once when due, complete when past, spawn recurrences.

    ``last_notified_at`` is the notify gate. It is written after every channel was
    attempted, whatever the outcome, so a failing channel cannot cause a
    notification storm on later ticks.
    """

    def __init__(
        self,
        store: EventStore,
        channels: Mapping[NotificationMethod, DeliveryChannel],
        *,
        fallback_timezone: str,
        max_retries: int = 3,
        lease: EventLease | None = None,
    ) -> None:
        self.store = store
        self.channels = dict(channels)
        self.fallback_timezone = fallback_timezone
        self.max_retries = max_retries
        self.lease = lease

    async def run(self, now: datetime) -> DispatchReport:
        report = DispatchReport()
        try:
            events = await self.store.query(StoreCollection.SCHEDULED_EVENTS, _is_active)
        except AppError:
            logger.exception("Failed to load active scheduled events")
            return report

        for event in events:
            if self.lease is None:
                await self._process_guarded(event, now, report)
                continue

            if not await self.lease.acquire(event.id):
                report.skipped += 1
                continue
            try:
                # Another instance may have handled the event since our query.
                fresh = await self.store.get_by_id(StoreCollection.SCHEDULED_EVENTS, event.id)
                if fresh is None or not _is_active(fresh):
                    continue
                await self._process_guarded(fresh, now, report)
            except AppError:
                logger.exception("Failed to reload scheduled event", extra={"event_id": str(event.id)})
                report.skipped += 1
            finally:
                await self.lease.release(event.id)

        if report.notified or report.completed:
            logger.info("Dispatch pass finished", extra=asdict(report))
        return report

    async def _process_guarded(self, event: ScheduledEvent, now: datetime, report: DispatchReport) -> None:
        try:
            await self.process_event(event, now, report)
        except AppError:
            logger.exception("Failed to process scheduled event", extra={"event_id": str(event.id)})
            report.skipped += 1
        except Exception:
            logger.exception("Unexpected error while processing scheduled event", extra={"event_id": str(event.id)})
            report.skipped += 1

    async def process_event(self, event: ScheduledEvent, now: datetime, report: DispatchReport) -> None:
        due_at = event_datetime(event, self.fallback_timezone)

        if now >= notify_at(event, self.fallback_timezone) and event.last_notified_at is None:
            logger.info("Processing notifications for event", extra={"event_id": str(event.id), "title": event.title})
            report.failed_deliveries += await self._notify(event, now)
            await self.store.update(StoreCollection.SCHEDULED_EVENTS, event.id, {"last_notified_at": now})
            report.notified += 1

        if now > due_at and _is_active(event):
            completed = await self.store.update(
                StoreCollection.SCHEDULED_EVENTS,
                event.id,
                {"status": ScheduledEventStatus.COMPLETED, "completed_at": now},
            )
            report.completed += 1
            logger.info("Scheduled event completed", extra={"event_id": str(event.id)})

            if completed.is_recurring:
                await self._spawn_successor(completed, now, report)

    async def _spawn_successor(self, event: ScheduledEvent, now: datetime, report: DispatchReport) -> None:
        try:
            successor = build_successor(event, now)
        except RecurrenceComputeError as exc:
            logger.warning("Recurrence skipped", extra={"event_id": str(event.id), "error": exc.message})
            return

        if successor is None:
            logger.info("Recurrence ended", extra={"event_id": str(event.id)})
            return

        await self.store.create(StoreCollection.SCHEDULED_EVENTS, successor.id, successor)
        report.successors += 1
        logger.info(
            "Next recurrence created",
            extra={"event_id": str(event.id), "successor_id": str(successor.id), "scheduled_date": successor.scheduled_date.isoformat()},
        )

    async def _notify(self, event: ScheduledEvent, now: datetime) -> int:
        recipient = event.assigned_to or event.created_by
        title = build_notification_title(event)
        message = build_notification_message(event)

        failures = 0
        for method in event.notification_methods:
            record = ScheduledNotification(
                id=uuid4(),
                scheduled_event_id=event.id,
                user_id=recipient,
                method=method,
                title=title,
                message=message,
                scheduled_for=now,
                is_sent=False,
                is_delivered=False,
                retry_count=0,
                max_retries=self.max_retries,
                created_at=now,
            )
            try:
                await self.store.create(StoreCollection.SCHEDULED_NOTIFICATIONS, record.id, record)
            except AppError:
                logger.exception("Failed to create scheduled notification", extra={"event_id": str(event.id), "method": method.value})
                failures += 1
                continue

            if not await self._deliver(event, record, now):
                failures += 1
        return failures

    async def _deliver(self, event: ScheduledEvent, record: ScheduledNotification, now: datetime) -> bool:
        channel = self.channels.get(record.method)
        patch: dict[str, Any]
        try:
            if channel is None:
                raise LookupError(f"No channel registered for {record.method.value}")
            delivered = await channel.send(event, record, now)
        except Exception as exc:
            logger.warning(
                "Notification delivery failed",
                extra={"event_id": str(event.id), "method": record.method.value, "error": str(exc)},
            )
            patch = {"last_error": str(exc)[:1000]}
            ok = False
        else:
            patch = {"is_sent": True, "sent_at": now}
            if delivered:
                patch.update(is_delivered=True, delivered_at=now)
            ok = True

        try:
            await self.store.update(StoreCollection.SCHEDULED_NOTIFICATIONS, record.id, patch)
        except AppError:
            logger.exception("Failed to record delivery outcome", extra={"notification_id": str(record.id)})
        return ok
