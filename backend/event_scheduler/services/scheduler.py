from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from event_scheduler.core.config import Settings
from event_scheduler.core.enums import ScheduledEventStatus, ScheduledEventType, StoreCollection
from event_scheduler.core.exceptions import AppError, LifecycleError, NotFoundError, ValidationAppError
from event_scheduler.integrations.realtime import PushGateway
from event_scheduler.repositories.store import EventStore
from event_scheduler.schemas.scheduler import (
    ScheduledEvent,
    ScheduledEventCreate,
    ScheduledEventUpdate,
    ScheduledNotification,
    ServiceStatus,
)
from event_scheduler.services.channels import default_channels
from event_scheduler.services.dispatcher import DispatchReport, EventLease, NotificationDispatcher
from event_scheduler.services.event_time import is_valid_timezone
from event_scheduler.services.retention import RetentionCleaner
from event_scheduler.workers.ticker import PeriodicTask

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validation_error(message: str, exc: ValidationError) -> ValidationAppError:
    return ValidationAppError(message, details={"errors": exc.errors(include_url=False, include_context=False)})


def _warn_lifecycle(message: str) -> None:
    error = LifecycleError(message)
    logger.warning(error.message, extra={"code": error.code})


class SchedulerService:
    """Owns the dispatch and cleanup tickers and the event mutation API.

    Construct one per process at start-up and hand it to the code that needs it.
    """

    def __init__(
        self,
        store: EventStore,
        dispatcher: NotificationDispatcher,
        cleaner: RetentionCleaner,
        *,
        default_timezone: str,
        dispatch_interval_sec: float = 60,
        cleanup_interval_sec: float = 3600,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.cleaner = cleaner
        self.default_timezone = default_timezone
        self.dispatch_interval_sec = dispatch_interval_sec
        self.cleanup_interval_sec = cleanup_interval_sec
        self.clock = clock

        self._running = False
        self._dispatch_task: PeriodicTask | None = None
        self._cleanup_task: PeriodicTask | None = None
        self._dispatch_lock = asyncio.Lock()
        self._cleanup_lock = asyncio.Lock()

    # Lifecycle

    async def start(self) -> None:
        if self._running:
            _warn_lifecycle("Scheduler service is already running")
            return

        logger.info("Starting scheduler service")
        self._dispatch_task = PeriodicTask("dispatch", self.dispatch_interval_sec, self.run_dispatch)
        self._cleanup_task = PeriodicTask("cleanup", self.cleanup_interval_sec, self.run_cleanup)
        self._dispatch_task.start()
        self._cleanup_task.start()
        self._running = True

        await self.run_dispatch()
        logger.info(
            "Scheduler service started",
            extra={
                "dispatch_interval_sec": self.dispatch_interval_sec,
                "cleanup_interval_sec": self.cleanup_interval_sec,
                "timezone": self.default_timezone,
            },
        )

    def stop(self) -> None:
        if not self._running:
            _warn_lifecycle("Scheduler service is not running")
            return

        for task in (self._dispatch_task, self._cleanup_task):
            if task is not None:
                task.cancel()
        self._dispatch_task = None
        self._cleanup_task = None
        self._running = False
        logger.info("Scheduler service stopped")

    async def aclose(self) -> None:
        """Stop and wait for passes that were already running."""
        tasks = [task for task in (self._dispatch_task, self._cleanup_task) if task is not None]
        if self._running:
            self.stop()
        for task in tasks:
            await task.wait_idle()
        async with self._dispatch_lock, self._cleanup_lock:
            pass

    def get_status(self) -> ServiceStatus:
        tasks_active = sum(1 for task in (self._dispatch_task, self._cleanup_task) if task is not None and task.active)
        return ServiceStatus(running=self._running, tasks_active=tasks_active)

    # Passes

    def _pass_time(self, now: datetime | None) -> datetime:
        """Evaluation instant for a pass. Naive values are read as wall time in the default timezone."""
        moment = now or self.clock()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=ZoneInfo(self.default_timezone))
        return moment

    async def run_dispatch(self, now: datetime | None = None) -> DispatchReport | None:
        if self._dispatch_lock.locked():
            logger.warning("Dispatch pass already in progress, skipping")
            return None
        async with self._dispatch_lock:
            return await self.dispatcher.run(self._pass_time(now))

    async def run_cleanup(self, now: datetime | None = None) -> int | None:
        if self._cleanup_lock.locked():
            logger.warning("Cleanup pass already in progress, skipping")
            return None
        async with self._cleanup_lock:
            return await self.cleaner.run(self._pass_time(now))

    # Mutation API

    def _check_timezone(self, name: str | None) -> None:
        if name is not None and not is_valid_timezone(name):
            raise ValidationAppError("Unknown timezone", details={"timezone": name})

    async def add_event(self, data: ScheduledEventCreate | dict[str, Any]) -> ScheduledEvent:
        try:
            payload = data if isinstance(data, ScheduledEventCreate) else ScheduledEventCreate.model_validate(data)
        except ValidationError as exc:
            raise _validation_error("Invalid scheduled event", exc) from exc
        self._check_timezone(payload.timezone)

        now = self.clock()
        values = payload.model_dump()
        values["title"] = payload.title.strip()
        values["timezone"] = (payload.timezone or self.default_timezone).strip()
        event = ScheduledEvent(id=uuid4(), created_at=now, updated_at=now, **values)

        try:
            created = await self.store.create(StoreCollection.SCHEDULED_EVENTS, event.id, event)
        except AppError:
            logger.exception("Failed to add scheduled event")
            raise
        logger.info(
            "New event scheduled",
            extra={"event_id": str(created.id), "title": created.title, "scheduled_date": created.scheduled_date.isoformat()},
        )
        return created

    async def update_event(self, event_id: UUID, patch: ScheduledEventUpdate | dict[str, Any]) -> None:
        try:
            update = patch if isinstance(patch, ScheduledEventUpdate) else ScheduledEventUpdate.model_validate(patch)
        except ValidationError as exc:
            raise _validation_error("Invalid scheduled event update", exc) from exc
        changes = update.model_dump(exclude_unset=True)
        self._check_timezone(changes.get("timezone"))

        try:
            current = await self.store.get_by_id(StoreCollection.SCHEDULED_EVENTS, event_id)
            if current is None:
                raise NotFoundError("Scheduled event not found", details={"event_id": str(event_id)})

            merged = current.model_dump()
            merged.update(changes)
            try:
                ScheduledEvent.model_validate(merged)
            except ValidationError as exc:
                raise _validation_error("Invalid scheduled event update", exc) from exc

            changes["updated_at"] = self.clock()
            await self.store.update(StoreCollection.SCHEDULED_EVENTS, event_id, changes)
        except AppError:
            logger.exception("Failed to update scheduled event", extra={"event_id": str(event_id)})
            raise
        logger.info("Event updated", extra={"event_id": str(event_id), "fields": sorted(changes)})

    async def delete_event(self, event_id: UUID) -> None:
        try:
            await self.store.delete(StoreCollection.SCHEDULED_EVENTS, event_id)
        except NotFoundError as exc:
            raise NotFoundError("Scheduled event not found", details={"event_id": str(event_id)}) from exc
        except AppError:
            logger.exception("Failed to delete scheduled event", extra={"event_id": str(event_id)})
            raise
        logger.info("Event deleted", extra={"event_id": str(event_id)})

    async def get_event(self, event_id: UUID) -> ScheduledEvent | None:
        try:
            return await self.store.get_by_id(StoreCollection.SCHEDULED_EVENTS, event_id)
        except AppError:
            logger.exception("Failed to get scheduled event", extra={"event_id": str(event_id)})
            return None

    async def get_user_events(
        self,
        user_id: str,
        *,
        status: ScheduledEventStatus | None = None,
        type: ScheduledEventType | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[ScheduledEvent]:
        def visible(event: ScheduledEvent) -> bool:
            if event.created_by != user_id and event.assigned_to != user_id:
                return False
            if status is not None and event.status != status:
                return False
            if type is not None and event.type != type:
                return False
            if start_date is not None and event.scheduled_date < start_date:
                return False
            if end_date is not None and event.scheduled_date > end_date:
                return False
            return True

        try:
            events = await self.store.query(StoreCollection.SCHEDULED_EVENTS, visible)
        except AppError:
            logger.exception("Failed to get user events", extra={"user_id": user_id})
            return []
        return sorted(events, key=lambda event: (event.scheduled_date, event.scheduled_time))

    async def list_event_notifications(self, event_id: UUID) -> list[ScheduledNotification]:
        try:
            records = await self.store.query(
                StoreCollection.SCHEDULED_NOTIFICATIONS,
                lambda record: record.scheduled_event_id == event_id,
            )
        except AppError:
            logger.exception("Failed to list event notifications", extra={"event_id": str(event_id)})
            return []
        return sorted(records, key=lambda record: record.created_at)


def build_scheduler_service(
    settings: Settings,
    *,
    store: EventStore,
    push_gateway: PushGateway,
    lease: EventLease | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> SchedulerService:
    dispatcher = NotificationDispatcher(
        store,
        default_channels(store, push_gateway, settings.notification_link_template),
        fallback_timezone=settings.scheduler_timezone,
        max_retries=settings.notification_max_retries,
        lease=lease,
    )
    cleaner = RetentionCleaner(store, retention_days=settings.scheduler_retention_days)
    return SchedulerService(
        store,
        dispatcher,
        cleaner,
        default_timezone=settings.scheduler_timezone,
        dispatch_interval_sec=settings.scheduler_dispatch_interval_sec,
        cleanup_interval_sec=settings.scheduler_cleanup_interval_sec,
        clock=clock,
    )
