from __future__ import annotations

import logging
from datetime import datetime, timedelta

from event_scheduler.core.enums import ScheduledEventStatus, StoreCollection
from event_scheduler.core.exceptions import AppError
from event_scheduler.repositories.store import EventStore
from event_scheduler.schemas.scheduler import ScheduledEvent
from event_scheduler.services.event_time import ensure_aware

logger = logging.getLogger(__name__)


class RetentionCleaner:
    def __init__(self, store: EventStore, retention_days: int = 30) -> None:
        self.store = store
        self.retention_days = retention_days

    def cutoff(self, now: datetime) -> datetime:
        return now - timedelta(days=self.retention_days)

    async def run(self, now: datetime) -> int:
        cutoff = self.cutoff(now)

        def expired(event: ScheduledEvent) -> bool:
            return (
                event.status == ScheduledEventStatus.COMPLETED
                and event.completed_at is not None
                and ensure_aware(event.completed_at) < cutoff
            )

        try:
            events = await self.store.query(StoreCollection.SCHEDULED_EVENTS, expired)
        except AppError:
            logger.exception("Failed to load completed events for cleanup")
            return 0

        deleted = 0
        for event in events:
            try:
                await self.store.delete(StoreCollection.SCHEDULED_EVENTS, event.id)
            except AppError:
                logger.exception("Failed to delete completed event", extra={"event_id": str(event.id)})
                continue
            deleted += 1

        if deleted:
            logger.info("Cleaned up old completed events", extra={"deleted": deleted, "cutoff": cutoff.isoformat()})
        return deleted
