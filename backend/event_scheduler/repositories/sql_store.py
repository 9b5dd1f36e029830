from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from event_scheduler.core.enums import StoreCollection
from event_scheduler.core.exceptions import NotFoundError, StoreError
from event_scheduler.db.base import Base
from event_scheduler.models import NotificationRow, ScheduledEventRow, ScheduledNotificationRow
from event_scheduler.repositories.store import Predicate, RecordT
from event_scheduler.schemas.scheduler import Notification, ScheduledEvent, ScheduledNotification

_MAPPING: dict[StoreCollection, tuple[type[Base], type[BaseModel]]] = {
    StoreCollection.SCHEDULED_EVENTS: (ScheduledEventRow, ScheduledEvent),
    StoreCollection.SCHEDULED_NOTIFICATIONS: (ScheduledNotificationRow, ScheduledNotification),
    StoreCollection.NOTIFICATIONS: (NotificationRow, Notification),
}


class SqlEventStore:
    """EventStore over SQLAlchemy async sessions, one transaction per call.

    Predicates are plain callables, so ``query`` loads the collection and filters
    in-process.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    @staticmethod
    def _mapping(collection: StoreCollection) -> tuple[type[Base], type[BaseModel]]:
        return _MAPPING[collection]

    async def create(self, collection: StoreCollection, record_id: UUID, record: RecordT) -> RecordT:
        row_cls, _ = self._mapping(collection)
        values = record.model_dump()
        values["id"] = record_id
        try:
            async with self.session_factory() as session:
                session.add(row_cls(**values))
                await session.commit()
        except IntegrityError as exc:
            raise StoreError("Record already exists", details={"collection": collection.value, "id": str(record_id)}) from exc
        except SQLAlchemyError as exc:
            raise StoreError(details={"collection": collection.value, "operation": "create", "error": str(exc)}) from exc
        return record

    async def update(self, collection: StoreCollection, record_id: UUID, patch: dict[str, Any]) -> Any:
        row_cls, schema_cls = self._mapping(collection)
        try:
            async with self.session_factory() as session:
                row = await session.get(row_cls, record_id)
                if row is None:
                    raise NotFoundError("Record not found", details={"collection": collection.value, "id": str(record_id)})
                for field, value in patch.items():
                    setattr(row, field, value)
                await session.commit()
                return schema_cls.model_validate(row)
        except SQLAlchemyError as exc:
            raise StoreError(details={"collection": collection.value, "operation": "update", "error": str(exc)}) from exc

    async def get_by_id(self, collection: StoreCollection, record_id: UUID) -> Any | None:
        row_cls, schema_cls = self._mapping(collection)
        try:
            async with self.session_factory() as session:
                row = await session.get(row_cls, record_id)
                return schema_cls.model_validate(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise StoreError(details={"collection": collection.value, "operation": "get", "error": str(exc)}) from exc

    async def delete(self, collection: StoreCollection, record_id: UUID) -> None:
        row_cls, _ = self._mapping(collection)
        try:
            async with self.session_factory() as session:
                row = await session.get(row_cls, record_id)
                if row is None:
                    raise NotFoundError("Record not found", details={"collection": collection.value, "id": str(record_id)})
                await session.delete(row)
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(details={"collection": collection.value, "operation": "delete", "error": str(exc)}) from exc

    async def query(self, collection: StoreCollection, predicate: Predicate) -> list[Any]:
        row_cls, schema_cls = self._mapping(collection)
        try:
            async with self.session_factory() as session:
                result = await session.scalars(select(row_cls))
                records = [schema_cls.model_validate(row) for row in result.all()]
        except SQLAlchemyError as exc:
            raise StoreError(details={"collection": collection.value, "operation": "query", "error": str(exc)}) from exc
        return [record for record in records if predicate(record)]
