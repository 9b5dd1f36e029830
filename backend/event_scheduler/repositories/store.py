from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol, TypeVar
from uuid import UUID

from pydantic import BaseModel

from event_scheduler.core.enums import StoreCollection
from event_scheduler.core.exceptions import NotFoundError, StoreError

RecordT = TypeVar("RecordT", bound=BaseModel)
Predicate = Callable[[Any], bool]


class EventStore(Protocol):
    """Generic CRUD + predicate query over the scheduler collections.

    ``update`` merges ``patch`` into the stored record; a single call is atomic,
    nothing larger is. Unknown ids raise ``NotFoundError``, backend failures
    raise ``StoreError``.
    """

    async def create(self, collection: StoreCollection, record_id: UUID, record: RecordT) -> RecordT: ...

    async def update(self, collection: StoreCollection, record_id: UUID, patch: dict[str, Any]) -> Any: ...

    async def get_by_id(self, collection: StoreCollection, record_id: UUID) -> Any | None: ...

    async def delete(self, collection: StoreCollection, record_id: UUID) -> None: ...

    async def query(self, collection: StoreCollection, predicate: Predicate) -> list[Any]: ...


class InMemoryEventStore:
    """Process-local store. Records are copied on the way in and out."""

    def __init__(self) -> None:
        self._collections: dict[StoreCollection, dict[UUID, BaseModel]] = {collection: {} for collection in StoreCollection}
        self._lock = asyncio.Lock()

    async def create(self, collection: StoreCollection, record_id: UUID, record: RecordT) -> RecordT:
        async with self._lock:
            items = self._collections[collection]
            if record_id in items:
                raise StoreError("Record already exists", details={"collection": collection.value, "id": str(record_id)})
            items[record_id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def update(self, collection: StoreCollection, record_id: UUID, patch: dict[str, Any]) -> Any:
        async with self._lock:
            items = self._collections[collection]
            current = items.get(record_id)
            if current is None:
                raise NotFoundError("Record not found", details={"collection": collection.value, "id": str(record_id)})
            merged = current.model_copy(update=patch, deep=True)
            items[record_id] = merged
        return merged.model_copy(deep=True)

    async def get_by_id(self, collection: StoreCollection, record_id: UUID) -> Any | None:
        async with self._lock:
            item = self._collections[collection].get(record_id)
        return item.model_copy(deep=True) if item is not None else None

    async def delete(self, collection: StoreCollection, record_id: UUID) -> None:
        async with self._lock:
            if self._collections[collection].pop(record_id, None) is None:
                raise NotFoundError("Record not found", details={"collection": collection.value, "id": str(record_id)})

    async def query(self, collection: StoreCollection, predicate: Predicate) -> list[Any]:
        async with self._lock:
            snapshot = [item.model_copy(deep=True) for item in self._collections[collection].values()]
        return [item for item in snapshot if predicate(item)]
