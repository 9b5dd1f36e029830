from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import date, datetime, time
from typing import Any
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from event_scheduler.core.enums import NotificationMethod, ScheduledEventStatus, ScheduledEventType, StoreCollection
from event_scheduler.db.base import Base
from event_scheduler.models import *  # noqa: F401,F403
from event_scheduler.repositories.store import InMemoryEventStore
from event_scheduler.schemas.scheduler import ScheduledEvent


TEST_DB_URL = os.getenv("TEST_DATABASE_URL")
TZ_NAME = "Asia/Muscat"
TZ = ZoneInfo(TZ_NAME)


def local_dt(*args: int) -> datetime:
    return datetime(*args, tzinfo=TZ)


class FakePushGateway:
    def __init__(self) -> None:
        self.pushed: list[str] = []

    async def notify_user(self, user_id: str) -> None:
        self.pushed.append(user_id)


def build_event(**overrides: Any) -> ScheduledEvent:
    created = local_dt(2025, 1, 1, 8, 0)
    values: dict[str, Any] = {
        "id": uuid4(),
        "title": "Quarterly review",
        "description": None,
        "type": ScheduledEventType.MEETING,
        "status": ScheduledEventStatus.ACTIVE,
        "scheduled_date": date(2025, 1, 10),
        "scheduled_time": time(9, 0),
        "timezone": TZ_NAME,
        "notification_methods": [NotificationMethod.IN_APP],
        "notify_before": 15,
        "is_recurring": False,
        "recurrence_type": None,
        "recurrence_interval": 1,
        "recurrence_end": None,
        "created_by": "user-1",
        "assigned_to": None,
        "created_at": created,
        "updated_at": created,
    }
    values.update(overrides)
    return ScheduledEvent(**values)


@pytest.fixture()
def store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture()
def push_gateway() -> FakePushGateway:
    return FakePushGateway()


@pytest.fixture()
def save_event(store: InMemoryEventStore):
    async def _save(event: ScheduledEvent | None = None, **overrides: Any) -> ScheduledEvent:
        event = event or build_event(**overrides)
        await store.create(StoreCollection.SCHEDULED_EVENTS, event.id, event)
        return event

    return _save


@pytest.fixture()
def integration_enabled() -> bool:
    return bool(TEST_DB_URL)


@pytest.fixture()
async def engine(integration_enabled: bool):
    if not integration_enabled:
        pytest.skip("Integration env is not configured")

    engine = create_async_engine(TEST_DB_URL, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def session_factory(engine) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
def make_event():
    return build_event
