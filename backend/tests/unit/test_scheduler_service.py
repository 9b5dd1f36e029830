from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timedelta
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from event_scheduler.core.config import Settings
from event_scheduler.core.enums import (
    NotificationMethod,
    RecurrenceType,
    ScheduledEventStatus,
    ScheduledEventType,
    StoreCollection,
)
from event_scheduler.core.exceptions import NotFoundError, StoreError, ValidationAppError
from event_scheduler.services.dispatcher import DispatchReport
from event_scheduler.services.scheduler import SchedulerService, build_scheduler_service

TZ = ZoneInfo("Asia/Muscat")
NOW = datetime(2025, 1, 10, 8, 50, tzinfo=TZ)


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock() -> Clock:
    return Clock(NOW)


@pytest.fixture()
def service(store, push_gateway, clock) -> SchedulerService:
    settings = Settings(
        scheduler_timezone="Asia/Muscat",
        scheduler_dispatch_interval_sec=3600,
        scheduler_cleanup_interval_sec=3600,
    )
    return build_scheduler_service(settings, store=store, push_gateway=push_gateway, clock=clock)


def _payload(**overrides):
    payload = {
        "title": "Call the supplier",
        "type": ScheduledEventType.FOLLOW_UP,
        "scheduled_date": date(2025, 1, 10),
        "scheduled_time": time(9, 0),
        "notification_methods": [NotificationMethod.IN_APP],
        "notify_before": 15,
        "created_by": "user-1",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_start_runs_an_immediate_dispatch_pass(service, store):
    event = await service.add_event(_payload())

    await service.start()
    try:
        status = service.get_status()
        assert status.running is True
        assert status.tasks_active == 2
        stored = await service.get_event(event.id)
        assert stored.last_notified_at == NOW
    finally:
        await service.aclose()

    status = service.get_status()
    assert status.running is False
    assert status.tasks_active == 0


@pytest.mark.asyncio
async def test_double_start_and_double_stop_are_noops(service, caplog):
    caplog.set_level(logging.WARNING)

    service.stop()
    assert "Scheduler service is not running" in caplog.text

    await service.start()
    await service.start()
    assert "Scheduler service is already running" in caplog.text
    assert service.get_status().tasks_active == 2

    service.stop()
    service.stop()
    assert service.get_status().running is False


@pytest.mark.asyncio
async def test_service_can_be_restarted(service):
    await service.start()
    service.stop()
    await service.start()
    try:
        assert service.get_status().running is True
        assert service.get_status().tasks_active == 2
    finally:
        await service.aclose()


class BlockingDispatcher:
    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def run(self, now):
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return DispatchReport()


@pytest.mark.asyncio
async def test_overlapping_dispatch_pass_is_skipped(store, clock):
    dispatcher = BlockingDispatcher()
    service = SchedulerService(store, dispatcher, cleaner=None, default_timezone="Asia/Muscat", clock=clock)  # type: ignore[arg-type]

    first = asyncio.create_task(service.run_dispatch())
    await dispatcher.started.wait()

    assert await service.run_dispatch() is None

    dispatcher.release.set()
    assert isinstance(await first, DispatchReport)
    assert dispatcher.calls == 1


@pytest.mark.asyncio
async def test_run_cleanup_uses_retention_window(service, store, save_event, clock):
    await save_event(status=ScheduledEventStatus.COMPLETED, completed_at=NOW - timedelta(days=31))
    kept = await save_event(status=ScheduledEventStatus.ACTIVE, created_at=NOW - timedelta(days=31))

    assert await service.run_cleanup() == 1
    remaining = await store.query(StoreCollection.SCHEDULED_EVENTS, lambda _: True)
    assert [event.id for event in remaining] == [kept.id]


@pytest.mark.asyncio
async def test_naive_pass_time_is_read_in_default_timezone(service, store, save_event):
    event = await service.add_event(_payload())

    first = await service.run_dispatch(datetime(2025, 1, 10, 8, 45))
    second = await service.run_dispatch(datetime(2025, 1, 10, 8, 50))

    assert first.notified == 1
    assert second.notified == 0
    stored = await service.get_event(event.id)
    assert stored.last_notified_at == datetime(2025, 1, 10, 8, 45, tzinfo=TZ)
    assert len(await service.list_event_notifications(event.id)) == 1

    await save_event(status=ScheduledEventStatus.COMPLETED, completed_at=datetime(2024, 12, 1, 8, 0, tzinfo=TZ))
    assert await service.run_cleanup(datetime(2025, 1, 10, 8, 45)) == 1


@pytest.mark.asyncio
async def test_add_event_stamps_identity_and_defaults(service, clock):
    event = await service.add_event(_payload(title="  Call the supplier  "))

    assert event.id is not None
    assert event.title == "Call the supplier"
    assert event.created_at == NOW
    assert event.updated_at == NOW
    assert event.timezone == "Asia/Muscat"
    assert event.status == ScheduledEventStatus.ACTIVE
    assert event.recurrence_interval == 1
    assert event.last_notified_at is None
    assert await service.get_event(event.id) == event


@pytest.mark.asyncio
async def test_add_event_collapses_duplicate_methods(service):
    event = await service.add_event(
        _payload(notification_methods=[NotificationMethod.EMAIL, NotificationMethod.IN_APP, NotificationMethod.EMAIL])
    )
    assert event.notification_methods == [NotificationMethod.EMAIL, NotificationMethod.IN_APP]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"is_recurring": True},
        {"notification_methods": []},
        {"notify_before": -5},
        {"recurrence_interval": 0},
        {"timezone": "Mars/Olympus"},
        {"title": "   "},
        {"id": str(uuid4())},
    ],
)
async def test_add_event_rejects_invalid_payloads(service, overrides):
    with pytest.raises(ValidationAppError):
        await service.add_event(_payload(**overrides))


@pytest.mark.asyncio
async def test_update_event_merges_patch_and_refreshes_updated_at(service, clock):
    event = await service.add_event(_payload())
    clock.now = NOW + timedelta(minutes=5)

    await service.update_event(event.id, {"title": "Call the new supplier", "notify_before": 30})

    stored = await service.get_event(event.id)
    assert stored.title == "Call the new supplier"
    assert stored.notify_before == 30
    assert stored.created_at == NOW
    assert stored.updated_at == NOW + timedelta(minutes=5)
    assert stored.created_by == "user-1"


@pytest.mark.asyncio
async def test_update_event_can_reschedule_after_notification(service):
    event = await service.add_event(_payload())
    await service.run_dispatch()

    await service.update_event(event.id, {"scheduled_date": date(2025, 1, 11), "last_notified_at": None})

    stored = await service.get_event(event.id)
    assert stored.last_notified_at is None
    assert stored.scheduled_date == date(2025, 1, 11)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "patch",
    [
        {"created_by": "someone-else"},
        {"id": str(uuid4())},
        {"is_recurring": True},
        {"title": None},
    ],
)
async def test_update_event_rejects_invalid_patches(service, patch):
    event = await service.add_event(_payload())
    with pytest.raises(ValidationAppError):
        await service.update_event(event.id, patch)


@pytest.mark.asyncio
async def test_update_event_accepts_recurrence_with_type(service):
    event = await service.add_event(_payload())

    await service.update_event(event.id, {"is_recurring": True, "recurrence_type": RecurrenceType.MONTHLY})

    stored = await service.get_event(event.id)
    assert stored.is_recurring is True
    assert stored.recurrence_type == RecurrenceType.MONTHLY


@pytest.mark.asyncio
async def test_update_and_delete_unknown_event_raise_not_found(service):
    with pytest.raises(NotFoundError):
        await service.update_event(uuid4(), {"title": "x"})
    with pytest.raises(NotFoundError):
        await service.delete_event(uuid4())


@pytest.mark.asyncio
async def test_delete_event(service):
    event = await service.add_event(_payload())

    await service.delete_event(event.id)

    assert await service.get_event(event.id) is None


@pytest.mark.asyncio
async def test_get_user_events_matches_creator_or_assignee(service):
    own = await service.add_event(_payload(scheduled_date=date(2025, 1, 12)))
    assigned = await service.add_event(_payload(created_by="user-2", assigned_to="user-1", scheduled_date=date(2025, 1, 11)))
    await service.add_event(_payload(created_by="user-3"))

    events = await service.get_user_events("user-1")

    assert [event.id for event in events] == [assigned.id, own.id]


@pytest.mark.asyncio
async def test_get_user_events_filters(service):
    meeting = await service.add_event(_payload(type=ScheduledEventType.MEETING, scheduled_date=date(2025, 2, 1)))
    await service.add_event(_payload(type=ScheduledEventType.REMINDER, scheduled_date=date(2025, 2, 1)))
    await service.add_event(_payload(type=ScheduledEventType.MEETING, scheduled_date=date(2025, 3, 1)))

    events = await service.get_user_events(
        "user-1",
        type=ScheduledEventType.MEETING,
        start_date=date(2025, 1, 15),
        end_date=date(2025, 2, 15),
        status=ScheduledEventStatus.ACTIVE,
    )

    assert [event.id for event in events] == [meeting.id]


@pytest.mark.asyncio
async def test_list_event_notifications(service):
    event = await service.add_event(_payload(notification_methods=[NotificationMethod.IN_APP, NotificationMethod.SMS]))
    await service.run_dispatch()

    records = await service.list_event_notifications(event.id)

    assert {record.method for record in records} == {NotificationMethod.IN_APP, NotificationMethod.SMS}


class BrokenStore:
    async def get_by_id(self, collection, record_id):
        raise StoreError("connection reset")

    async def query(self, collection, predicate):
        raise StoreError("connection reset")


@pytest.mark.asyncio
async def test_reads_degrade_gracefully_on_store_errors(clock):
    service = SchedulerService(BrokenStore(), None, None, default_timezone="Asia/Muscat", clock=clock)  # type: ignore[arg-type]

    assert await service.get_event(uuid4()) is None
    assert await service.get_user_events("user-1") == []
    assert await service.list_event_notifications(uuid4()) == []
