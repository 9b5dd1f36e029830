from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from event_scheduler.schemas.scheduler import ScheduledEvent


def is_valid_timezone(name: str | None) -> bool:
    if not name or not name.strip():
        return False
    try:
        ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def resolve_timezone(name: str | None, fallback: str) -> ZoneInfo:
    """ZoneInfo for ``name``, or for ``fallback`` when the name is empty or unknown."""
    if is_valid_timezone(name):
        return ZoneInfo(name.strip())  # type: ignore[union-attr]
    return ZoneInfo(fallback)


def event_datetime(event: ScheduledEvent, fallback_timezone: str) -> datetime:
    tz = resolve_timezone(event.timezone, fallback_timezone)
    return datetime.combine(event.scheduled_date, event.scheduled_time).replace(tzinfo=tz)


def notify_at(event: ScheduledEvent, fallback_timezone: str) -> datetime:
    return event_datetime(event, fallback_timezone) - timedelta(minutes=event.notify_before or 0)


def ensure_aware(dt_value: datetime) -> datetime:
    return dt_value if dt_value.tzinfo else dt_value.replace(tzinfo=timezone.utc)
