"""Successor generation for recurring scheduled events.

Month and year steps clamp to the last valid day of the target month
(Jan 31 + 1 month is Feb 28/29, Feb 29 + 1 year is Feb 28). Each successor is
computed from its parent's date, so a clamped series keeps the clamped day:
Jan 31 -> Feb 28 -> Mar 28.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timedelta
from uuid import uuid4

from dateutil.relativedelta import relativedelta

from event_scheduler.core.enums import RecurrenceType, ScheduledEventStatus
from event_scheduler.core.exceptions import RecurrenceComputeError
from event_scheduler.schemas.scheduler import ScheduledEvent

_STEPS: dict[RecurrenceType, Callable[[int], timedelta | relativedelta]] = {
    RecurrenceType.DAILY: lambda interval: timedelta(days=interval),
    RecurrenceType.WEEKLY: lambda interval: timedelta(weeks=interval),
    RecurrenceType.MONTHLY: lambda interval: relativedelta(months=interval),
    RecurrenceType.YEARLY: lambda interval: relativedelta(years=interval),
}


def next_occurrence_date(current: date, recurrence_type: RecurrenceType | str | None, interval: int | None = 1) -> date:
    step = _STEPS.get(recurrence_type) if recurrence_type is not None else None  # type: ignore[arg-type]
    if step is None:
        raise RecurrenceComputeError(
            f"Unknown recurrence type: {recurrence_type!r}",
            details={"recurrence_type": str(recurrence_type)},
        )
    # Legacy rows may carry 0 or NULL; treat them as "every period".
    try:
        return current + step(max(int(interval or 1), 1))
    except (OverflowError, ValueError) as exc:
        raise RecurrenceComputeError(
            "Next occurrence is out of the supported date range",
            details={"current": current.isoformat(), "recurrence_type": str(recurrence_type)},
        ) from exc


def build_successor(event: ScheduledEvent, now: datetime) -> ScheduledEvent | None:
    """Next occurrence of a completed recurring event, or None once the rule has ended."""
    next_date = next_occurrence_date(event.scheduled_date, event.recurrence_type, event.recurrence_interval)
    if event.recurrence_end is not None and next_date > event.recurrence_end:
        return None

    return event.model_copy(
        update={
            "id": uuid4(),
            "scheduled_date": next_date,
            "status": ScheduledEventStatus.ACTIVE,
            "last_notified_at": None,
            "completed_at": None,
            "created_at": now,
            "updated_at": now,
        },
        deep=True,
    )
