"""
Slot lookup over an event's date -> slot inventory.

Pure functions: they work on any objects exposing ``dates`` (each with
``date`` and ``slots``) and slots exposing ``time``, so they run equally on
ORM rows and on plain test doubles.
"""

from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional, Union

DateLike = Union[date, datetime, str]


def calendar_day(value: DateLike) -> date:
    """
    Reduce a date-ish value to its calendar day in UTC.

    Aware datetimes are converted to UTC first; naive datetimes are taken to
    already be UTC (that is how the database hands them back).
    """
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text) if "T" in text or " " in text else date.fromisoformat(text)

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected a date, datetime or ISO string, got {type(value).__name__}")


def find_date_entry(event: Any, day: DateLike) -> Optional[Any]:
    target = calendar_day(day)
    for entry in event.dates:
        if calendar_day(entry.date) == target:
            return entry
    return None


def find_slot_in(slots: Iterable[Any], slot_time: str) -> Optional[Any]:
    # Exact label match: "7:00 PM" and "7:00 pm" are different slots
    for slot in slots:
        if slot.time == slot_time:
            return slot
    return None


def find_slot(event: Any, day: DateLike, slot_time: str) -> Optional[Any]:
    """Locate the unique slot for ``(day, slot_time)`` on ``event``, or None."""
    entry = find_date_entry(event, day)
    if entry is None:
        return None
    return find_slot_in(entry.slots, slot_time)
