"""
Tests for date and slot lookup.
"""

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from eventflow.domain.inventory import calendar_day, find_date_entry, find_slot


def make_event():
    return SimpleNamespace(
        dates=[
            SimpleNamespace(
                date=datetime(2030, 5, 1, tzinfo=timezone.utc),
                slots=[SimpleNamespace(time="7:00 PM"), SimpleNamespace(time="9:00 PM")],
            ),
            SimpleNamespace(
                # As read back from SQLite: naive, already UTC
                date=datetime(2030, 5, 2),
                slots=[SimpleNamespace(time="7:00 PM")],
            ),
        ]
    )


@pytest.mark.parametrize("value", [
    date(2030, 5, 1),
    datetime(2030, 5, 1, 23, 59),
    datetime(2030, 5, 1, 12, tzinfo=timezone.utc),
    datetime(2030, 5, 1, 20, tzinfo=timezone(timedelta(hours=-3))),
    "2030-05-01",
    "2030-05-01T08:00:00Z",
    "2030-05-01T18:00:00-05:00",
])
def test_calendar_day(value):
    assert calendar_day(value) == date(2030, 5, 1)


def test_calendar_day_converts_to_utc():
    # 22:00 at UTC-5 is already the next day in UTC
    assert calendar_day(datetime(2030, 5, 1, 22, tzinfo=timezone(timedelta(hours=-5)))) == date(2030, 5, 2)


def test_calendar_day_rejects_other_types():
    with pytest.raises(TypeError):
        calendar_day(20300501)


def test_find_slot():
    event = make_event()
    assert find_slot(event, "2030-05-01", "9:00 PM").time == "9:00 PM"
    assert find_slot(event, date(2030, 5, 2), "7:00 PM") is not None


def test_find_slot_misses():
    event = make_event()
    assert find_date_entry(event, "2030-05-03") is None
    assert find_slot(event, "2030-05-03", "7:00 PM") is None
    assert find_slot(event, "2030-05-02", "9:00 PM") is None
    # Labels match exactly
    assert find_slot(event, "2030-05-01", "7:00 pm") is None
    assert find_slot(event, "2030-05-01", "7:00PM") is None
