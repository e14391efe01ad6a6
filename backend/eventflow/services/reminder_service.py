"""
Event reminders (24 hours and 1 hour before the slot starts).

The sweep only reads booking state and flips the two reminder flags. Each flag
is claimed with a compare-and-set before the notification is submitted, so
overlapping sweeps (two replicas, or the CLI running next to the in-process
loop) notify a booking at most once per reminder kind.
"""

import asyncio
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from eventflow.core.config import get_settings
from eventflow.core.logging import get_logger
from eventflow.db.session import SessionLocal, UnitOfWork
from eventflow.domain.state_machine import BookingStatus
from eventflow.models.booking import Booking
from eventflow.models.user import User
from eventflow.services.notification_service import Notification, NotificationKind, Notifier

logger = get_logger(__name__)

_SLOT_TIME = re.compile(r"^\s*(\d{1,2})(?::(\d{2}))?\s*([AaPp][Mm])?\s*$")


@dataclass(frozen=True)
class ReminderWindow:
    kind: NotificationKind
    flag: str
    earliest: timedelta
    latest: timedelta


WINDOWS = {
    NotificationKind.REMINDER_24H: ReminderWindow(
        NotificationKind.REMINDER_24H, "reminder_24h_sent", timedelta(hours=23), timedelta(hours=25)
    ),
    NotificationKind.REMINDER_1H: ReminderWindow(
        NotificationKind.REMINDER_1H, "reminder_1h_sent", timedelta(minutes=45), timedelta(hours=2)
    ),
}


def parse_slot_time(label: str) -> time:
    """Accepts "7:00 PM", "12 AM", "19:30"."""
    match = _SLOT_TIME.match(label or "")
    if not match:
        raise ValueError(f"Unrecognised slot time: {label!r}")
    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    period = (match.group(3) or "").upper()
    if period == "PM" and hours != 12:
        hours += 12
    elif period == "AM" and hours == 12:
        hours = 0
    if hours > 23 or minutes > 59:
        raise ValueError(f"Unrecognised slot time: {label!r}")
    return time(hours, minutes)


def event_start(event_date: date, slot_time: str, tz: Optional[str] = None) -> datetime:
    """Aware start datetime of a slot, interpreted in the venue timezone."""
    zone = ZoneInfo(tz or get_settings().EVENT_TIMEZONE)
    return datetime.combine(event_date, parse_slot_time(slot_time), tzinfo=zone)


def is_due_for_reminder(
    booking: Booking,
    kind: NotificationKind,
    now: Optional[datetime] = None,
    tz: Optional[str] = None,
) -> bool:
    window = WINDOWS[kind]
    if booking.booking_status != BookingStatus.CONFIRMED.value:
        return False
    if getattr(booking, window.flag):
        return False
    now = now or datetime.now(timezone.utc)
    try:
        start = event_start(booking.event_date, booking.slot_time, tz)
    except ValueError:
        logger.warning("reminder_unparseable_slot", booking_id=booking.id, slot_time=booking.slot_time)
        return False
    return now + window.earliest <= start <= now + window.latest


async def list_due(
    uow: UnitOfWork,
    kind: NotificationKind,
    now: Optional[datetime] = None,
    tz: Optional[str] = None,
) -> list[Booking]:
    window = WINDOWS[kind]
    now = now or datetime.now(timezone.utc)
    today = now.date()
    # Calendar prefilter; the exact window is checked in Python
    result = await uow.session.execute(
        select(Booking).where(
            Booking.booking_status == BookingStatus.CONFIRMED.value,
            getattr(Booking, window.flag).is_(False),
            Booking.event_date >= today - timedelta(days=1),
            Booking.event_date <= today + timedelta(days=2),
        )
    )
    return [b for b in result.scalars().all() if is_due_for_reminder(b, kind, now, tz)]


async def mark_reminder_sent(uow: UnitOfWork, booking_id: int, kind: NotificationKind) -> bool:
    """Claim the reminder flag; False when another sweep got there first."""
    column = getattr(Booking, WINDOWS[kind].flag)
    result = await uow.session.execute(
        update(Booking)
        .where(Booking.id == booking_id, column.is_(False))
        .values({WINDOWS[kind].flag: True})
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def run_reminder_sweep(
    notifier: Notifier,
    now: Optional[datetime] = None,
    session_factory: async_sessionmaker = SessionLocal,
    tz: Optional[str] = None,
) -> dict:
    """One pass over both reminder kinds. Returns the number sent per kind."""
    now = now or datetime.now(timezone.utc)
    sent = {}
    async with UnitOfWork(session_factory) as uow:
        for kind in WINDOWS:
            due = await list_due(uow, kind, now, tz)
            users = {}
            if due:
                rows = await uow.session.execute(
                    select(User).where(User.id.in_({b.user_id for b in due}))
                )
                users = {u.id: u for u in rows.scalars().all()}
            await uow.commit()

            count = 0
            for booking in due:
                try:
                    claimed = await mark_reminder_sent(uow, booking.id, kind)
                    await uow.commit()
                except Exception as e:
                    await uow.rollback()
                    logger.error("reminder_claim_failed", booking_id=booking.id, kind=kind.value, error=str(e))
                    continue
                user = users.get(booking.user_id)
                if not claimed or user is None:
                    continue
                notifier.submit(
                    Notification(
                        kind=kind,
                        booking_id=booking.id,
                        recipient_email=user.email,
                        recipient_name=user.name,
                        event_title=booking.event.title,
                        event_location=booking.event.location,
                        event_date=booking.event_date,
                        slot_time=booking.slot_time,
                        seats_booked=booking.seats_booked,
                    )
                )
                count += 1
            sent[kind.value] = count

    logger.info("reminder_sweep_finished", **sent)
    return sent


async def reminder_loop(notifier: Notifier, interval_seconds: float) -> None:
    """Runs until cancelled (application shutdown)."""
    logger.info("reminder_loop_started", interval_seconds=interval_seconds)
    while True:
        try:
            await run_reminder_sweep(notifier)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("reminder_sweep_failed", error=str(e))
        await asyncio.sleep(interval_seconds)
