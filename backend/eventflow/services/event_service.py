"""
Event catalogue: admin CRUD over events, their dates and slots.

Seat counters are only written here when an admin creates an event or
replaces its date structure. A replacement keeps the seats already held by
live bookings on the same day and slot label; everything else goes through
the booking engine.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from eventflow.core.exceptions import NotFoundError, ValidationError
from eventflow.core.logging import get_logger
from eventflow.db.session import UnitOfWork
from eventflow.domain.inventory import DateLike, calendar_day, find_date_entry, find_slot_in
from eventflow.domain.state_machine import BookingStateMachine, BookingStatus
from eventflow.models.booking import Booking
from eventflow.models.event import Event, EventDate, EventSlot
from eventflow.schemas.event import DateIn, EventCreate, EventUpdate
from eventflow.services.cache_service import invalidate_event_cache

logger = get_logger(__name__)


def _build_dates(
    dates: list[DateIn],
    held: Optional[dict[tuple[date, str], int]] = None,
) -> list[EventDate]:
    """
    Dates are stored as UTC midnight of their calendar day.

    ``held`` maps (day, slot label) to seats reserved by live bookings; those
    seats are taken out of the new slot's availability.
    """
    held = held or {}
    seen = set()
    rows = []
    for entry in dates:
        day = calendar_day(entry.date)
        if day in seen:
            raise ValidationError(f"Date {day.isoformat()} is listed more than once")
        seen.add(day)
        slots = []
        for slot in entry.slots:
            label = slot.time.strip()
            reserved = held.get((day, label), 0)
            if reserved > slot.available_seats:
                raise ValidationError(
                    f"Slot {label} on {day.isoformat()} already has {reserved} seats booked",
                    bookedSeats=reserved,
                )
            slots.append(
                EventSlot(
                    time=label,
                    capacity=slot.available_seats,
                    available_seats=slot.available_seats - reserved,
                )
            )
        rows.append(
            EventDate(date=datetime.combine(day, time(0), tzinfo=timezone.utc), slots=slots)
        )
    return rows


async def _held_seats(db: AsyncSession, event_id: int) -> dict[tuple[date, str], int]:
    """Seats reserved by pending and confirmed bookings, per (day, slot label)."""
    # Lock the current slots so no booking lands between the count and the swap
    await db.execute(
        select(EventSlot.id)
        .join(EventDate, EventSlot.event_date_id == EventDate.id)
        .where(EventDate.event_id == event_id)
        .with_for_update()
    )
    live = [s.value for s in BookingStatus if BookingStateMachine.holds_reservation(s)]
    result = await db.execute(
        select(Booking.event_date, Booking.slot_time, func.sum(Booking.seats_booked))
        .where(Booking.event_id == event_id, Booking.booking_status.in_(live))
        .group_by(Booking.event_date, Booking.slot_time)
    )
    return {(day, label): int(total) for day, label, total in result.all()}


async def _load_event(db: AsyncSession, event_id: int) -> Event:
    result = await db.execute(
        select(Event)
        .where(Event.id == event_id, Event.deleted_at.is_(None))
        .execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()
    if not event:
        raise NotFoundError("Event not found")
    return event


async def create_event(uow: UnitOfWork, event_data: EventCreate, admin_id: int) -> Event:
    """Create an event; every slot starts with full availability."""
    db = uow.session
    try:
        event = Event(
            title=event_data.title.strip(),
            description=event_data.description.strip(),
            category=event_data.category,
            location=event_data.location.strip(),
            price=event_data.price,
            created_by=admin_id,
            dates=_build_dates(event_data.dates),
        )
        db.add(event)
        await db.flush()
        event_id = event.id
        await uow.commit()
    except Exception:
        await uow.rollback()
        raise

    event = await _load_event(db, event_id)
    await uow.commit()

    logger.info("event_created", event_id=event.id, title=event.title, dates=len(event.dates))
    await invalidate_event_cache()
    return event


async def get_event(uow: UnitOfWork, event_id: int) -> Event:
    event = await _load_event(uow.session, event_id)
    await uow.commit()
    return event


async def list_events(
    uow: UnitOfWork,
    page: int = 1,
    page_size: int = 20,
    category: Optional[str] = None,
    location: Optional[str] = None,
) -> tuple[list[Event], int]:
    """Non-deleted events, newest first."""
    query = select(Event).where(Event.deleted_at.is_(None))
    if category:
        query = query.where(Event.category == category)
    if location:
        query = query.where(Event.location.ilike(f"%{location}%"))

    db = uow.session
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    result = await db.execute(
        query.order_by(Event.created_at.desc(), Event.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    events = list(result.scalars().all())
    await uow.commit()
    return events, total


async def update_event(uow: UnitOfWork, event_id: int, event_data: EventUpdate) -> Event:
    """
    Partial update. Passing ``dates`` replaces the whole date/slot structure;
    each new slot starts at its capacity minus the seats live bookings hold on it.
    """
    db = uow.session
    changes = event_data.model_dump(exclude_unset=True, exclude_none=True)
    try:
        event = await _load_event(db, event_id)
        for field in ("title", "description", "location"):
            if field in changes:
                setattr(event, field, changes[field].strip())
        if "category" in changes:
            event.category = changes["category"]
        if "price" in changes:
            event.price = changes["price"]
        if event_data.dates is not None:
            event.dates = _build_dates(event_data.dates, await _held_seats(db, event_id))
        await db.flush()
        await uow.commit()
    except Exception:
        await uow.rollback()
        raise

    event = await _load_event(db, event_id)
    await uow.commit()

    logger.info(
        "event_updated",
        event_id=event_id,
        fields=sorted(changes.keys()),
        dates_replaced=event_data.dates is not None,
    )
    await invalidate_event_cache()
    return event


async def delete_event(uow: UnitOfWork, event_id: int) -> None:
    """Soft delete. Bookings keep pointing at the event and its slots."""
    db = uow.session
    try:
        event = await _load_event(db, event_id)
        event.deleted_at = datetime.now(timezone.utc)
        await uow.commit()
    except Exception:
        await uow.rollback()
        raise

    logger.info("event_deleted", event_id=event_id)
    await invalidate_event_cache()


async def check_availability(
    uow: UnitOfWork,
    event_id: int,
    day: DateLike,
    slot_time: str,
) -> tuple[bool, int, Optional[str]]:
    """(available, seats, reason). Unknown dates and slots are reported, not raised."""
    event = await _load_event(uow.session, event_id)
    await uow.commit()

    entry = find_date_entry(event, calendar_day(day))
    if entry is None:
        return False, 0, "Date not found for this event"
    slot = find_slot_in(entry.slots, slot_time)
    if slot is None:
        return False, 0, "Time slot not found"
    return slot.available_seats > 0, slot.available_seats, None
