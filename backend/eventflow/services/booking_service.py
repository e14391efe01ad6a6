"""
Booking engine: seat reservation, cancellation and the booking state machine.

CONCURRENCY STRATEGY: Guarded UPDATE per slot
=============================================

Problem:
  Two users try to book the last seats of the same slot simultaneously.
  Both read available_seats=2, both subtract 2, both succeed.
  Result: Overselling.

Solution:
  The decrement carries its own precondition:

    UPDATE event_slots SET available_seats = available_seats - :n
    WHERE id = :slot_id AND available_seats >= :n

  The database row lock makes concurrent decrements of one slot linearizable;
  rows_affected == 0 means the slot no longer has :n seats. The booking row is
  inserted in the same transaction, so inventory and bookings are committed
  (or rolled back) together. Different slots are different rows and never
  contend. The CHECK constraint (available_seats >= 0) is the final safety net.

  Booking state changes use the same idea: the expected current status is part
  of the WHERE clause (compare-and-set), so two writers racing on one booking
  cannot both apply a transition.
"""

import time
from datetime import date, datetime
from typing import Optional, Union

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from eventflow.core.exceptions import (
    AlreadyCancelledError,
    ForbiddenError,
    InsufficientCapacityError,
    NotFoundError,
    ValidationError,
)
from eventflow.core.logging import get_logger
from eventflow.core.metrics import (
    booking_cancellations,
    booking_latency,
    record_booking_attempt,
    record_payment_transition,
    seat_release_skipped,
)
from eventflow.core.security import Actor
from eventflow.db.session import UnitOfWork
from eventflow.domain.inventory import calendar_day, find_date_entry, find_slot_in
from eventflow.domain.state_machine import (
    BookingStateMachine,
    BookingStatus,
    BookingTransition,
    PaymentStatus,
)
from eventflow.models.booking import Booking
from eventflow.models.event import Event, EventSlot
from eventflow.models.user import User
from eventflow.services.cache_service import invalidate_event_cache
from eventflow.services.notification_service import Notification, NotificationKind, Notifier

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def load_booking(db: AsyncSession, booking_id: int) -> Booking:
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def ensure_owner_or_admin(booking: Booking, actor: Actor) -> None:
    if booking.user_id != actor.id and not actor.is_admin:
        raise ForbiddenError()


def ensure_owner(booking: Booking, actor: Actor) -> None:
    if booking.user_id != actor.id:
        raise ForbiddenError()


async def get_booking(uow: UnitOfWork, booking_id: int, actor: Actor) -> Booking:
    """Owner or admin may read a booking."""
    booking = await load_booking(uow.session, booking_id)
    ensure_owner_or_admin(booking, actor)
    return booking


async def list_user_bookings(uow: UnitOfWork, user_id: int) -> list[Booking]:
    result = await uow.session.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def list_all_bookings(uow: UnitOfWork) -> list[Booking]:
    result = await uow.session.execute(
        select(Booking).order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Reservation
# ---------------------------------------------------------------------------

async def create_booking(
    uow: UnitOfWork,
    actor: Actor,
    event_id: int,
    event_date: Union[date, datetime, str],
    slot_time: str,
    seats: int,
) -> Booking:
    """
    Reserve ``seats`` in one slot and create a pending/pending booking.
    Both writes commit together or not at all.
    """
    if seats is None or seats < 1:
        raise ValidationError("At least 1 seat must be booked")
    if not slot_time:
        raise ValidationError("Slot time is required")

    db = uow.session
    started = time.perf_counter()
    day = calendar_day(event_date)

    try:
        result = await db.execute(
            select(Event).where(Event.id == event_id, Event.deleted_at.is_(None))
        )
        event = result.scalar_one_or_none()
        if not event:
            raise NotFoundError("Event not found")

        entry = find_date_entry(event, day)
        if entry is None:
            raise NotFoundError("Date not available for this event")
        slot = find_slot_in(entry.slots, slot_time)
        if slot is None:
            raise NotFoundError("Time slot not available")

        decrement = await db.execute(
            update(EventSlot)
            .where(EventSlot.id == slot.id, EventSlot.available_seats >= seats)
            .values(available_seats=EventSlot.available_seats - seats)
            .execution_options(synchronize_session=False)
        )

        if decrement.rowcount != 1:
            remaining = (
                await db.execute(
                    select(EventSlot.available_seats).where(EventSlot.id == slot.id)
                )
            ).scalar_one()
            logger.warning(
                "booking_failed_no_seats",
                event_id=event_id,
                slot_id=slot.id,
                requested=seats,
                available=remaining,
            )
            raise InsufficientCapacityError(remaining)

        booking = Booking(
            user_id=actor.id,
            event=event,
            event_date=day,
            slot_time=slot.time,
            seats_booked=seats,
            booking_status=BookingStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
        )
        db.add(booking)
        await db.flush()
        await db.refresh(booking)
        await uow.commit()
    except InsufficientCapacityError:
        await uow.rollback()
        record_booking_attempt("insufficient_capacity")
        raise
    except NotFoundError:
        await uow.rollback()
        record_booking_attempt("not_found")
        raise
    except Exception:
        await uow.rollback()
        record_booking_attempt("error")
        raise

    booking_latency.observe(time.perf_counter() - started)
    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=actor.id,
        event_id=event_id,
        event_date=day.isoformat(),
        slot_time=slot_time,
        seats=seats,
    )
    await invalidate_event_cache()
    return booking


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

async def _release_seats(db: AsyncSession, booking: Booking) -> bool:
    """
    Return the booking's seats to its slot inside the caller's transaction.
    Returns False when the slot no longer exists.
    """
    result = await db.execute(
        select(Event)
        .where(Event.id == booking.event_id)
        .execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()
    entry = find_date_entry(event, booking.event_date) if event else None
    slot = find_slot_in(entry.slots, booking.slot_time) if entry else None

    if slot is None:
        seat_release_skipped.labels(reason="slot_missing").inc()
        logger.warning(
            "seat_release_skipped",
            booking_id=booking.id,
            event_id=booking.event_id,
            event_date=booking.event_date.isoformat(),
            slot_time=booking.slot_time,
            seats=booking.seats_booked,
            reason="slot_missing",
        )
        return False

    restored = EventSlot.available_seats + booking.seats_booked
    await db.execute(
        update(EventSlot)
        .where(EventSlot.id == slot.id)
        .values(
            available_seats=case(
                (restored > EventSlot.capacity, EventSlot.capacity),
                else_=restored,
            )
        )
        .execution_options(synchronize_session=False)
    )
    if slot.available_seats + booking.seats_booked > slot.capacity:
        seat_release_skipped.labels(reason="capacity_clamped").inc()
        logger.warning(
            "seat_release_clamped",
            booking_id=booking.id,
            slot_id=slot.id,
            seats=booking.seats_booked,
            capacity=slot.capacity,
        )
    return True


async def cancel_booking(
    uow: UnitOfWork,
    booking_id: int,
    actor: Actor,
    notifier: Notifier,
) -> Booking:
    """
    Cancel a booking and return its seats to the slot.

    The status change and the seat release commit in one transaction. A booking
    whose slot has since disappeared is still cancelled; the release is skipped
    and logged. The cancellation e-mail is submitted after commit.
    """
    db = uow.session
    try:
        booking = await load_booking(db, booking_id)
        ensure_owner_or_admin(booking, actor)
        # Raises AlreadyCancelled / Conflict naming the current state
        BookingStateMachine.apply(
            BookingTransition.CANCEL, booking.booking_status, booking.payment_status
        )

        allowed = [s.value for s in BookingStateMachine.allowed_from(BookingTransition.CANCEL)]
        result = await db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.booking_status.in_(allowed))
            .values(
                booking_status=BookingStatus.CANCELLED.value,
                payment_status=case(
                    (Booking.booking_status == BookingStatus.PENDING.value, PaymentStatus.FAILED.value),
                    else_=Booking.payment_status,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # A concurrent cancel committed first
            raise AlreadyCancelledError()

        await _release_seats(db, booking)
        await uow.commit()
    except Exception:
        await uow.rollback()
        raise

    booking = await load_booking(db, booking_id)
    await uow.commit()

    booking_cancellations.labels(actor="owner" if booking.user_id == actor.id else "admin").inc()
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        actor_id=actor.id,
        event_id=booking.event_id,
        seats_restored=booking.seats_booked,
    )
    await invalidate_event_cache()
    await submit_notification(db, notifier, booking, NotificationKind.BOOKING_CANCELLED)
    return booking


# ---------------------------------------------------------------------------
# Payment-driven transitions (compare-and-set)
# ---------------------------------------------------------------------------

def _guard_values(transition: BookingTransition) -> list[str]:
    return [s.value for s in BookingStateMachine.allowed_from(transition)]


async def mark_paid(db: AsyncSession, booking_id: int, payment_id: str) -> bool:
    """
    pending -> confirmed/paid. Returns False if the booking was not pending
    (another path already confirmed or cancelled it). Caller commits.
    """
    result = await db.execute(
        update(Booking)
        .where(
            Booking.id == booking_id,
            Booking.booking_status.in_(_guard_values(BookingTransition.CONFIRM_PAYMENT)),
            Booking.payment_status != PaymentStatus.PAID.value,
        )
        .values(
            booking_status=BookingStatus.CONFIRMED.value,
            payment_status=PaymentStatus.PAID.value,
            payment_id=payment_id,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def mark_payment_failed(db: AsyncSession, booking_id: int) -> bool:
    """pending payment -> failed; the booking stays pending so the user can retry."""
    result = await db.execute(
        update(Booking)
        .where(
            Booking.id == booking_id,
            Booking.booking_status.in_(_guard_values(BookingTransition.FAIL_PAYMENT)),
            Booking.payment_status == PaymentStatus.PENDING.value,
        )
        .values(payment_status=PaymentStatus.FAILED.value)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def confirm_booking(
    uow: UnitOfWork,
    booking_id: int,
    payment_id: str,
    actor: Actor,
    notifier: Notifier,
) -> Booking:
    """Administrative confirmation of a pending booking against an external payment reference."""
    if not payment_id:
        raise ValidationError("Payment ID is required")

    db = uow.session
    try:
        booking = await load_booking(db, booking_id)
        BookingStateMachine.apply(
            BookingTransition.CONFIRM_PAYMENT, booking.booking_status, booking.payment_status
        )
        if not await mark_paid(db, booking_id, payment_id):
            current = await load_booking(db, booking_id)
            BookingStateMachine.apply(
                BookingTransition.CONFIRM_PAYMENT, current.booking_status, current.payment_status
            )
        await uow.commit()
    except Exception:
        await uow.rollback()
        raise

    booking = await load_booking(db, booking_id)
    await uow.commit()
    record_payment_transition("admin", "confirmed")
    logger.info("booking_confirmed", booking_id=booking_id, actor_id=actor.id, payment_id=payment_id)
    await submit_notification(db, notifier, booking, NotificationKind.PAYMENT_CONFIRMED)
    return booking


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

def booking_amount(booking: Booking):
    return booking.event.price * booking.seats_booked


async def submit_notification(
    db: AsyncSession,
    notifier: Notifier,
    booking: Booking,
    kind: NotificationKind,
) -> None:
    """Best effort: any failure here is logged and never reaches the caller."""
    try:
        user: Optional[User] = await db.get(User, booking.user_id)
        await db.commit()
        if user is None:
            return
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
                total_price=booking_amount(booking),
                payment_id=booking.payment_id,
            )
        )
    except Exception as e:
        logger.error("notification_submit_failed", booking_id=booking.id, kind=kind.value, error=str(e))
