"""
Booking endpoints with concurrency-safe seat reservation.
"""

from fastapi import APIRouter, Depends, status

from eventflow.core.security import Actor, get_current_actor, require_admin
from eventflow.db.session import UnitOfWork, get_uow
from eventflow.schemas.booking import (
    BookingConfirm,
    BookingCreate,
    BookingEnvelope,
    BookingListEnvelope,
    BookingResponse,
)
from eventflow.services import booking_service
from eventflow.services.notification_service import Notifier, get_notifier

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingEnvelope, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    uow: UnitOfWork = Depends(get_uow),
):
    """
    Reserve seats in one event slot.

    The seat decrement is a guarded UPDATE, so concurrent requests for the
    last seats never oversell; the loser gets 400 with the remaining count.
    """
    booking = await booking_service.create_booking(
        uow,
        actor,
        booking_data.event_id,
        booking_data.event_date,
        booking_data.slot_time,
        booking_data.seats_booked,
    )
    return BookingEnvelope(
        message="Booking created successfully",
        booking=BookingResponse.model_validate(booking),
    )


@router.get("/my-bookings", response_model=BookingListEnvelope)
async def list_my_bookings(
    actor: Actor = Depends(get_current_actor),
    uow: UnitOfWork = Depends(get_uow),
):
    bookings = await booking_service.list_user_bookings(uow, actor.id)
    return BookingListEnvelope(
        count=len(bookings),
        bookings=[BookingResponse.model_validate(b) for b in bookings],
    )


@router.get("/", response_model=BookingListEnvelope)
async def list_all_bookings(
    _admin: Actor = Depends(require_admin),
    uow: UnitOfWork = Depends(get_uow),
):
    """All bookings (admin only)."""
    bookings = await booking_service.list_all_bookings(uow)
    return BookingListEnvelope(
        count=len(bookings),
        bookings=[BookingResponse.model_validate(b) for b in bookings],
    )


@router.get("/{booking_id}", response_model=BookingEnvelope)
async def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    uow: UnitOfWork = Depends(get_uow),
):
    booking = await booking_service.get_booking(uow, booking_id, actor)
    return BookingEnvelope(booking=BookingResponse.model_validate(booking))


@router.patch("/{booking_id}/cancel", response_model=BookingEnvelope)
async def cancel_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    uow: UnitOfWork = Depends(get_uow),
    notifier: Notifier = Depends(get_notifier),
):
    """Cancel a booking and release its seats back to the slot."""
    booking = await booking_service.cancel_booking(uow, booking_id, actor, notifier)
    return BookingEnvelope(
        message="Booking cancelled successfully",
        booking=BookingResponse.model_validate(booking),
    )


@router.patch("/{booking_id}/confirm", response_model=BookingEnvelope)
async def confirm_booking(
    booking_id: int,
    body: BookingConfirm,
    admin: Actor = Depends(require_admin),
    uow: UnitOfWork = Depends(get_uow),
    notifier: Notifier = Depends(get_notifier),
):
    """Mark a pending booking as paid against an offline payment reference (admin only)."""
    booking = await booking_service.confirm_booking(uow, booking_id, body.payment_id, admin, notifier)
    return BookingEnvelope(
        message="Booking confirmed successfully",
        booking=BookingResponse.model_validate(booking),
    )
