"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import date, datetime
from typing import Optional, Union

from pydantic import Field

from eventflow.schemas.common import APIModel, Envelope


class BookingCreate(APIModel):
    event_id: int
    # Date-only or full timestamp; only the calendar day is used
    event_date: Union[datetime, date]
    slot_time: str = Field(..., min_length=1, max_length=32)
    seats_booked: int = Field(..., ge=1, le=100000)


class BookingConfirm(APIModel):
    payment_id: str = Field(..., min_length=1, max_length=255)


class BookingEventSummary(APIModel):
    id: int
    title: str
    category: str
    location: str
    price: float


class BookingResponse(APIModel):
    id: int
    user_id: int
    event_id: int
    event: Optional[BookingEventSummary] = None
    event_date: date
    slot_time: str
    seats_booked: int
    booking_status: str
    payment_status: str
    payment_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class BookingEnvelope(Envelope):
    booking: BookingResponse


class BookingListEnvelope(Envelope):
    count: int
    bookings: list[BookingResponse]
