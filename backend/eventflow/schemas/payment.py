"""
Pydantic schemas for the payment endpoints.
"""

from typing import Optional

from pydantic import Field

from eventflow.schemas.booking import BookingResponse
from eventflow.schemas.common import APIModel, Envelope


class CreateIntentRequest(APIModel):
    booking_id: int


class IntentEnvelope(Envelope):
    client_secret: Optional[str] = None
    intent_id: str
    amount: float
    amount_minor: int
    currency: str


class ConfirmPaymentRequest(APIModel):
    booking_id: int
    payment_intent_id: str = Field(..., min_length=1, max_length=255)


class ConfirmEnvelope(Envelope):
    already_confirmed: bool = False
    booking: BookingResponse


class WebhookAck(APIModel):
    received: bool = True


class PaymentIntentView(APIModel):
    id: str
    status: str
    amount: float  # major units, like the booking amount
    amount_minor: int
    currency: str


class BookingPaymentView(APIModel):
    id: int
    booking_status: str
    payment_status: str
    payment_id: Optional[str] = None
    amount: float
    seats_booked: int


class PaymentStatusEnvelope(Envelope):
    booking: BookingPaymentView
    payment_intent: Optional[PaymentIntentView] = None
