from eventflow.schemas.booking import BookingConfirm, BookingCreate, BookingEnvelope, BookingListEnvelope, BookingResponse
from eventflow.schemas.common import APIModel, Envelope, ErrorResponse
from eventflow.schemas.event import EventCreate, EventEnvelope, EventListEnvelope, EventResponse, EventUpdate
from eventflow.schemas.payment import ConfirmPaymentRequest, CreateIntentRequest, PaymentStatusEnvelope
from eventflow.schemas.user import AuthEnvelope, UserCreate, UserLogin, UserResponse

__all__ = [
    "APIModel", "Envelope", "ErrorResponse",
    "UserCreate", "UserLogin", "UserResponse", "AuthEnvelope",
    "EventCreate", "EventUpdate", "EventResponse", "EventEnvelope", "EventListEnvelope",
    "BookingCreate", "BookingConfirm", "BookingResponse", "BookingEnvelope", "BookingListEnvelope",
    "CreateIntentRequest", "ConfirmPaymentRequest", "PaymentStatusEnvelope",
]
