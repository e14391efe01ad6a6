from eventflow.models.user import User
from eventflow.models.event import Event, EventDate, EventSlot
from eventflow.models.booking import Booking
from eventflow.models.payment import PaymentWebhookEvent

__all__ = ["User", "Event", "EventDate", "EventSlot", "Booking", "PaymentWebhookEvent"]
