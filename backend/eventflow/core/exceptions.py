"""
Domain error taxonomy.

Services raise these; the API layer renders them in the
``{"success": false, "message": ...}`` envelope using ``status_code``.
"""

from typing import Any, Dict, Optional


class EventFlowError(Exception):
    """Base exception for all domain-level errors."""

    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message, **self.extra}


class ValidationError(EventFlowError):
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(EventFlowError):
    status_code = 404
    default_message = "Not found"


class ForbiddenError(EventFlowError):
    status_code = 403
    default_message = "Forbidden - Access denied"


class ConflictError(EventFlowError):
    """A state precondition was not met (double cancel, paying a non-pending booking)."""

    status_code = 409
    default_message = "Conflict"


class AlreadyCancelledError(ConflictError):
    status_code = 400
    default_message = "Booking is already cancelled"


class InvalidStateTransitionError(ConflictError):
    """Raised when an illegal booking state transition is attempted."""

    status_code = 400

    def __init__(self, transition: str, booking_status: str, payment_status: str):
        self.transition = transition
        self.booking_status = booking_status
        self.payment_status = payment_status
        super().__init__(
            f"Cannot {transition.replace('_', ' ')}: booking is {booking_status} "
            f"and payment is {payment_status}",
            bookingStatus=booking_status,
            paymentStatus=payment_status,
        )


class InsufficientCapacityError(EventFlowError):
    status_code = 400

    def __init__(self, available_seats: int):
        self.available_seats = available_seats
        super().__init__(
            f"Only {available_seats} seats available",
            availableSeats=available_seats,
        )


class InvalidAmountError(EventFlowError):
    status_code = 400
    default_message = "Amount is below the minimum chargeable amount"


class PaymentVerificationFailedError(EventFlowError):
    """Provider reported a non-successful payment, or a callback could not be authenticated."""

    status_code = 400
    default_message = "Payment verification failed"


class ProviderUnavailableError(EventFlowError):
    """Payment provider unreachable, timed out or not configured. Safe to retry."""

    status_code = 500
    default_message = "Payment service unavailable, please retry"


class AuthenticationError(EventFlowError):
    status_code = 401
    default_message = "Unauthorized"
