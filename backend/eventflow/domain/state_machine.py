"""
Booking lifecycle: the legal (booking_status, payment_status) transitions.

    CONFIRM_PAYMENT  pending/{pending,failed}      -> confirmed/paid
    FAIL_PAYMENT     pending/{pending,failed}      -> pending/failed
    CANCEL           pending/*                     -> cancelled/failed
                     confirmed/*                   -> cancelled/(unchanged)

Cancelled is terminal. The services enforce the same preconditions inside the
WHERE clause of the UPDATE that performs the transition; this module is the
single place that names them.
"""

from enum import Enum
from typing import Dict, FrozenSet, Tuple

from eventflow.core.exceptions import AlreadyCancelledError, InvalidStateTransitionError


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class BookingTransition(str, Enum):
    CONFIRM_PAYMENT = "confirm_payment"
    FAIL_PAYMENT = "fail_payment"
    CANCEL = "cancel"


State = Tuple[BookingStatus, PaymentStatus]


class BookingStateMachine:
    """Central lifecycle controller for booking transitions."""

    _ALLOWED_FROM: Dict[BookingTransition, FrozenSet[BookingStatus]] = {
        BookingTransition.CONFIRM_PAYMENT: frozenset({BookingStatus.PENDING}),
        BookingTransition.FAIL_PAYMENT: frozenset({BookingStatus.PENDING}),
        BookingTransition.CANCEL: frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}),
    }

    @classmethod
    def allowed_from(cls, transition: BookingTransition) -> FrozenSet[BookingStatus]:
        return cls._ALLOWED_FROM[transition]

    @classmethod
    def can_apply(
        cls,
        transition: BookingTransition,
        booking_status: BookingStatus,
        payment_status: PaymentStatus,
    ) -> bool:
        booking_status = BookingStatus(booking_status)
        payment_status = PaymentStatus(payment_status)
        if booking_status not in cls._ALLOWED_FROM[transition]:
            return False
        if transition is not BookingTransition.CANCEL and payment_status is PaymentStatus.PAID:
            return False
        return True

    @classmethod
    def apply(
        cls,
        transition: BookingTransition,
        booking_status: BookingStatus,
        payment_status: PaymentStatus,
    ) -> State:
        """
        Return the state reached by ``transition``.
        Raises a Conflict naming the current state if the precondition fails.
        """
        booking_status = BookingStatus(booking_status)
        payment_status = PaymentStatus(payment_status)

        if not cls.can_apply(transition, booking_status, payment_status):
            if transition is BookingTransition.CANCEL and booking_status is BookingStatus.CANCELLED:
                raise AlreadyCancelledError()
            raise InvalidStateTransitionError(
                transition.value, booking_status.value, payment_status.value
            )

        if transition is BookingTransition.CONFIRM_PAYMENT:
            return BookingStatus.CONFIRMED, PaymentStatus.PAID
        if transition is BookingTransition.FAIL_PAYMENT:
            return BookingStatus.PENDING, PaymentStatus.FAILED

        # CANCEL: an unpaid reservation can no longer be paid for
        if booking_status is BookingStatus.PENDING:
            return BookingStatus.CANCELLED, PaymentStatus.FAILED
        return BookingStatus.CANCELLED, payment_status

    @staticmethod
    def is_terminal(booking_status: BookingStatus) -> bool:
        return BookingStatus(booking_status) is BookingStatus.CANCELLED

    @staticmethod
    def holds_reservation(booking_status: BookingStatus) -> bool:
        """Pending and confirmed bookings own their seats."""
        return BookingStatus(booking_status) in (BookingStatus.PENDING, BookingStatus.CONFIRMED)
