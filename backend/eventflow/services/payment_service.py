"""
Payment coordinator: bridges bookings to the external payment provider.

Two paths can report a successful payment for the same booking: the client
calling /payment/confirm after the provider's checkout, and the provider's
asynchronous webhook. Both end in the same compare-and-set
(pending -> confirmed/paid). Whichever commits first performs the transition;
the other sees a non-pending booking and reports success without changing
anything.

No database transaction is held open across a provider call. Reads are
committed before the call and the resulting transition runs in a fresh,
short transaction.
"""

import asyncio
import hashlib
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Awaitable, Optional, TypeVar

from fastapi import Depends
from sqlalchemy.exc import IntegrityError

from eventflow.core.config import Settings, get_settings
from eventflow.core.exceptions import (
    InvalidAmountError,
    InvalidStateTransitionError,
    NotFoundError,
    PaymentVerificationFailedError,
    ProviderUnavailableError,
    ValidationError,
)
from eventflow.core.logging import get_logger
from eventflow.core.metrics import provider_errors, record_payment_transition, record_webhook
from eventflow.core.security import Actor
from eventflow.db.session import UnitOfWork
from eventflow.domain.state_machine import BookingStateMachine, BookingStatus, BookingTransition
from eventflow.models.booking import Booking
from eventflow.models.payment import PaymentWebhookEvent
from eventflow.payments import get_payment_provider
from eventflow.payments.provider import (
    EVENT_PAYMENT_FAILED,
    EVENT_PAYMENT_SUCCEEDED,
    PaymentIntent,
    PaymentProvider,
)
from eventflow.services.booking_service import (
    booking_amount,
    ensure_owner,
    ensure_owner_or_admin,
    load_booking,
    mark_paid,
    mark_payment_failed,
    submit_notification,
)
from eventflow.services.notification_service import NotificationKind, Notifier, get_notifier

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class IntentHandle:
    client_secret: Optional[str]
    intent_id: str
    amount: Decimal
    amount_minor: int
    currency: str


@dataclass(frozen=True)
class ConfirmationResult:
    booking: Booking
    already_confirmed: bool = False


@dataclass(frozen=True)
class WebhookOutcome:
    event_id: str
    event_type: str
    booking_id: Optional[int]
    outcome: str  # confirmed | payment_failed | duplicate | noop | ignored


@dataclass(frozen=True)
class PaymentStatusSnapshot:
    booking: Booking
    amount: Decimal
    intent: Optional[PaymentIntent]


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _parse_booking_id(raw: Optional[str]) -> Optional[int]:
    if raw and raw.isdigit():
        return int(raw)
    return None


class PaymentCoordinator:
    def __init__(self, provider: PaymentProvider, notifier: Notifier, settings: Settings):
        self.provider = provider
        self.notifier = notifier
        self.settings = settings

    async def _call_provider(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.settings.PAYMENT_PROVIDER_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            provider_errors.labels(operation=operation, reason="timeout").inc()
            logger.error("payment_provider_timeout", operation=operation)
            raise ProviderUnavailableError("Payment provider timed out, please retry")
        except ProviderUnavailableError:
            provider_errors.labels(operation=operation, reason="unavailable").inc()
            raise

    async def create_intent(self, uow: UnitOfWork, booking_id: int, actor: Actor) -> IntentHandle:
        """Open a provider intent for ``event.price * seats_booked``."""
        booking = await load_booking(uow.session, booking_id)
        ensure_owner(booking, actor)
        BookingStateMachine.apply(
            BookingTransition.CONFIRM_PAYMENT, booking.booking_status, booking.payment_status
        )

        event = booking.event
        if event is None or event.is_deleted:
            raise NotFoundError("Event not found")

        amount = booking_amount(booking)
        amount_minor = to_minor_units(amount)
        if amount_minor < self.settings.PAYMENT_MIN_AMOUNT_MINOR:
            raise InvalidAmountError(
                f"Amount must be at least {self.settings.PAYMENT_MIN_AMOUNT_MINOR / 100:.2f} "
                f"{self.settings.PAYMENT_CURRENCY.upper()}"
            )

        metadata = {
            "bookingId": str(booking.id),
            "userId": str(booking.user_id),
            "eventId": str(booking.event_id),
            "seatsBooked": str(booking.seats_booked),
        }
        description = f"Payment for {event.title} - {booking.seats_booked} seat(s)"
        await uow.commit()

        intent = await self._call_provider(
            "create_intent",
            self.provider.create_intent(
                amount_minor, self.settings.PAYMENT_CURRENCY, metadata, description
            ),
        )
        logger.info(
            "payment_intent_created",
            booking_id=booking.id,
            intent_id=intent.id,
            amount_minor=amount_minor,
        )
        return IntentHandle(
            client_secret=intent.client_secret,
            intent_id=intent.id,
            amount=amount,
            amount_minor=amount_minor,
            currency=intent.currency or self.settings.PAYMENT_CURRENCY,
        )

    async def confirm_from_client(
        self,
        uow: UnitOfWork,
        booking_id: int,
        intent_id: str,
        actor: Actor,
    ) -> ConfirmationResult:
        """
        Confirm a booking after client-side checkout.
        The intent is always re-read from the provider; the client's word is not trusted.
        """
        if not intent_id:
            raise ValidationError("Booking ID and Payment Intent ID are required")

        db = uow.session
        booking = await load_booking(db, booking_id)
        ensure_owner(booking, actor)
        if booking.booking_status != BookingStatus.CONFIRMED.value:
            # Settled locally before asking the provider; only a confirmed booking may re-check its intent
            BookingStateMachine.apply(
                BookingTransition.CONFIRM_PAYMENT, booking.booking_status, booking.payment_status
            )
        await uow.commit()

        intent = await self._call_provider("retrieve_intent", self.provider.retrieve_intent(intent_id))
        if intent.booking_id != str(booking_id):
            raise PaymentVerificationFailedError("Payment intent does not match booking")
        if not intent.succeeded:
            raise PaymentVerificationFailedError(
                f"Payment not completed. Status: {intent.status}. Please complete payment first.",
                paymentStatus=intent.status,
            )

        try:
            applied = await mark_paid(db, booking_id, intent.id)
            await uow.commit()
        except Exception:
            await uow.rollback()
            raise

        booking = await load_booking(db, booking_id)
        await uow.commit()

        if applied:
            record_payment_transition("client", "confirmed")
            logger.info("payment_confirmed", booking_id=booking_id, intent_id=intent.id, source="client")
            await submit_notification(db, self.notifier, booking, NotificationKind.PAYMENT_CONFIRMED)
            return ConfirmationResult(booking=booking)

        if booking.booking_status == BookingStatus.CONFIRMED.value:
            record_payment_transition("client", "already_confirmed")
            if booking.payment_id != intent.id:
                # Two intents were paid for one booking; needs a manual refund
                logger.warning(
                    "duplicate_payment_detected",
                    booking_id=booking_id,
                    recorded_intent=booking.payment_id,
                    extra_intent=intent.id,
                )
            return ConfirmationResult(booking=booking, already_confirmed=True)

        raise InvalidStateTransitionError(
            BookingTransition.CONFIRM_PAYMENT.value, booking.booking_status, booking.payment_status
        )

    async def handle_provider_callback(
        self,
        uow: UnitOfWork,
        payload: bytes,
        signature: Optional[str],
    ) -> WebhookOutcome:
        """
        Apply an authenticated provider callback at most once.

        Raises PaymentVerificationFailedError (no state change) when the
        signature does not verify. Every verified callback returns normally,
        whatever its business outcome.
        """
        event = self.provider.construct_event(payload, signature)
        booking_id = _parse_booking_id(event.intent.booking_id)

        if event.type not in (EVENT_PAYMENT_SUCCEEDED, EVENT_PAYMENT_FAILED):
            record_webhook("ignored")
            logger.info("webhook_ignored", event_id=event.id, event_type=event.type)
            return WebhookOutcome(event.id, event.type, booking_id, "ignored")

        db = uow.session
        ledger = PaymentWebhookEvent(
            provider=self.provider.name,
            provider_event_id=event.id,
            event_type=event.type,
            booking_id=booking_id,
            payload_hash=hashlib.sha256(payload).hexdigest(),
            outcome="processing",
        )
        try:
            db.add(ledger)
            await db.flush()
        except IntegrityError:
            await uow.rollback()
            record_webhook("duplicate")
            logger.info("webhook_duplicate", event_id=event.id, booking_id=booking_id)
            return WebhookOutcome(event.id, event.type, booking_id, "duplicate")

        try:
            if booking_id is None:
                outcome = "ignored"
                logger.warning("webhook_missing_booking_id", event_id=event.id, intent_id=event.intent.id)
            elif await db.get(Booking, booking_id) is None:
                outcome = "ignored"
                logger.error("webhook_booking_not_found", event_id=event.id, booking_id=booking_id)
            elif event.type == EVENT_PAYMENT_SUCCEEDED:
                applied = await mark_paid(db, booking_id, event.intent.id)
                outcome = "confirmed" if applied else "noop"
            else:
                applied = await mark_payment_failed(db, booking_id)
                outcome = "payment_failed" if applied else "noop"

            ledger.outcome = outcome
            await uow.commit()
        except Exception:
            await uow.rollback()
            raise

        record_webhook(outcome)
        logger.info(
            "webhook_processed",
            event_id=event.id,
            event_type=event.type,
            booking_id=booking_id,
            outcome=outcome,
        )

        if outcome == "confirmed":
            record_payment_transition("webhook", "confirmed")
            booking = await load_booking(db, booking_id)
            await uow.commit()
            await submit_notification(db, self.notifier, booking, NotificationKind.PAYMENT_CONFIRMED)
        elif outcome == "payment_failed":
            record_payment_transition("webhook", "failed")

        return WebhookOutcome(event.id, event.type, booking_id, outcome)

    async def get_status(self, uow: UnitOfWork, booking_id: int, actor: Actor) -> PaymentStatusSnapshot:
        """Booking payment fields plus the provider's view of the recorded intent."""
        booking = await load_booking(uow.session, booking_id)
        ensure_owner_or_admin(booking, actor)
        await uow.commit()

        intent = None
        if booking.payment_id:
            try:
                intent = await self._call_provider(
                    "retrieve_intent", self.provider.retrieve_intent(booking.payment_id)
                )
            except (ProviderUnavailableError, PaymentVerificationFailedError) as e:
                logger.warning("payment_status_intent_unavailable", booking_id=booking_id, error=str(e))

        return PaymentStatusSnapshot(booking=booking, amount=booking_amount(booking), intent=intent)


def get_payment_coordinator(
    provider: PaymentProvider = Depends(get_payment_provider),
    notifier: Notifier = Depends(get_notifier),
) -> PaymentCoordinator:
    return PaymentCoordinator(provider, notifier, get_settings())
