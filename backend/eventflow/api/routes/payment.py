"""
Payment endpoints: intent creation, client confirmation, provider webhook.
"""

from fastapi import APIRouter, Depends, Request

from eventflow.core.security import Actor, get_current_actor
from eventflow.db.session import UnitOfWork, get_uow
from eventflow.schemas.booking import BookingResponse
from eventflow.schemas.payment import (
    BookingPaymentView,
    ConfirmEnvelope,
    ConfirmPaymentRequest,
    CreateIntentRequest,
    IntentEnvelope,
    PaymentIntentView,
    PaymentStatusEnvelope,
    WebhookAck,
)
from eventflow.services.payment_service import PaymentCoordinator, get_payment_coordinator

router = APIRouter(prefix="/payment", tags=["Payments"])


@router.post("/create-intent", response_model=IntentEnvelope)
async def create_payment_intent(
    body: CreateIntentRequest,
    actor: Actor = Depends(get_current_actor),
    uow: UnitOfWork = Depends(get_uow),
    coordinator: PaymentCoordinator = Depends(get_payment_coordinator),
):
    handle = await coordinator.create_intent(uow, body.booking_id, actor)
    return IntentEnvelope(
        client_secret=handle.client_secret,
        intent_id=handle.intent_id,
        amount=float(handle.amount),
        amount_minor=handle.amount_minor,
        currency=handle.currency,
    )


@router.post("/confirm", response_model=ConfirmEnvelope)
async def confirm_payment(
    body: ConfirmPaymentRequest,
    actor: Actor = Depends(get_current_actor),
    uow: UnitOfWork = Depends(get_uow),
    coordinator: PaymentCoordinator = Depends(get_payment_coordinator),
):
    """Re-verifies the intent with the provider before confirming the booking."""
    result = await coordinator.confirm_from_client(uow, body.booking_id, body.payment_intent_id, actor)
    return ConfirmEnvelope(
        message="Booking already confirmed" if result.already_confirmed else "Payment confirmed successfully",
        already_confirmed=result.already_confirmed,
        booking=BookingResponse.model_validate(result.booking),
    )


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    uow: UnitOfWork = Depends(get_uow),
    coordinator: PaymentCoordinator = Depends(get_payment_coordinator),
):
    """
    Provider callback. Authenticated by payload signature, not by session.
    Any verified payload is acknowledged with 200 so the provider stops retrying.
    """
    payload = await request.body()
    signature = request.headers.get(coordinator.provider.signature_header)
    await coordinator.handle_provider_callback(uow, payload, signature)
    return WebhookAck()


@router.get("/status/{booking_id}", response_model=PaymentStatusEnvelope)
async def payment_status(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    uow: UnitOfWork = Depends(get_uow),
    coordinator: PaymentCoordinator = Depends(get_payment_coordinator),
):
    snapshot = await coordinator.get_status(uow, booking_id, actor)
    booking = snapshot.booking
    intent = snapshot.intent
    return PaymentStatusEnvelope(
        booking=BookingPaymentView(
            id=booking.id,
            booking_status=booking.booking_status,
            payment_status=booking.payment_status,
            payment_id=booking.payment_id,
            amount=float(snapshot.amount),
            seats_booked=booking.seats_booked,
        ),
        payment_intent=PaymentIntentView(
            id=intent.id,
            status=intent.status,
            amount=intent.amount_minor / 100,
            amount_minor=intent.amount_minor,
            currency=intent.currency,
        )
        if intent
        else None,
    )
