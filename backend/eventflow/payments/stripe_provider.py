"""
Stripe-backed payment provider.

The stripe SDK is synchronous, so every call runs in a worker thread. The
SDK's HTTP client gets its own timeout and a single network retry; the
coordinator additionally bounds each call with ``asyncio.wait_for``.
"""

import asyncio
from typing import Any, Dict, Optional

import stripe

from eventflow.core.exceptions import (
    PaymentVerificationFailedError,
    ProviderUnavailableError,
)
from eventflow.core.logging import get_logger
from eventflow.payments.provider import PaymentIntent, PaymentProvider, ProviderEvent

logger = get_logger(__name__)


def _to_intent(obj: Any) -> PaymentIntent:
    metadata = obj.get("metadata") or {}
    return PaymentIntent(
        id=obj["id"],
        status=obj.get("status", ""),
        amount_minor=int(obj.get("amount") or 0),
        currency=obj.get("currency", ""),
        client_secret=obj.get("client_secret"),
        metadata={str(k): str(v) for k, v in dict(metadata).items()},
    )


class StripePaymentProvider(PaymentProvider):
    name = "stripe"
    signature_header = "stripe-signature"

    def __init__(self, secret_key: Optional[str], webhook_secret: Optional[str], timeout: float):
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        if secret_key:
            stripe.default_http_client = stripe.RequestsClient(timeout=timeout)
            stripe.max_network_retries = 1
            logger.info("stripe_configured")
        else:
            logger.warning("stripe_not_configured", message="STRIPE_SECRET_KEY missing")

    def _require_key(self) -> str:
        if not self._secret_key:
            raise ProviderUnavailableError(
                "Payment service not configured. Please set STRIPE_SECRET_KEY."
            )
        return self._secret_key

    async def create_intent(
        self,
        amount_minor: int,
        currency: str,
        metadata: Dict[str, str],
        description: str,
    ) -> PaymentIntent:
        api_key = self._require_key()
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                api_key=api_key,
                amount=amount_minor,
                currency=currency,
                metadata=metadata,
                description=description,
                # Card-only, confirmed client-side without redirects
                automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
            )
        except stripe.APIConnectionError as e:
            raise ProviderUnavailableError(f"Payment provider unreachable: {e.user_message or e}") from e
        except stripe.StripeError as e:
            logger.error("stripe_create_intent_failed", error=str(e))
            raise ProviderUnavailableError(e.user_message or "Failed to create payment intent") from e
        return _to_intent(intent)

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        api_key = self._require_key()
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.retrieve, intent_id, api_key=api_key
            )
        except stripe.InvalidRequestError as e:
            raise PaymentVerificationFailedError("Unknown payment intent") from e
        except stripe.APIConnectionError as e:
            raise ProviderUnavailableError(f"Payment provider unreachable: {e.user_message or e}") from e
        except stripe.StripeError as e:
            logger.error("stripe_retrieve_intent_failed", intent_id=intent_id, error=str(e))
            raise ProviderUnavailableError(e.user_message or "Failed to verify payment") from e
        return _to_intent(intent)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> ProviderEvent:
        if not self._webhook_secret:
            raise ProviderUnavailableError("Webhook secret not configured")
        if not signature:
            raise PaymentVerificationFailedError("No signature")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise PaymentVerificationFailedError("Invalid signature") from e
        except ValueError as e:
            raise PaymentVerificationFailedError("Invalid payload") from e

        return ProviderEvent(
            id=event["id"],
            type=event["type"],
            intent=_to_intent(event["data"]["object"]),
        )
