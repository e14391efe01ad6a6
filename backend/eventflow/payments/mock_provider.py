"""
In-process payment provider for local development and the test-suite.

Intents live in memory. Callbacks are JSON documents signed with
HMAC-SHA256 (base64) over the raw body using a shared secret, so webhook
authentication is exercised exactly as with a real provider.
"""

import asyncio
import base64
import hashlib
import hmac
import json
import uuid
from dataclasses import replace
from typing import Dict, Optional, Tuple

from eventflow.core.exceptions import PaymentVerificationFailedError
from eventflow.payments.provider import (
    EVENT_PAYMENT_FAILED,
    EVENT_PAYMENT_SUCCEEDED,
    INTENT_SUCCEEDED,
    PaymentIntent,
    PaymentProvider,
    ProviderEvent,
)


class MockPaymentProvider(PaymentProvider):
    name = "mock"
    signature_header = "x-mockpay-signature"

    def __init__(self, secret: str, latency: float = 0.0):
        self._secret = secret.encode()
        self.latency = latency
        self.intents: Dict[str, PaymentIntent] = {}

    async def _simulate_network(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    async def create_intent(
        self,
        amount_minor: int,
        currency: str,
        metadata: Dict[str, str],
        description: str,
    ) -> PaymentIntent:
        await self._simulate_network()
        intent_id = f"pi_mock_{uuid.uuid4().hex[:16]}"
        intent = PaymentIntent(
            id=intent_id,
            status="requires_payment_method",
            amount_minor=amount_minor,
            currency=currency,
            client_secret=f"{intent_id}_secret_{uuid.uuid4().hex[:8]}",
            metadata=dict(metadata),
        )
        self.intents[intent_id] = intent
        return intent

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        await self._simulate_network()
        intent = self.intents.get(intent_id)
        if intent is None:
            raise PaymentVerificationFailedError("Unknown payment intent")
        return intent

    def set_status(self, intent_id: str, status: str) -> PaymentIntent:
        """Move an intent to ``status`` as if the customer had acted on it."""
        intent = replace(self.intents[intent_id], status=status)
        self.intents[intent_id] = intent
        return intent

    def sign(self, payload: bytes) -> str:
        mac = hmac.new(self._secret, payload, hashlib.sha256).digest()
        return base64.b64encode(mac).decode()

    def build_webhook(self, event_type: str, intent_id: str, event_id: Optional[str] = None) -> Tuple[bytes, str]:
        """Return ``(payload, signature)`` for a callback about ``intent_id``."""
        intent = self.intents[intent_id]
        body = {
            "id": event_id or f"evt_mock_{uuid.uuid4().hex[:16]}",
            "type": event_type,
            "data": {
                "object": {
                    "id": intent.id,
                    "status": intent.status,
                    "amount": intent.amount_minor,
                    "currency": intent.currency,
                    "metadata": intent.metadata,
                }
            },
        }
        payload = json.dumps(body, sort_keys=True).encode("utf-8")
        return payload, self.sign(payload)

    def complete(self, intent_id: str, succeeded: bool = True) -> Tuple[bytes, str]:
        """Settle an intent and produce the matching signed callback."""
        if succeeded:
            self.set_status(intent_id, INTENT_SUCCEEDED)
            return self.build_webhook(EVENT_PAYMENT_SUCCEEDED, intent_id)
        self.set_status(intent_id, "requires_payment_method")
        return self.build_webhook(EVENT_PAYMENT_FAILED, intent_id)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> ProviderEvent:
        expected = self.sign(payload)
        if not signature or not hmac.compare_digest(expected, signature):
            raise PaymentVerificationFailedError("Invalid signature")
        try:
            body = json.loads(payload.decode("utf-8"))
            obj = body["data"]["object"]
            intent = PaymentIntent(
                id=obj["id"],
                status=obj.get("status", ""),
                amount_minor=int(obj.get("amount") or 0),
                currency=obj.get("currency", ""),
                metadata={str(k): str(v) for k, v in (obj.get("metadata") or {}).items()},
            )
            return ProviderEvent(id=body["id"], type=body["type"], intent=intent)
        except (ValueError, KeyError, TypeError) as e:
            raise PaymentVerificationFailedError("Invalid payload") from e
