"""
Payment provider contract.

The payment coordinator only talks to this interface: open an intent for an
amount, look an intent up, and authenticate an asynchronous callback. A real
SDK-backed provider and an in-process mock both implement it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

INTENT_SUCCEEDED = "succeeded"

EVENT_PAYMENT_SUCCEEDED = "payment_intent.succeeded"
EVENT_PAYMENT_FAILED = "payment_intent.payment_failed"


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    status: str
    amount_minor: int
    currency: str
    client_secret: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == INTENT_SUCCEEDED

    @property
    def booking_id(self) -> Optional[str]:
        return self.metadata.get("bookingId")


@dataclass(frozen=True)
class ProviderEvent:
    """An authenticated callback from the provider."""

    id: str
    type: str
    intent: PaymentIntent


class PaymentProvider(ABC):
    name: str = "provider"
    signature_header: str = "x-signature"

    @abstractmethod
    async def create_intent(
        self,
        amount_minor: int,
        currency: str,
        metadata: Dict[str, str],
        description: str,
    ) -> PaymentIntent:
        ...

    @abstractmethod
    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        ...

    @abstractmethod
    def construct_event(self, payload: bytes, signature: Optional[str]) -> ProviderEvent:
        """
        Verify ``payload`` against ``signature`` and parse it.
        Raises PaymentVerificationFailedError when the payload is not authentic.
        """
