"""
Payment provider selection.

``PAYMENT_PROVIDER=stripe`` (default) uses the Stripe SDK,
``PAYMENT_PROVIDER=mock`` keeps everything in process for local runs.
"""

from typing import Optional

from eventflow.core.config import get_settings
from eventflow.payments.mock_provider import MockPaymentProvider
from eventflow.payments.provider import PaymentIntent, PaymentProvider, ProviderEvent
from eventflow.payments.stripe_provider import StripePaymentProvider

_provider: Optional[PaymentProvider] = None


def build_payment_provider() -> PaymentProvider:
    settings = get_settings()
    if settings.PAYMENT_PROVIDER == "mock":
        return MockPaymentProvider(settings.MOCK_PAYMENT_SECRET)
    return StripePaymentProvider(
        secret_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        timeout=settings.PAYMENT_PROVIDER_TIMEOUT_SECONDS,
    )


def get_payment_provider() -> PaymentProvider:
    """Process-wide provider (FastAPI dependency, overridden in tests)."""
    global _provider
    if _provider is None:
        _provider = build_payment_provider()
    return _provider


__all__ = [
    "PaymentIntent",
    "PaymentProvider",
    "ProviderEvent",
    "MockPaymentProvider",
    "StripePaymentProvider",
    "get_payment_provider",
]
