"""
Ledger of verified payment-provider callbacks.

One row per (provider, provider event id). The unique constraint turns a
redelivered webhook into an IntegrityError, which the payment coordinator
treats as a duplicate.
"""

from sqlalchemy import Column, Integer, String, UniqueConstraint

from eventflow.db.base import Base, TimestampMixin


class PaymentWebhookEvent(Base, TimestampMixin):
    __tablename__ = "payment_webhook_events"

    id = Column(Integer, primary_key=True)
    provider = Column(String(32), nullable=False)
    provider_event_id = Column(String(255), nullable=False)
    event_type = Column(String(64), nullable=False)
    booking_id = Column(Integer, nullable=True, index=True)
    payload_hash = Column(String(64), nullable=False)
    outcome = Column(String(32), nullable=False)

    __table_args__ = (
        UniqueConstraint("provider", "provider_event_id", name="uq_webhook_provider_event"),
    )
