"""
Booking model: one user's reservation of seats in one event slot.

Key design decisions:
- The slot is referenced by (event_id, event_date, slot_time), not by slot id,
  so an admin rebuilding an event's dates does not orphan bookings
- Bookings are never deleted; cancellation is a terminal status
- Status columns are guarded by CHECK constraints mirroring the state machine enums
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from eventflow.db.base import Base, TimestampMixin
from eventflow.domain.state_machine import BookingStatus, PaymentStatus


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    event_date = Column(Date, nullable=False)
    slot_time = Column(String(32), nullable=False)
    seats_booked = Column(Integer, nullable=False)
    booking_status = Column(String(16), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = Column(String(16), nullable=False, default=PaymentStatus.PENDING.value)
    payment_id = Column(String(255), nullable=True)
    reminder_24h_sent = Column(Boolean, nullable=False, default=False)
    reminder_1h_sent = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="bookings", lazy="raise")
    event = relationship("Event", lazy="selectin")

    __table_args__ = (
        CheckConstraint("seats_booked > 0", name="check_booking_seats_positive"),
        CheckConstraint(
            "booking_status IN ('pending', 'confirmed', 'cancelled')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed')",
            name="check_payment_status",
        ),
        # Reminder sweep scans confirmed bookings
        Index("ix_bookings_status_date", "booking_status", "event_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, "
            f"status={self.booking_status}/{self.payment_status})>"
        )
