"""
Event catalogue with its seat inventory.

An event offers one or more calendar dates; each date offers time slots, and
each slot carries its own remaining-seat counter. ``available_seats`` is only
ever changed by the booking engine through guarded UPDATE statements.

Key design decisions:
- Inventory lives on ``event_slots`` rows so that concurrent bookings on
  different slots never touch the same row
- CHECK constraints are the final safety net against overselling
- Events are soft-deleted (``deleted_at``) so bookings keep a valid reference
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from eventflow.db.base import Base, TimestampMixin

EVENT_CATEGORIES = ("Concert", "Conference", "Workshop", "Sports", "Stand-Up", "Other")


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(32), nullable=False)
    location = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    dates = relationship(
        "EventDate",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="EventDate.date",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_event_price_non_negative"),
        Index("ix_events_category_location", "category", "location"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, dates={len(self.dates)})>"


class EventDate(Base):
    __tablename__ = "event_dates"

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    # Only the UTC calendar day is significant
    date = Column(DateTime(timezone=True), nullable=False)

    event = relationship("Event", back_populates="dates")
    slots = relationship(
        "EventSlot",
        back_populates="event_date",
        cascade="all, delete-orphan",
        order_by="EventSlot.id",
        lazy="selectin",
    )


class EventSlot(Base):
    __tablename__ = "event_slots"

    id = Column(Integer, primary_key=True)
    event_date_id = Column(
        Integer, ForeignKey("event_dates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    time = Column(String(32), nullable=False)
    capacity = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)

    event_date = relationship("EventDate", back_populates="slots")

    __table_args__ = (
        UniqueConstraint("event_date_id", "time", name="uq_event_slot_time"),
        CheckConstraint("available_seats >= 0", name="check_slot_available_non_negative"),
        CheckConstraint("capacity >= 0", name="check_slot_capacity_non_negative"),
        CheckConstraint("available_seats <= capacity", name="check_slot_available_lte_capacity"),
    )

    def __repr__(self) -> str:
        return f"<EventSlot(id={self.id}, time={self.time}, available={self.available_seats}/{self.capacity})>"
