"""Initial schema: users, events with dated slots, bookings, webhook ledger.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False, server_default=sa.text("'user'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('user', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("price >= 0", name="check_event_price_non_negative"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    # Listing filters
    op.create_index("ix_events_category_location", "events", ["category", "location"])

    op.create_table(
        "event_dates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_event_dates_event_id", "event_dates", ["event_id"])

    # One row per slot: concurrent bookings of different slots never lock the same row
    op.create_table(
        "event_slots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "event_date_id",
            sa.Integer(),
            sa.ForeignKey("event_dates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("time", sa.String(32), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("available_seats", sa.Integer(), nullable=False),
        sa.UniqueConstraint("event_date_id", "time", name="uq_event_slot_time"),
        sa.CheckConstraint("available_seats >= 0", name="check_slot_available_non_negative"),
        sa.CheckConstraint("capacity >= 0", name="check_slot_capacity_non_negative"),
        sa.CheckConstraint("available_seats <= capacity", name="check_slot_available_lte_capacity"),
    )
    op.create_index("ix_event_slots_event_date_id", "event_slots", ["event_date_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("slot_time", sa.String(32), nullable=False),
        sa.Column("seats_booked", sa.Integer(), nullable=False),
        sa.Column("booking_status", sa.String(16), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_id", sa.String(255), nullable=True),
        sa.Column("reminder_24h_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("reminder_1h_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.CheckConstraint("seats_booked > 0", name="check_booking_seats_positive"),
        sa.CheckConstraint(
            "booking_status IN ('pending', 'confirmed', 'cancelled')", name="check_booking_status"
        ),
        sa.CheckConstraint("payment_status IN ('pending', 'paid', 'failed')", name="check_payment_status"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_event_id", "bookings", ["event_id"])
    # Reminder sweep: confirmed bookings in a date window
    op.create_index("ix_bookings_status_date", "bookings", ["booking_status", "event_date"])

    op.create_table(
        "payment_webhook_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("provider_event_id", sa.String(255), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("booking_id", sa.Integer(), nullable=True),
        sa.Column("payload_hash", sa.String(64), nullable=False),
        sa.Column("outcome", sa.String(32), nullable=False),
        *_timestamps(),
        # Redelivered webhooks hit this constraint and are treated as duplicates
        sa.UniqueConstraint("provider", "provider_event_id", name="uq_webhook_provider_event"),
    )
    op.create_index("ix_payment_webhook_events_booking_id", "payment_webhook_events", ["booking_id"])


def downgrade() -> None:
    op.drop_table("payment_webhook_events")
    op.drop_table("bookings")
    op.drop_table("event_slots")
    op.drop_table("event_dates")
    op.drop_table("events")
    op.drop_table("users")
