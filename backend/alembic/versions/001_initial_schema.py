"""Initial schema: users, events, schedules, venue structure, bookings, seat locks, workers.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("is_guest_user", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("phone_number", name="uq_users_phone_number"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_is_guest_user", "users", ["is_guest_user"])
    op.create_index("ix_users_created_at", "users", ["created_at"])
    # Case-insensitive email lookups during owner resolution
    op.create_index("ix_users_email_lower", "users", [sa.text("lower(email)")])

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("has_seats", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("original_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("discounted_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("slug", name="uq_events_slug"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_created_at", "events", ["created_at"])

    op.create_table(
        "schedules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("end_at > start_at", name="check_schedule_bounds"),
    )
    op.create_index("ix_schedules_id", "schedules", ["id"])
    op.create_index("ix_schedules_event_id", "schedules", ["event_id"])
    op.create_index("ix_schedules_created_at", "schedules", ["created_at"])
    # Overlap checks: WHERE event_id = ? AND start_at < ? AND end_at > ?
    op.create_index("ix_schedules_event_window", "schedules", ["event_id", "start_at", "end_at"])

    op.create_table(
        "zones",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("type IN ('VVIP', 'VIP', 'REGULAR', 'ECONOMY')", name="check_zone_type"),
    )
    op.create_index("ix_zones_id", "zones", ["id"])
    op.create_index("ix_zones_created_at", "zones", ["created_at"])

    op.create_table(
        "sections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id"), nullable=False),
        sa.Column("position", sa.String(10), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("position IN ('LEFT', 'CENTER', 'RIGHT')", name="check_section_position"),
    )
    op.create_index("ix_sections_id", "sections", ["id"])
    op.create_index("ix_sections_zone_id", "sections", ["zone_id"])
    op.create_index("ix_sections_created_at", "sections", ["created_at"])

    op.create_table(
        "seat_rows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id"), nullable=False),
        sa.Column("row_number", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("section_id", "row_number", name="uq_section_row_number"),
    )
    op.create_index("ix_seat_rows_id", "seat_rows", ["id"])
    op.create_index("ix_seat_rows_section_id", "seat_rows", ["section_id"])
    op.create_index("ix_seat_rows_created_at", "seat_rows", ["created_at"])

    op.create_table(
        "seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("row_id", sa.Integer(), sa.ForeignKey("seat_rows.id"), nullable=False),
        sa.Column("seat_number", sa.Integer(), nullable=False),
        sa.Column("seat_label", sa.String(20), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("row_id", "seat_number", name="uq_row_seat_number"),
    )
    op.create_index("ix_seats_id", "seats", ["id"])
    op.create_index("ix_seats_row_id", "seats", ["row_id"])
    op.create_index("ix_seats_seat_label", "seats", ["seat_label"])
    op.create_index("ix_seats_created_at", "seats", ["created_at"])

    op.create_table(
        "zone_pricings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("schedule_id", sa.Integer(), sa.ForeignKey("schedules.id"), nullable=False),
        sa.Column("original_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("discounted_price", sa.Numeric(10, 2), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("zone_id", "event_id", "schedule_id", name="uq_zone_pricing_zone_event_schedule"),
    )
    op.create_index("ix_zone_pricings_id", "zone_pricings", ["id"])
    op.create_index("ix_zone_pricings_event_id", "zone_pricings", ["event_id"])
    op.create_index("ix_zone_pricings_schedule_id", "zone_pricings", ["schedule_id"])
    op.create_index("ix_zone_pricings_created_at", "zone_pricings", ["created_at"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_number", sa.String(40), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("schedule_id", sa.Integer(), sa.ForeignKey("schedules.id"), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("used_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("is_admin_booking", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_pre_reserved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("booked_by_admin_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("cancel_reason", sa.String(500), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        # Backstop for the generator's read-then-write race
        sa.UniqueConstraint("booking_number", name="uq_bookings_booking_number"),
        sa.CheckConstraint("quantity > 0", name="check_booking_quantity_positive"),
        sa.CheckConstraint("used_quantity >= 0", name="check_booking_used_quantity_non_negative"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'COMPLETED', 'CANCELLED', 'REFUNDED')",
            name="check_booking_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_event_id", "bookings", ["event_id"])
    op.create_index("ix_bookings_schedule_id", "bookings", ["schedule_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_is_admin_booking", "bookings", ["is_admin_booking"])
    op.create_index("ix_bookings_is_pre_reserved", "bookings", ["is_pre_reserved"])
    # List endpoint sorts newest first and filters by date range
    op.create_index("ix_bookings_created_at", "bookings", ["created_at"])

    op.create_table(
        "booking_seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("seat_id", sa.Integer(), sa.ForeignKey("seats.id"), nullable=False),
        sa.Column("schedule_id", sa.Integer(), sa.ForeignKey("schedules.id"), nullable=False),
        sa.Column("zone_type", sa.String(20), nullable=False),
        sa.Column("section_position", sa.String(10), nullable=False),
        sa.Column("row_number", sa.Integer(), nullable=False),
        sa.Column("seat_number", sa.Integer(), nullable=False),
        sa.Column("seat_label", sa.String(20), nullable=False),
        *_timestamps(),
        # THE SEAT LOCK. Two bookings can never hold the same seat for the
        # same schedule; the loser's transaction fails and rolls back whole.
        sa.UniqueConstraint("seat_id", "schedule_id", name="uq_booking_seat_schedule"),
    )
    op.create_index("ix_booking_seats_id", "booking_seats", ["id"])
    op.create_index("ix_booking_seats_booking_id", "booking_seats", ["booking_id"])
    op.create_index("ix_booking_seats_user_id", "booking_seats", ["user_id"])
    op.create_index("ix_booking_seats_schedule_id", "booking_seats", ["schedule_id"])
    op.create_index("ix_booking_seats_created_at", "booking_seats", ["created_at"])

    op.create_table(
        "schedule_workers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("schedule_id", sa.Integer(), sa.ForeignKey("schedules.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("schedule_id", "user_id", name="uq_schedule_worker"),
    )
    op.create_index("ix_schedule_workers_id", "schedule_workers", ["id"])
    op.create_index("ix_schedule_workers_schedule_id", "schedule_workers", ["schedule_id"])
    op.create_index("ix_schedule_workers_user_id", "schedule_workers", ["user_id"])
    op.create_index("ix_schedule_workers_created_at", "schedule_workers", ["created_at"])


def downgrade() -> None:
    op.drop_table("schedule_workers")
    op.drop_table("booking_seats")
    op.drop_table("bookings")
    op.drop_table("zone_pricings")
    op.drop_table("seats")
    op.drop_table("seat_rows")
    op.drop_table("sections")
    op.drop_table("zones")
    op.drop_table("schedules")
    op.drop_table("events")
    op.drop_table("users")
