"""
Booking and BookingSeat models.

Key design decisions:
- `booking_number` is unique and never reassigned
- Cancellation is a status change; bookings are never deleted
- A BookingSeat row *is* the seat lock. The unique (seat_id, schedule_id)
  constraint is what actually prevents double allocation; the availability
  pre-check only produces a friendlier error
- total_price is snapshotted at creation and never recomputed
"""

import enum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey, Index,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_number = Column(String(40), nullable=False, unique=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id"), nullable=True, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    used_quantity = Column(Integer, nullable=False, default=0)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    is_admin_booking = Column(Boolean, nullable=False, default=False)
    is_pre_reserved = Column(Boolean, nullable=False, default=False)
    booked_by_admin_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancel_reason = Column(String(500), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="bookings", foreign_keys=[user_id], lazy="raise")
    booked_by_admin = relationship("User", foreign_keys=[booked_by_admin_id], lazy="raise")
    event = relationship("Event", lazy="raise")
    schedule = relationship("Schedule", lazy="raise")
    seats = relationship("BookingSeat", back_populates="booking", lazy="raise")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_booking_quantity_positive"),
        CheckConstraint("used_quantity >= 0", name="check_booking_used_quantity_non_negative"),
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'COMPLETED', 'CANCELLED', 'REFUNDED')",
            name="check_booking_status",
        ),
        Index("ix_bookings_status", "status"),
        Index("ix_bookings_is_admin_booking", "is_admin_booking"),
        Index("ix_bookings_is_pre_reserved", "is_pre_reserved"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, number={self.booking_number}, status={self.status})>"


class BookingSeat(Base, TimestampMixin):
    __tablename__ = "booking_seats"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    seat_id = Column(Integer, ForeignKey("seats.id"), nullable=False)
    schedule_id = Column(Integer, ForeignKey("schedules.id"), nullable=False, index=True)

    # Snapshot of the seat's structural path at reservation time
    zone_type = Column(String(20), nullable=False)
    section_position = Column(String(10), nullable=False)
    row_number = Column(Integer, nullable=False)
    seat_number = Column(Integer, nullable=False)
    seat_label = Column(String(20), nullable=False)

    booking = relationship("Booking", back_populates="seats", lazy="raise")

    __table_args__ = (
        # The seat lock. Load-bearing, not a query convenience.
        UniqueConstraint("seat_id", "schedule_id", name="uq_booking_seat_schedule"),
    )

    def __repr__(self) -> str:
        return f"<BookingSeat(seat={self.seat_id}, schedule={self.schedule_id}, booking={self.booking_id})>"
