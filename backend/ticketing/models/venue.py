"""
Physical venue structure: Zone > Section > Row > Seat, plus zone pricing.

Seats are immutable structural identities. Anything a sold ticket needs to
describe its seat is copied onto BookingSeat at reservation time, so edits
here never change a ticket retroactively.
"""

import enum

from sqlalchemy import (
    Column, Integer, String, Numeric, ForeignKey, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin


class ZoneType(str, enum.Enum):
    VVIP = "VVIP"
    VIP = "VIP"
    REGULAR = "REGULAR"
    ECONOMY = "ECONOMY"


class SectionPosition(str, enum.Enum):
    LEFT = "LEFT"
    CENTER = "CENTER"
    RIGHT = "RIGHT"


class Zone(Base, TimestampMixin):
    __tablename__ = "zones"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False)

    sections = relationship("Section", back_populates="zone", lazy="raise")

    __table_args__ = (
        CheckConstraint("type IN ('VVIP', 'VIP', 'REGULAR', 'ECONOMY')", name="check_zone_type"),
    )


class Section(Base, TimestampMixin):
    __tablename__ = "sections"

    id = Column(Integer, primary_key=True, index=True)
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=False, index=True)
    position = Column(String(10), nullable=False)

    zone = relationship("Zone", back_populates="sections", lazy="raise")
    rows = relationship("SeatRow", back_populates="section", lazy="raise")

    __table_args__ = (
        CheckConstraint("position IN ('LEFT', 'CENTER', 'RIGHT')", name="check_section_position"),
    )


class SeatRow(Base, TimestampMixin):
    __tablename__ = "seat_rows"

    id = Column(Integer, primary_key=True, index=True)
    section_id = Column(Integer, ForeignKey("sections.id"), nullable=False, index=True)
    row_number = Column(Integer, nullable=False)

    section = relationship("Section", back_populates="rows", lazy="raise")
    seats = relationship("Seat", back_populates="row", lazy="raise")

    __table_args__ = (
        UniqueConstraint("section_id", "row_number", name="uq_section_row_number"),
    )


class Seat(Base, TimestampMixin):
    __tablename__ = "seats"

    id = Column(Integer, primary_key=True, index=True)
    row_id = Column(Integer, ForeignKey("seat_rows.id"), nullable=False, index=True)
    seat_number = Column(Integer, nullable=False)
    seat_label = Column(String(20), nullable=False, index=True)

    row = relationship("SeatRow", back_populates="seats", lazy="raise")

    __table_args__ = (
        UniqueConstraint("row_id", "seat_number", name="uq_row_seat_number"),
    )

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, label={self.seat_label})>"


class ZonePricing(Base, TimestampMixin):
    __tablename__ = "zone_pricings"

    id = Column(Integer, primary_key=True, index=True)
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id"), nullable=False, index=True)
    original_price = Column(Numeric(10, 2), nullable=False)
    discounted_price = Column(Numeric(10, 2), nullable=True)

    __table_args__ = (
        UniqueConstraint("zone_id", "event_id", "schedule_id", name="uq_zone_pricing_zone_event_schedule"),
    )
