"""
Event and Schedule models.

Key design decisions:
- `has_seats` selects the pricing mode: flat event price vs. per-zone pricing
- A Schedule is one bounded occurrence of an Event and is the unit that seat
  inventory is scoped to
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    description = Column(String(1000), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    has_seats = Column(Boolean, default=False, nullable=False)
    original_price = Column(Numeric(10, 2), nullable=True)
    discounted_price = Column(Numeric(10, 2), nullable=True)
    start_at = Column(DateTime(timezone=True), nullable=True)
    end_at = Column(DateTime(timezone=True), nullable=True)

    schedules = relationship("Schedule", back_populates="event", lazy="raise")

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, slug={self.slug}, seated={self.has_seats})>"


class Schedule(Base, TimestampMixin):
    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)

    event = relationship("Event", back_populates="schedules", lazy="raise")

    __table_args__ = (
        CheckConstraint("end_at > start_at", name="check_schedule_bounds"),
        # Overlap lookups filter on event and both bounds
        Index("ix_schedules_event_window", "event_id", "start_at", "end_at"),
    )

    def __repr__(self) -> str:
        return f"<Schedule(id={self.id}, event={self.event_id}, {self.start_at}..{self.end_at})>"
