"""
Worker to schedule assignment.
Uniqueness on (schedule_id, user_id) is enforced by the database and relied
on by the assignment guard.
"""

from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin


class ScheduleWorker(Base, TimestampMixin):
    __tablename__ = "schedule_workers"

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    schedule = relationship("Schedule", lazy="raise")
    user = relationship("User", lazy="raise")

    __table_args__ = (
        UniqueConstraint("schedule_id", "user_id", name="uq_schedule_worker"),
    )

    def __repr__(self) -> str:
        return f"<ScheduleWorker(schedule={self.schedule_id}, user={self.user_id})>"
