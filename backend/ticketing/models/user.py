"""
User model.

A user is either a durable account or a guest placeholder that only exists
to hold a pre-reserved booking until it is assigned to a real person.
Email and phone are both optional but unique when present.
"""

from sqlalchemy import Column, Integer, String, Boolean, Index
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    phone_number = Column(String(32), unique=True, nullable=True)
    is_guest_user = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    bookings = relationship(
        "Booking",
        back_populates="user",
        foreign_keys="Booking.user_id",
        lazy="raise",
    )

    __table_args__ = (
        Index("ix_users_is_guest_user", "is_guest_user"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, guest={self.is_guest_user})>"
