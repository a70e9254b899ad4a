"""
User lookups and guest cleanup.

Creation only flushes; callers commit as part of their own unit of work so a
user is never left behind by a booking that failed to commit.
"""

from typing import Optional

from sqlalchemy import delete, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.logging import get_logger
from ticketing.core.metrics import guest_users_deleted
from ticketing.models.booking import Booking
from ticketing.models.user import User

logger = get_logger(__name__)


def guest_name_for(booking_number: str) -> str:
    return f"Guest {booking_number}"


class UserStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        return result.scalars().first()

    async def find_by_phone(self, phone_number: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.phone_number == phone_number.strip())
        )
        return result.scalar_one_or_none()

    async def find_by_contact(
        self,
        email: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> Optional[User]:
        """Email match (case-insensitive) wins over phone match."""
        if email:
            user = await self.find_by_email(email)
            if user is not None:
                return user
        if phone_number:
            return await self.find_by_phone(phone_number)
        return None

    async def create_user(
        self,
        name: str,
        email: Optional[str] = None,
        phone_number: Optional[str] = None,
        is_guest_user: bool = False,
    ) -> User:
        user = User(
            name=name,
            email=email.strip().lower() if email else None,
            phone_number=phone_number.strip() if phone_number else None,
            is_guest_user=is_guest_user,
        )
        self.db.add(user)
        await self.db.flush()
        return user

    async def create_guest(self, booking_number: str) -> User:
        return await self.create_user(name=guest_name_for(booking_number), is_guest_user=True)

    async def get_or_create(
        self,
        name: Optional[str],
        email: Optional[str] = None,
        phone_number: Optional[str] = None,
        is_guest_user: bool = False,
    ) -> tuple[User, bool]:
        """
        Returns (user, is_new_user).

        Asking for a real user promotes a matching guest in place; a guest
        request never demotes a real user.
        """
        existing = await self.find_by_contact(email, phone_number)
        if existing is not None:
            if existing.is_guest_user and not is_guest_user:
                existing.is_guest_user = False
                await self.db.flush()
                logger.info("guest_user_promoted", user_id=existing.id)
            return existing, False

        user = await self.create_user(
            name=name or email or phone_number,
            email=email,
            phone_number=phone_number,
            is_guest_user=is_guest_user,
        )
        logger.info("user_created", user_id=user.id, guest=is_guest_user)
        return user, True

    async def delete_guest_if_unreferenced(self, user_id: int) -> bool:
        """
        Delete a guest user that owns no bookings.

        The guest flag and the zero-bookings predicate are part of the DELETE
        itself, so a booking attached concurrently keeps the user alive.
        Commits.
        """
        result = await self.db.execute(
            delete(User)
            .where(
                User.id == user_id,
                User.is_guest_user.is_(True),
                ~exists().where(Booking.user_id == user_id),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        deleted = result.rowcount == 1
        if deleted:
            guest_users_deleted.inc()
            logger.info("guest_user_deleted", user_id=user_id)
        return deleted

    async def delete_orphan_guests(self) -> int:
        """Garbage-collect every guest user without bookings. Commits."""
        result = await self.db.execute(
            delete(User)
            .where(
                User.is_guest_user.is_(True),
                ~select(Booking.id).where(Booking.user_id == User.id).correlate(User).exists(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        deleted = result.rowcount or 0
        if deleted:
            guest_users_deleted.inc(deleted)
        logger.info("orphan_guests_purged", deleted=deleted)
        return deleted
