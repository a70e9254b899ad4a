"""
Create-or-detect-conflict on top of a unique constraint.

CONCURRENCY STRATEGY: insert first, never check-then-insert
===========================================================

Problem:
  "SELECT ... does it exist? no -> INSERT" lets two concurrent requests both
  see "no" and both insert.

Solution:
  Attempt the INSERT directly and let the database's unique constraint pick
  the winner. The loser's flush/commit fails with a uniqueness violation,
  its transaction is rolled back, and the caller is told the row already
  exists.

  Seat locking (booking_seats, unique on seat+schedule) and worker
  assignment (schedule_workers, unique on schedule+user) both run their
  writes inside atomic(), so both fail the same way: UniqueViolation after a
  full rollback. Any other database error propagates unchanged.

  No isolation level beyond READ COMMITTED is assumed.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Generic, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.logging import get_logger
from ticketing.db.errors import is_unique_constraint_violation, violated_constraint

logger = get_logger(__name__)

T = TypeVar("T")


class UniqueViolation(Exception):
    """A unit of work was rejected by a unique constraint and rolled back."""

    def __init__(self, constraint: Optional[str] = None):
        super().__init__(constraint or "unique constraint violated")
        self.constraint = constraint


@dataclass(frozen=True)
class GuardResult(Generic[T]):
    created: bool
    value: T


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    One all-or-nothing unit of work: commit on normal exit, roll back on any
    exception. Unique violations (at flush or commit) become UniqueViolation.
    """
    try:
        yield db
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        if not is_unique_constraint_violation(exc):
            raise
        constraint = violated_constraint(exc)
        logger.info("unique_constraint_conflict", constraint=constraint)
        raise UniqueViolation(constraint) from exc
    except BaseException:
        await db.rollback()
        raise


async def insert_or_fetch_existing(
    db: AsyncSession,
    instance: T,
    fetch_existing: Callable[[], Awaitable[Optional[T]]],
) -> GuardResult[T]:
    try:
        async with atomic(db):
            db.add(instance)
    except UniqueViolation:
        existing = await fetch_existing()
        if existing is None:
            # the conflicting row was deleted between our insert and this read
            raise
        return GuardResult(created=False, value=existing)
    return GuardResult(created=True, value=instance)
