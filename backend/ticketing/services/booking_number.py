"""
Booking number generation.

STRATEGY: random short codes, then a time-derived fallback
==========================================================

A booking number is PREFIX + fixed-length code from an alphabet without
visually ambiguous characters (no 0/O, 1/I/L), e.g. "WL-7KQ2MZ4X".

1. Draw a random code and check it against the persisted bookings.
2. On collision, draw again, up to BOOKING_NUMBER_MAX_ATTEMPTS times.
3. If every attempt collided, return PREFIX + base-N(time_ns) + 4 random
   characters. No further lookup is made: uniqueness of the fallback comes
   from the clock, not from the database.

The generator never fails. The unique index on bookings.booking_number is
still the final word; a collision there surfaces as a Conflict from the
write path.

Bulk generation loads the existing numbers once and tracks the batch in an
in-memory set so numbers inside one batch never collide with each other.
"""

import random
import time
from typing import Callable, Container, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.config import get_settings
from ticketing.core.logging import get_logger
from ticketing.core.metrics import booking_number_fallbacks
from ticketing.models.booking import Booking

logger = get_logger(__name__)

ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
FALLBACK_SUFFIX_LENGTH = 4

Clock = Callable[[], int]


def random_code(length: int, rng: random.Random) -> str:
    return "".join(rng.choice(ALPHABET) for _ in range(length))


def encode(value: int) -> str:
    """Encode a non-negative integer in ALPHABET (most significant first)."""
    if value < 0:
        raise ValueError("value must be non-negative")
    base = len(ALPHABET)
    if value == 0:
        return ALPHABET[0]
    digits = []
    while value:
        value, remainder = divmod(value, base)
        digits.append(ALPHABET[remainder])
    return "".join(reversed(digits))


def fallback_number(prefix: str, rng: random.Random, clock: Clock = time.time_ns) -> str:
    return f"{prefix}{encode(clock())}{random_code(FALLBACK_SUFFIX_LENGTH, rng)}"


def pick_booking_number(
    existing: Container[str],
    max_attempts: int,
    *,
    prefix: str,
    length: int,
    rng: random.Random,
    clock: Clock = time.time_ns,
) -> tuple[str, bool]:
    """
    Pure selection step: returns (number, used_fallback).

    `existing` is anything supporting `in`; nothing is written to it.
    """
    for _ in range(max_attempts):
        candidate = f"{prefix}{random_code(length, rng)}"
        if candidate not in existing:
            return candidate, False
    return fallback_number(prefix, rng, clock), True


class BookingNumberGenerator:
    def __init__(
        self,
        db: AsyncSession,
        rng: Optional[random.Random] = None,
        clock: Clock = time.time_ns,
    ):
        settings = get_settings()
        self.db = db
        self.rng = rng or random.SystemRandom()
        self.clock = clock
        self.prefix = settings.BOOKING_NUMBER_PREFIX
        self.length = settings.BOOKING_NUMBER_LENGTH
        self.max_attempts = settings.BOOKING_NUMBER_MAX_ATTEMPTS

    async def _exists(self, number: str) -> bool:
        result = await self.db.execute(
            select(Booking.id).where(Booking.booking_number == number).limit(1)
        )
        return result.first() is not None

    async def _existing_numbers(self) -> set[str]:
        result = await self.db.execute(
            select(Booking.booking_number).where(Booking.booking_number.startswith(self.prefix))
        )
        return set(result.scalars().all())

    def _fallback(self, attempts: int) -> str:
        number = fallback_number(self.prefix, self.rng, self.clock)
        booking_number_fallbacks.inc()
        logger.warning("booking_number_fallback", attempts=attempts, booking_number=number)
        return number

    async def generate_one(self) -> str:
        for _ in range(self.max_attempts):
            candidate = f"{self.prefix}{random_code(self.length, self.rng)}"
            if not await self._exists(candidate):
                return candidate
            logger.info("booking_number_collision", candidate=candidate)
        return self._fallback(self.max_attempts)

    async def generate_bulk(self, count: int) -> list[str]:
        if count <= 0:
            return []

        taken = await self._existing_numbers()
        numbers: list[str] = []
        for _ in range(count):
            number, used_fallback = pick_booking_number(
                taken,
                self.max_attempts,
                prefix=self.prefix,
                length=self.length,
                rng=self.rng,
                clock=self.clock,
            )
            if used_fallback:
                booking_number_fallbacks.inc()
                logger.warning("booking_number_fallback", attempts=self.max_attempts, booking_number=number)
            taken.add(number)
            numbers.append(number)

        logger.debug("booking_numbers_generated", count=count)
        return numbers
