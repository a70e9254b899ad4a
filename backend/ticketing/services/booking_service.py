"""
Booking lifecycle: checkout, lookup, status transitions and usage.

CONCURRENCY STRATEGY: unique seat locks + conditional status updates
====================================================================

Problem:
  Two checkouts select the same seat for the same schedule. Both run the
  availability check, both see the seat free, both insert.
  Result: one seat sold twice.

Solution:
  A BookingSeat row is the lock. booking_seats is unique on
  (seat_id, schedule_id), and the Booking plus all of its BookingSeat rows
  are written in one transaction.

  1. Advisory check: SELECT existing locks for the requested seats.
     Gives a readable Conflict naming the taken seats. Not authoritative.
  2. INSERT booking + booking_seats, COMMIT.
  3. If the commit trips the unique index the whole unit rolls back (no
     partial booking), the locks are re-read to name the seats, and the
     caller gets the same Conflict as in step 1.

  Status changes use the version-check idiom with `status` as the version:

     UPDATE bookings SET status = :new WHERE id = :id AND status = :current

  rowcount == 0 means someone else moved the booking first -> Conflict.
  Cancellation releases the seat locks (DELETE booking_seats) in the same
  transaction as the status change.

Status machine:
  PENDING   -> CONFIRMED, CANCELLED
  CONFIRMED -> COMPLETED, CANCELLED, REFUNDED
  COMPLETED -> REFUNDED
  CANCELLED, REFUNDED are terminal
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence, Union

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ticketing.core.config import get_settings
from ticketing.core.exceptions import (
    BadRequestError, ConflictError, InvalidTransitionError, NotFoundError,
)
from ticketing.core.logging import get_logger
from ticketing.core.metrics import (
    booking_latency, record_booking_attempt, record_seat_conflict, record_transition,
)
from ticketing.db.base import utcnow
from ticketing.models.booking import Booking, BookingSeat, BookingStatus
from ticketing.models.event import Event, Schedule
from ticketing.models.user import User
from ticketing.services.assignment_guard import UniqueViolation, atomic
from ticketing.services.booking_number import BookingNumberGenerator
from ticketing.services.cache_service import invalidate_schedule_seats
from ticketing.services.pricing import PriceResolver, line_total
from ticketing.services.schedule_service import ScheduleService
from ticketing.services.seat_inventory import (
    SeatDetail, SeatInventoryChecker, duplicate_seat_ids, missing_seat_ids,
)
from ticketing.services.user_store import UserStore

logger = get_logger(__name__)

VALID_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REFUNDED,
    }),
    BookingStatus.COMPLETED: frozenset({BookingStatus.REFUNDED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.REFUNDED: frozenset(),
}

TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.REFUNDED})

SEATS_TAKEN_MESSAGE = "The following seats are already reserved for this schedule: {}"


def can_transition(current: BookingStatus, requested: BookingStatus) -> bool:
    return requested in VALID_TRANSITIONS[current]


def ensure_transition(current: BookingStatus, requested: BookingStatus) -> None:
    if not can_transition(current, requested):
        raise InvalidTransitionError(current.value, requested.value)


LIKE_ESCAPE = "\\"


def contains_pattern(text: str) -> str:
    """Substring LIKE pattern with the user's own wildcards taken literally."""
    escaped = (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


@dataclass
class BookingFilters:
    status: Optional[BookingStatus] = None
    event_id: Optional[int] = None
    schedule_id: Optional[int] = None
    user_id: Optional[int] = None
    is_admin_booking: Optional[bool] = None
    is_pre_reserved: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None


@dataclass
class SeatedPlan:
    event: Event
    schedule: Schedule
    seats: list[SeatDetail]
    unit_price: Decimal


@dataclass
class CheckoutResult:
    booking: Booking
    is_new_user: bool
    seats_booked: list[str] = field(default_factory=list)


class BookingService:
    def __init__(
        self,
        db: AsyncSession,
        numbers: Optional[BookingNumberGenerator] = None,
        inventory: Optional[SeatInventoryChecker] = None,
        pricing: Optional[PriceResolver] = None,
        users: Optional[UserStore] = None,
        schedules: Optional[ScheduleService] = None,
    ):
        self.db = db
        self.numbers = numbers or BookingNumberGenerator(db)
        self.inventory = inventory or SeatInventoryChecker(db)
        self.pricing = pricing or PriceResolver(db)
        self.users = users or UserStore(db)
        self.schedules = schedules or ScheduleService(db)
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def find_event(self, event_ref: Union[int, str]) -> Optional[Event]:
        """Event by numeric id or by slug."""
        if isinstance(event_ref, int) or str(event_ref).isdigit():
            query = select(Event).where(Event.id == int(event_ref))
        else:
            query = select(Event).where(Event.slug == event_ref)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_bookable_event(self, event_id: int) -> Event:
        event = await self.find_event(event_id)
        if event is None:
            raise NotFoundError("Event not found")
        if not event.active:
            raise BadRequestError("Event is not active")
        return event

    async def find_booking(self, booking_id: int) -> Optional[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_plain_booking(self, booking_id: int) -> Booking:
        booking = await self.find_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    async def get_booking(self, booking_id: int) -> Booking:
        """Booking with user, admin, event, schedule and seat snapshots loaded."""
        result = await self.db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .options(*self._detail_options())
            .execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    @staticmethod
    def _detail_options():
        return (
            selectinload(Booking.user),
            selectinload(Booking.booked_by_admin),
            selectinload(Booking.event),
            selectinload(Booking.schedule),
            selectinload(Booking.seats),
        )

    async def list_bookings(
        self,
        filters: BookingFilters,
        page: int = 1,
        page_size: int = 10,
    ) -> tuple[list[Booking], int]:
        """Filtered, newest-first page of bookings plus the total match count."""
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise BadRequestError("startDate must not be after endDate")

        query = select(Booking)
        if filters.status is not None:
            query = query.where(Booking.status == BookingStatus(filters.status).value)
        if filters.event_id is not None:
            query = query.where(Booking.event_id == filters.event_id)
        if filters.schedule_id is not None:
            query = query.where(Booking.schedule_id == filters.schedule_id)
        if filters.user_id is not None:
            query = query.where(Booking.user_id == filters.user_id)
        if filters.is_admin_booking is not None:
            query = query.where(Booking.is_admin_booking.is_(filters.is_admin_booking))
        if filters.is_pre_reserved is not None:
            query = query.where(Booking.is_pre_reserved.is_(filters.is_pre_reserved))
        if filters.start_date is not None:
            query = query.where(Booking.created_at >= filters.start_date)
        if filters.end_date is not None:
            query = query.where(Booking.created_at <= filters.end_date)
        if filters.search:
            term = contains_pattern(filters.search.strip().lower())
            owner_match = (
                select(User.id)
                .where(
                    User.id == Booking.user_id,
                    or_(
                        func.lower(User.name).like(term, escape=LIKE_ESCAPE),
                        func.lower(User.email).like(term, escape=LIKE_ESCAPE),
                        User.phone_number.like(term, escape=LIKE_ESCAPE),
                    ),
                )
                .correlate(Booking)
                .exists()
            )
            query = query.where(
                or_(func.lower(Booking.booking_number).like(term, escape=LIKE_ESCAPE), owner_match)
            )

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar_one()

        result = await self.db.execute(
            query.options(*self._detail_options())
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), total

    # ------------------------------------------------------------------
    # Building blocks shared with pre-reservation
    # ------------------------------------------------------------------

    async def plan_seated_reservation(
        self,
        event: Event,
        schedule_id: int,
        seat_ids: Sequence[int],
        override_price: Optional[Decimal] = None,
    ) -> SeatedPlan:
        """
        Validate a seat selection without writing anything.

        Raises BadRequest (duplicates, foreign schedule, missing pricing),
        NotFound (schedule, seats) or Conflict (seats already taken).
        """
        if not seat_ids:
            raise BadRequestError("At least one seat must be selected")
        duplicates = duplicate_seat_ids(seat_ids)
        if duplicates:
            raise BadRequestError(f"Duplicate seats in request: {', '.join(map(str, duplicates))}")

        schedule = await self.schedules.get_schedule(schedule_id)
        if schedule.event_id != event.id:
            raise BadRequestError("Schedule does not belong to this event")

        availability = await self.inventory.check_availability(seat_ids, schedule_id)
        if not availability.available:
            record_seat_conflict("advisory")
            logger.info(
                "seats_unavailable",
                schedule_id=schedule_id,
                seat_ids=availability.conflicting_seat_ids,
            )
            raise ConflictError(SEATS_TAKEN_MESSAGE.format(", ".join(availability.conflicting_seat_labels)))

        seats = await self.inventory.get_seat_details(seat_ids)
        missing = missing_seat_ids(seat_ids, seats)
        if missing:
            raise NotFoundError(f"Seats not found: {', '.join(map(str, missing))}")

        unit_price = await self.pricing.resolve_seat_batch_price(seats, event.id, schedule_id, override_price)
        return SeatedPlan(event=event, schedule=schedule, seats=seats, unit_price=unit_price)

    def build_booking(
        self,
        *,
        booking_number: str,
        user_id: int,
        event_id: int,
        quantity: int,
        unit_price: Decimal,
        schedule_id: Optional[int] = None,
        actor_id: Optional[int] = None,
        is_pre_reserved: bool = False,
    ) -> Booking:
        """
        Admin bookings (actor given) start CONFIRMED, customer bookings
        start PENDING until payment completes.
        """
        is_admin = actor_id is not None
        return Booking(
            booking_number=booking_number,
            user_id=user_id,
            event_id=event_id,
            schedule_id=schedule_id,
            quantity=quantity,
            used_quantity=0,
            unit_price=unit_price,
            total_price=line_total(unit_price, quantity),
            currency=self.settings.DEFAULT_CURRENCY,
            status=(BookingStatus.CONFIRMED if is_admin else BookingStatus.PENDING).value,
            is_admin_booking=is_admin,
            is_pre_reserved=is_pre_reserved,
            booked_by_admin_id=actor_id,
        )

    @staticmethod
    def attach_seats(booking: Booking, seats: Sequence[SeatDetail], schedule_id: int) -> None:
        """Seat locks with a snapshot of each seat's position. Written with the booking."""
        booking.seats = [
            BookingSeat(
                user_id=booking.user_id,
                seat_id=seat.seat_id,
                schedule_id=schedule_id,
                zone_type=seat.zone_type,
                section_position=seat.section_position,
                row_number=seat.row_number,
                seat_number=seat.seat_number,
                seat_label=seat.seat_label,
            )
            for seat in seats
        ]

    async def seat_conflict_from_violation(
        self,
        seat_ids: Sequence[int],
        schedule_id: int,
        fallback: str = "Booking could not be completed because of a concurrent update. Please retry.",
    ) -> ConflictError:
        """Re-read the locks after a rolled back write so the error can name the seats."""
        availability = await self.inventory.check_availability(seat_ids, schedule_id)
        await invalidate_schedule_seats(schedule_id)
        if availability.available:
            return ConflictError(fallback)
        record_seat_conflict("constraint")
        logger.warning(
            "seat_lock_conflict",
            schedule_id=schedule_id,
            seat_ids=availability.conflicting_seat_ids,
        )
        return ConflictError(SEATS_TAKEN_MESSAGE.format(", ".join(availability.conflicting_seat_labels)))

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def checkout(self, request, actor_id: Optional[int] = None) -> CheckoutResult:
        """Dispatch on the request shape: seat selection or plain quantity."""
        if getattr(request, "seats", None) is not None:
            return await self.create_seated(
                event_id=request.event_id,
                schedule_id=request.schedule_id,
                seat_ids=[seat.seat_id for seat in request.seats],
                owner_info=request.owner_info,
                override_price=request.unit_price,
                actor_id=actor_id,
            )
        return await self.create_non_seated(
            event_id=request.event_id,
            quantity=request.quantity,
            owner_info=request.owner_info,
            override_price=request.unit_price,
            actor_id=actor_id,
        )

    async def create_non_seated(
        self,
        event_id: int,
        quantity: int,
        owner_info,
        override_price: Optional[Decimal] = None,
        actor_id: Optional[int] = None,
    ) -> CheckoutResult:
        if quantity < 1 or quantity > self.settings.MAX_CHECKOUT_QUANTITY:
            raise BadRequestError(f"Quantity must be between 1 and {self.settings.MAX_CHECKOUT_QUANTITY}")

        event = await self.get_bookable_event(event_id)
        if event.has_seats:
            record_booking_attempt("non_seated", "rejected")
            raise BadRequestError("This event has seating; select seats and a schedule to book it")

        unit_price = PriceResolver.resolve_flat_price(event, override_price)
        booking_number = await self.numbers.generate_one()

        with booking_latency.labels(kind="non_seated").time():
            try:
                async with atomic(self.db):
                    owner, is_new_user = await self.users.get_or_create(
                        owner_info.name,
                        owner_info.email,
                        owner_info.phone_number,
                        is_guest_user=True,
                    )
                    booking = self.build_booking(
                        booking_number=booking_number,
                        user_id=owner.id,
                        event_id=event.id,
                        quantity=quantity,
                        unit_price=unit_price,
                        actor_id=actor_id,
                    )
                    self.db.add(booking)
            except UniqueViolation as exc:
                record_booking_attempt("non_seated", "conflict")
                logger.warning("booking_write_conflict", event_id=event.id, constraint=exc.constraint)
                raise ConflictError(
                    "Booking could not be completed because of a concurrent update. Please retry."
                ) from exc

        record_booking_attempt("non_seated", "success")
        logger.info(
            "booking_created",
            booking_id=booking.id,
            booking_number=booking.booking_number,
            event_id=event.id,
            quantity=quantity,
            total=str(booking.total_price),
            new_user=is_new_user,
        )
        return CheckoutResult(booking=await self.get_booking(booking.id), is_new_user=is_new_user)

    async def create_seated(
        self,
        event_id: int,
        schedule_id: int,
        seat_ids: Sequence[int],
        owner_info,
        override_price: Optional[Decimal] = None,
        actor_id: Optional[int] = None,
    ) -> CheckoutResult:
        if len(seat_ids) > self.settings.MAX_SEATS_PER_REQUEST:
            raise BadRequestError(f"At most {self.settings.MAX_SEATS_PER_REQUEST} seats per request")

        event = await self.get_bookable_event(event_id)
        if not event.has_seats:
            record_booking_attempt("seated", "rejected")
            raise BadRequestError("This event has no seating; book it by quantity")

        try:
            plan = await self.plan_seated_reservation(event, schedule_id, seat_ids, override_price)
        except ConflictError:
            record_booking_attempt("seated", "conflict")
            raise

        booking_number = await self.numbers.generate_one()

        with booking_latency.labels(kind="seated").time():
            try:
                async with atomic(self.db):
                    owner, is_new_user = await self.users.get_or_create(
                        owner_info.name,
                        owner_info.email,
                        owner_info.phone_number,
                        is_guest_user=True,
                    )
                    booking = self.build_booking(
                        booking_number=booking_number,
                        user_id=owner.id,
                        event_id=event.id,
                        schedule_id=schedule_id,
                        quantity=len(plan.seats),
                        unit_price=plan.unit_price,
                        actor_id=actor_id,
                    )
                    self.attach_seats(booking, plan.seats, schedule_id)
                    self.db.add(booking)
            except UniqueViolation as exc:
                record_booking_attempt("seated", "conflict")
                raise await self.seat_conflict_from_violation(seat_ids, schedule_id) from exc

        await invalidate_schedule_seats(schedule_id)
        record_booking_attempt("seated", "success")
        seat_labels = [seat.seat_label for seat in plan.seats]
        logger.info(
            "booking_created",
            booking_id=booking.id,
            booking_number=booking.booking_number,
            event_id=event.id,
            schedule_id=schedule_id,
            seats=seat_labels,
            total=str(booking.total_price),
            new_user=is_new_user,
        )
        return CheckoutResult(
            booking=await self.get_booking(booking.id),
            is_new_user=is_new_user,
            seats_booked=seat_labels,
        )

    # ------------------------------------------------------------------
    # Status and usage
    # ------------------------------------------------------------------

    async def update_status(
        self,
        booking_id: int,
        new_status: BookingStatus,
        reason: Optional[str] = None,
    ) -> Booking:
        booking = await self.get_plain_booking(booking_id)
        current = BookingStatus(booking.status)
        new_status = BookingStatus(new_status)
        ensure_transition(current, new_status)

        now = utcnow()
        values = {"status": new_status.value, "updated_at": now}
        if new_status == BookingStatus.CANCELLED:
            values["cancelled_at"] = now
            values["cancel_reason"] = reason or "Cancelled by admin"

        async with atomic(self.db):
            result = await self.db.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status == current.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                logger.info("booking_status_race", booking_id=booking_id, expected=current.value)
                raise ConflictError("Booking status was changed by another request. Please retry.")

            released = 0
            if new_status == BookingStatus.CANCELLED:
                seats = await self.db.execute(
                    delete(BookingSeat)
                    .where(BookingSeat.booking_id == booking_id)
                    .execution_options(synchronize_session=False)
                )
                released = seats.rowcount or 0

        if new_status == BookingStatus.CANCELLED:
            await invalidate_schedule_seats(booking.schedule_id)

        record_transition(current.value, new_status.value)
        logger.info(
            "booking_status_changed",
            booking_id=booking_id,
            from_status=current.value,
            to_status=new_status.value,
            seats_released=released,
        )
        return await self.get_booking(booking_id)

    async def cancel(self, booking_id: int, reason: Optional[str] = None) -> Booking:
        return await self.update_status(booking_id, BookingStatus.CANCELLED, reason)

    async def update_used_quantity(
        self,
        booking_id: int,
        used_quantity: int,
        status_override: Optional[BookingStatus] = None,
    ) -> Booking:
        """
        Record admission usage. An optional status override still has to be a
        legal transition; cancellation must go through cancel() so seat locks
        are released.
        """
        booking = await self.get_plain_booking(booking_id)
        current = BookingStatus(booking.status)

        if current in TERMINAL_STATUSES:
            raise BadRequestError(f"Cannot update usage of a {current.value} booking")
        if used_quantity < 0 or used_quantity > booking.quantity:
            raise BadRequestError(f"Used quantity must be between 0 and {booking.quantity}")

        values = {"used_quantity": used_quantity, "updated_at": utcnow()}
        target = current
        if status_override is not None:
            target = BookingStatus(status_override)
            if target == BookingStatus.CANCELLED:
                raise BadRequestError("Use the cancel operation to cancel a booking")
            if target != current:
                ensure_transition(current, target)
                values["status"] = target.value

        async with atomic(self.db):
            result = await self.db.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status == current.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError("Booking status was changed by another request. Please retry.")

        if target != current:
            record_transition(current.value, target.value)
        logger.info(
            "booking_usage_updated",
            booking_id=booking_id,
            used_quantity=used_quantity,
            status=target.value,
        )
        return await self.get_booking(booking_id)
