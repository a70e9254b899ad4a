"""
Pre-reservation and guest identity lifecycle.

Pre-reservation holds inventory before the final owner is known: every unit
gets its own booking owned by a throwaway guest user ("Guest WL-XXXXXXXX").
Assignment later hands the booking to a real user and garbage-collects the
guest once nothing references it.

Transaction boundaries:
  - non-seated pre-reserve: all N guests + bookings in ONE transaction
  - seated pre-reserve: the whole seat set is validated first, then one
    transaction per seat (each seat is a disjoint lock)
  - assignment: owner swap on booking + booking_seats in one transaction,
    guest cleanup afterwards as its own guarded DELETE, best effort
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

from fastapi import HTTPException
from sqlalchemy import inspect, update

from ticketing.core.config import get_settings
from ticketing.core.exceptions import BadRequestError, ConflictError
from ticketing.core.logging import get_logger
from ticketing.core.metrics import (
    booking_latency, record_assignment, record_booking_attempt, record_seat_conflict,
)
from ticketing.db.base import utcnow
from ticketing.models.booking import Booking, BookingSeat, BookingStatus
from ticketing.models.user import User
from ticketing.services.assignment_guard import UniqueViolation, atomic
from ticketing.services.booking_service import TERMINAL_STATUSES, BookingService
from ticketing.services.cache_service import invalidate_schedule_seats
from ticketing.services.pricing import PriceResolver

logger = get_logger(__name__)


@dataclass
class PreReservedItem:
    booking: Booking
    guest: User
    seat_label: Optional[str] = None


@dataclass
class PreReserveResult:
    event_id: int
    schedule_id: Optional[int]
    unit_price: Decimal
    items: list[PreReservedItem] = field(default_factory=list)


@dataclass
class AssignmentResult:
    booking: Booking
    user: User
    is_new_user: bool
    previous_owner_deleted: bool


@dataclass
class BulkAssignmentItem:
    booking_id: int
    success: bool
    booking_number: Optional[str] = None
    user_id: Optional[int] = None
    is_new_user: Optional[bool] = None
    error: Optional[str] = None


@dataclass
class BulkAssignmentOutcome:
    results: list[BulkAssignmentItem]

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.results if item.success)

    @property
    def failed_count(self) -> int:
        return self.total - self.success_count

    @property
    def success(self) -> bool:
        return self.failed_count == 0


class GuestService:
    def __init__(self, db, bookings: Optional[BookingService] = None):
        self.db = db
        self.bookings = bookings or BookingService(db)
        self.users = self.bookings.users
        self.numbers = self.bookings.numbers
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Pre-reservation
    # ------------------------------------------------------------------

    async def pre_reserve(self, request, actor_id: int) -> PreReserveResult:
        if getattr(request, "seats", None) is not None:
            return await self.pre_reserve_seated(
                event_id=request.event_id,
                schedule_id=request.schedule_id,
                seat_ids=[seat.seat_id for seat in request.seats],
                override_price=request.unit_price,
                actor_id=actor_id,
            )
        return await self.pre_reserve_non_seated(
            event_id=request.event_id,
            quantity=request.quantity,
            override_price=request.unit_price,
            actor_id=actor_id,
        )

    async def pre_reserve_non_seated(
        self,
        event_id: int,
        quantity: int,
        override_price: Optional[Decimal],
        actor_id: int,
    ) -> PreReserveResult:
        """All-or-nothing: either every placeholder booking exists or none does."""
        if quantity < 1 or quantity > self.settings.MAX_PRE_RESERVE_QUANTITY:
            raise BadRequestError(
                f"Quantity must be between 1 and {self.settings.MAX_PRE_RESERVE_QUANTITY}"
            )

        event = await self.bookings.get_bookable_event(event_id)
        if event.has_seats:
            raise BadRequestError("This event has seating; pre-reserve specific seats instead")

        unit_price = PriceResolver.resolve_flat_price(event, override_price)
        numbers = await self.numbers.generate_bulk(quantity)

        result = PreReserveResult(event_id=event.id, schedule_id=None, unit_price=unit_price)
        with booking_latency.labels(kind="pre_reserve").time():
            try:
                async with atomic(self.db):
                    for number in numbers:
                        guest = await self.users.create_guest(number)
                        booking = self.bookings.build_booking(
                            booking_number=number,
                            user_id=guest.id,
                            event_id=event.id,
                            quantity=1,
                            unit_price=unit_price,
                            actor_id=actor_id,
                            is_pre_reserved=True,
                        )
                        self.db.add(booking)
                        result.items.append(PreReservedItem(booking=booking, guest=guest))
            except UniqueViolation as exc:
                record_booking_attempt("pre_reserve", "conflict")
                raise ConflictError(
                    "Pre-reservation could not be completed because of a concurrent update. Please retry."
                ) from exc

        record_booking_attempt("pre_reserve", "success")
        logger.info(
            "bookings_pre_reserved",
            event_id=event.id,
            count=len(result.items),
            unit_price=str(unit_price),
            actor_id=actor_id,
        )
        return result

    async def pre_reserve_seated(
        self,
        event_id: int,
        schedule_id: int,
        seat_ids: Sequence[int],
        override_price: Optional[Decimal],
        actor_id: int,
    ) -> PreReserveResult:
        """
        Validate every seat, then lock each seat in its own transaction.

        A seat taken between validation and its write stops the loop with a
        Conflict naming that seat. Seats written before it stay reserved.
        """
        if len(seat_ids) > self.settings.MAX_SEATS_PER_REQUEST:
            raise BadRequestError(f"At most {self.settings.MAX_SEATS_PER_REQUEST} seats per request")

        event = await self.bookings.get_bookable_event(event_id)
        if not event.has_seats:
            raise BadRequestError("This event has no seating; pre-reserve by quantity instead")

        plan = await self.bookings.plan_seated_reservation(event, schedule_id, seat_ids, override_price)
        numbers = await self.numbers.generate_bulk(len(plan.seats))

        result = PreReserveResult(event_id=event.id, schedule_id=schedule_id, unit_price=plan.unit_price)
        try:
            for seat, number in zip(plan.seats, numbers):
                try:
                    async with atomic(self.db):
                        guest = await self.users.create_guest(number)
                        booking = self.bookings.build_booking(
                            booking_number=number,
                            user_id=guest.id,
                            event_id=event.id,
                            schedule_id=schedule_id,
                            quantity=1,
                            unit_price=plan.unit_price,
                            actor_id=actor_id,
                            is_pre_reserved=True,
                        )
                        self.bookings.attach_seats(booking, [seat], schedule_id)
                        self.db.add(booking)
                except UniqueViolation as exc:
                    record_seat_conflict("constraint")
                    record_booking_attempt("pre_reserve", "conflict")
                    logger.warning(
                        "pre_reserve_seat_conflict",
                        schedule_id=schedule_id,
                        seat_id=seat.seat_id,
                        reserved_before_conflict=len(result.items),
                    )
                    raise ConflictError(
                        f"Seat {seat.seat_label} was reserved by another request; "
                        f"{len(result.items)} of {len(plan.seats)} seats were pre-reserved"
                    ) from exc
                result.items.append(PreReservedItem(booking=booking, guest=guest, seat_label=seat.seat_label))
        finally:
            await invalidate_schedule_seats(schedule_id)

        record_booking_attempt("pre_reserve", "success")
        logger.info(
            "seats_pre_reserved",
            event_id=event.id,
            schedule_id=schedule_id,
            seats=[item.seat_label for item in result.items],
            actor_id=actor_id,
        )
        return result

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    async def resolve_identity(self, user_info) -> tuple[User, bool]:
        """Existing user by email (case-insensitive) then phone, else a new real user."""
        return await self.users.get_or_create(
            user_info.name,
            user_info.email,
            user_info.phone_number,
            is_guest_user=False,
        )

    async def cleanup_previous_owner(self, guest_user_id: int, booking_id: int) -> bool:
        """
        Best-effort removal of the placeholder guest once the assignment has
        committed. A failure here is logged and never undoes the assignment.
        """
        try:
            return await self.users.delete_guest_if_unreferenced(guest_user_id)
        except Exception:
            await self.db.rollback()
            logger.exception("guest_cleanup_failed", guest_user_id=guest_user_id, booking_id=booking_id)
            return False

    async def assign_booking(self, booking_id: int, user_info) -> AssignmentResult:
        booking = await self.bookings.get_plain_booking(booking_id)
        if not booking.is_pre_reserved:
            raise BadRequestError("Booking is not pre-reserved")
        status = BookingStatus(booking.status)
        if status in TERMINAL_STATUSES:
            raise BadRequestError(f"Cannot assign a {status.value} booking")

        previous_owner_id = booking.user_id
        try:
            async with atomic(self.db):
                user, is_new_user = await self.resolve_identity(user_info)
                moved = await self.db.execute(
                    update(Booking)
                    .where(
                        Booking.id == booking_id,
                        Booking.user_id == previous_owner_id,
                        Booking.is_pre_reserved.is_(True),
                    )
                    .values(user_id=user.id, is_pre_reserved=False, updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                if moved.rowcount == 0:
                    raise ConflictError("Booking was assigned by another request")
                await self.db.execute(
                    update(BookingSeat)
                    .where(BookingSeat.booking_id == booking_id)
                    .values(user_id=user.id, updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
        except UniqueViolation as exc:
            record_assignment("failed")
            raise ConflictError("Email or phone number is already in use") from exc

        previous_owner_deleted = False
        if previous_owner_id != user.id:
            previous_owner_deleted = await self.cleanup_previous_owner(previous_owner_id, booking_id)
            # a failed cleanup rolls back, which expires the resolved user
            if inspect(user).expired:
                await self.db.refresh(user)

        record_assignment("created_user" if is_new_user else "linked")
        logger.info(
            "booking_assigned",
            booking_id=booking_id,
            user_id=user.id,
            previous_owner_id=previous_owner_id,
            new_user=is_new_user,
            previous_owner_deleted=previous_owner_deleted,
        )
        return AssignmentResult(
            booking=await self.bookings.get_booking(booking_id),
            user=user,
            is_new_user=is_new_user,
            previous_owner_deleted=previous_owner_deleted,
        )

    async def assign_bulk(self, items) -> BulkAssignmentOutcome:
        """Best-effort: every item yields a result entry, nothing is raised."""
        results: list[BulkAssignmentItem] = []
        for item in items:
            try:
                assigned = await self.assign_booking(item.booking_id, item.user_info)
            except HTTPException as exc:
                results.append(BulkAssignmentItem(booking_id=item.booking_id, success=False, error=exc.detail))
                continue
            except Exception as exc:
                await self.db.rollback()
                record_assignment("failed")
                logger.exception("bulk_assignment_item_failed", booking_id=item.booking_id, error=str(exc))
                results.append(
                    BulkAssignmentItem(booking_id=item.booking_id, success=False, error="Unexpected error")
                )
                continue

            results.append(
                BulkAssignmentItem(
                    booking_id=item.booking_id,
                    success=True,
                    booking_number=assigned.booking.booking_number,
                    user_id=assigned.user.id,
                    is_new_user=assigned.is_new_user,
                )
            )

        outcome = BulkAssignmentOutcome(results=results)
        logger.info(
            "bulk_assignment_completed",
            total=outcome.total,
            succeeded=outcome.success_count,
            failed=outcome.failed_count,
        )
        return outcome

    async def purge_orphan_guests(self) -> int:
        return await self.users.delete_orphan_guests()
