"""
Seat inventory checks.

A seat is reserved for a schedule iff a BookingSeat row exists for that
exact (seat_id, schedule_id) pair. Reservations are per schedule, so the same
physical seat can be sold once for every occurrence of an event.

check_availability() is advisory. It gives the caller a readable error before
attempting a write, but only the unique constraint on booking_seats decides
who actually gets the seat.
"""

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.models.booking import BookingSeat
from ticketing.models.venue import Seat, SeatRow, Section, Zone


@dataclass(frozen=True)
class SeatDetail:
    seat_id: int
    seat_label: str
    seat_number: int
    row_number: int
    section_position: str
    zone_id: int
    zone_type: str


@dataclass(frozen=True)
class SeatAvailability:
    available: bool
    conflicting_seat_ids: list[int] = field(default_factory=list)
    conflicting_seat_labels: list[str] = field(default_factory=list)


def missing_seat_ids(requested: Iterable[int], details: Iterable[SeatDetail]) -> list[int]:
    """Requested ids with no matching SeatDetail, in request order."""
    found = {detail.seat_id for detail in details}
    return [seat_id for seat_id in requested if seat_id not in found]


def duplicate_seat_ids(requested: Sequence[int]) -> list[int]:
    seen: set[int] = set()
    duplicates: list[int] = []
    for seat_id in requested:
        if seat_id in seen and seat_id not in duplicates:
            duplicates.append(seat_id)
        seen.add(seat_id)
    return duplicates


class SeatInventoryChecker:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def check_availability(self, seat_ids: Sequence[int], schedule_id: int) -> SeatAvailability:
        if not seat_ids:
            return SeatAvailability(available=True)

        result = await self.db.execute(
            select(BookingSeat.seat_id, BookingSeat.seat_label)
            .where(
                BookingSeat.schedule_id == schedule_id,
                BookingSeat.seat_id.in_(list(seat_ids)),
            )
            .order_by(BookingSeat.seat_label)
        )
        rows = result.all()
        return SeatAvailability(
            available=not rows,
            conflicting_seat_ids=[row.seat_id for row in rows],
            conflicting_seat_labels=[row.seat_label for row in rows],
        )

    async def get_seat_details(self, seat_ids: Sequence[int]) -> list[SeatDetail]:
        """
        One SeatDetail per existing seat, ordered like `seat_ids`.
        Missing ids are simply absent; use missing_seat_ids() to report them.
        """
        if not seat_ids:
            return []

        result = await self.db.execute(
            select(
                Seat.id,
                Seat.seat_label,
                Seat.seat_number,
                SeatRow.row_number,
                Section.position,
                Zone.id.label("zone_id"),
                Zone.type.label("zone_type"),
            )
            .join(SeatRow, Seat.row_id == SeatRow.id)
            .join(Section, SeatRow.section_id == Section.id)
            .join(Zone, Section.zone_id == Zone.id)
            .where(Seat.id.in_(list(seat_ids)))
        )
        by_id = {
            row.id: SeatDetail(
                seat_id=row.id,
                seat_label=row.seat_label,
                seat_number=row.seat_number,
                row_number=row.row_number,
                section_position=row.position,
                zone_id=row.zone_id,
                zone_type=row.zone_type,
            )
            for row in result.all()
        }
        ordered: list[SeatDetail] = []
        for seat_id in dict.fromkeys(seat_ids):
            if seat_id in by_id:
                ordered.append(by_id[seat_id])
        return ordered

    async def reserved_seat_ids(self, schedule_id: int) -> list[int]:
        result = await self.db.execute(
            select(BookingSeat.seat_id)
            .where(BookingSeat.schedule_id == schedule_id)
            .order_by(BookingSeat.seat_id)
        )
        return list(result.scalars().all())
