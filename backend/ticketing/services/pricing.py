"""
Unit price resolution.

Priority, highest first:
  1. explicit override (0 is a valid override: complimentary tickets)
  2. seated events: zone pricing for (zone, event, schedule), discounted
     price first, then original price
     non-seated events: event discounted price, then original price, then 0

Zone pricing is mandatory for seated events unless an override is given.
"""

from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.exceptions import BadRequestError
from ticketing.core.logging import get_logger
from ticketing.models.event import Event
from ticketing.models.venue import ZonePricing
from ticketing.services.seat_inventory import SeatDetail

logger = get_logger(__name__)

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    if isinstance(value, Decimal):
        return value.quantize(CENT)
    return Decimal(str(value)).quantize(CENT)


def line_total(unit_price: Decimal, quantity: int) -> Decimal:
    return to_money(unit_price * quantity)


class PriceResolver:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def resolve_flat_price(event: Event, override_price: Optional[Decimal] = None) -> Decimal:
        if override_price is not None:
            return to_money(override_price)
        if event.discounted_price is not None:
            return to_money(event.discounted_price)
        if event.original_price is not None:
            return to_money(event.original_price)
        return to_money(0)

    async def find_pricing(self, zone_id: int, event_id: int, schedule_id: int) -> Optional[ZonePricing]:
        result = await self.db.execute(
            select(ZonePricing).where(
                ZonePricing.zone_id == zone_id,
                ZonePricing.event_id == event_id,
                ZonePricing.schedule_id == schedule_id,
            )
        )
        return result.scalar_one_or_none()

    async def resolve_zone_price(
        self,
        zone_id: int,
        event_id: int,
        schedule_id: int,
        override_price: Optional[Decimal] = None,
    ) -> Decimal:
        if override_price is not None:
            return to_money(override_price)

        pricing = await self.find_pricing(zone_id, event_id, schedule_id)
        if pricing is None:
            logger.warning(
                "zone_pricing_missing",
                zone_id=zone_id,
                event_id=event_id,
                schedule_id=schedule_id,
            )
            raise BadRequestError(
                "Zone pricing not configured for this event schedule. "
                "Please configure zone pricing or provide a custom price."
            )

        if pricing.discounted_price is not None:
            return to_money(pricing.discounted_price)
        return to_money(pricing.original_price)

    async def resolve_seat_batch_price(
        self,
        seats: Sequence[SeatDetail],
        event_id: int,
        schedule_id: int,
        override_price: Optional[Decimal] = None,
    ) -> Decimal:
        """
        One unit price for a whole batch of seats.

        Without an override the FIRST seat's zone prices every seat in the
        batch, even when the batch spans several zones.
        """
        if override_price is not None:
            return to_money(override_price)
        if not seats:
            raise BadRequestError("At least one seat must be selected")

        zone_ids = {seat.zone_id for seat in seats}
        if len(zone_ids) > 1:
            logger.info(
                "mixed_zone_batch_priced_by_first_seat",
                event_id=event_id,
                schedule_id=schedule_id,
                zone_ids=sorted(zone_ids),
                pricing_zone_id=seats[0].zone_id,
            )
        return await self.resolve_zone_price(seats[0].zone_id, event_id, schedule_id)
