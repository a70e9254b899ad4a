"""
Schedule seat availability.

Served from the Redis cache of reserved seat ids when possible. A cached
"all free" answer is returned as-is; anything else is re-read from the
database so the response can name the taken seats. Either way the answer is
advisory: checkout does its own check and the unique seat lock decides.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.db.session import get_db
from ticketing.schemas.booking import SeatAvailabilityResponse
from ticketing.schemas.schedule_worker import ScheduleWorkerResponse
from ticketing.services.cache_service import (
    get_cached_reserved_seats,
    get_seats_version,
    set_cached_reserved_seats,
)
from ticketing.services.schedule_service import ScheduleService
from ticketing.services.schedule_worker_service import ScheduleWorkerService
from ticketing.services.seat_inventory import SeatInventoryChecker
from ticketing.core.security import get_current_user_id
from ticketing.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/schedules", tags=["Schedules"])


@router.get("/{schedule_id}/availability", response_model=SeatAvailabilityResponse)
async def seat_availability(
    schedule_id: int,
    seat_ids: list[int] = Query(..., alias="seatIds", min_length=1, max_length=100),
    db: AsyncSession = Depends(get_db),
):
    await ScheduleService(db).get_schedule(schedule_id)
    inventory = SeatInventoryChecker(db)

    # read before the database so a concurrent invalidation voids the refill
    version = await get_seats_version(schedule_id)
    reserved = await get_cached_reserved_seats(schedule_id)
    if reserved is None:
        reserved = await inventory.reserved_seat_ids(schedule_id)
        await set_cached_reserved_seats(schedule_id, reserved, version)
    elif not set(seat_ids) & set(reserved):
        logger.debug("availability_from_cache", schedule_id=schedule_id)
        return SeatAvailabilityResponse(
            schedule_id=schedule_id,
            available=True,
            conflicting_seat_ids=[],
            conflicting_seat_labels=[],
        )

    availability = await inventory.check_availability(seat_ids, schedule_id)
    return SeatAvailabilityResponse(
        schedule_id=schedule_id,
        available=availability.available,
        conflicting_seat_ids=availability.conflicting_seat_ids,
        conflicting_seat_labels=availability.conflicting_seat_labels,
    )


@router.get("/{schedule_id}/workers", response_model=list[ScheduleWorkerResponse])
async def list_schedule_workers(
    schedule_id: int,
    _actor_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    workers = await ScheduleWorkerService(db).list_schedule_workers(schedule_id)
    return [ScheduleWorkerResponse.model_validate(worker) for worker in workers]
