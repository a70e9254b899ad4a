"""
Schedule lookups.

Schedules of the same event must not overlap in time. Two windows overlap
when each one starts before the other ends; touching windows
(end == next start) do not overlap.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.exceptions import BadRequestError, ConflictError, NotFoundError
from ticketing.core.logging import get_logger
from ticketing.models.event import Event, Schedule

logger = get_logger(__name__)


class ScheduleService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_schedule(self, schedule_id: int) -> Optional[Schedule]:
        result = await self.db.execute(select(Schedule).where(Schedule.id == schedule_id))
        return result.scalar_one_or_none()

    async def get_schedule(self, schedule_id: int) -> Schedule:
        schedule = await self.find_schedule(schedule_id)
        if schedule is None:
            raise NotFoundError("Schedule not found")
        return schedule

    async def has_overlap(
        self,
        event_id: int,
        start_at: datetime,
        end_at: datetime,
        exclude_schedule_id: Optional[int] = None,
    ) -> bool:
        query = select(Schedule.id).where(
            Schedule.event_id == event_id,
            Schedule.start_at < end_at,
            Schedule.end_at > start_at,
        )
        if exclude_schedule_id is not None:
            query = query.where(Schedule.id != exclude_schedule_id)
        result = await self.db.execute(query.limit(1))
        return result.first() is not None

    async def create_schedule(self, event_id: int, start_at: datetime, end_at: datetime) -> Schedule:
        if end_at <= start_at:
            raise BadRequestError("Schedule end must be after its start")

        event = await self.db.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event not found")

        if await self.has_overlap(event_id, start_at, end_at):
            raise ConflictError("Schedule overlaps an existing schedule of this event")

        schedule = Schedule(event_id=event_id, start_at=start_at, end_at=end_at)
        self.db.add(schedule)
        await self.db.commit()

        logger.info("schedule_created", schedule_id=schedule.id, event_id=event_id)
        return schedule
