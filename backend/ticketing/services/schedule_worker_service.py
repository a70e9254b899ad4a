"""
Worker to schedule assignments.

Assigning goes through insert_or_fetch_existing(): the (schedule_id, user_id)
unique constraint decides, and a lost race comes back as created=False which
is reported as a Conflict, never as a silent success.
"""

from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ticketing.core.exceptions import BadRequestError, ConflictError, NotFoundError
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_worker_assignment
from ticketing.models.event import Schedule
from ticketing.models.schedule_worker import ScheduleWorker
from ticketing.services.assignment_guard import GuardResult, insert_or_fetch_existing
from ticketing.services.schedule_service import ScheduleService
from ticketing.services.user_store import UserStore

logger = get_logger(__name__)


class ScheduleWorkerService:
    def __init__(
        self,
        db: AsyncSession,
        schedules: Optional[ScheduleService] = None,
        users: Optional[UserStore] = None,
    ):
        self.db = db
        self.schedules = schedules or ScheduleService(db)
        self.users = users or UserStore(db)

    async def find_assignment(self, schedule_id: int, user_id: int) -> Optional[ScheduleWorker]:
        result = await self.db.execute(
            select(ScheduleWorker)
            .where(ScheduleWorker.schedule_id == schedule_id, ScheduleWorker.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def assign_if_absent(self, schedule_id: int, user_id: int) -> GuardResult[ScheduleWorker]:
        """Insert the pair, or hand back the row that beat us to it."""
        result = await insert_or_fetch_existing(
            self.db,
            ScheduleWorker(schedule_id=schedule_id, user_id=user_id),
            lambda: self.find_assignment(schedule_id, user_id),
        )
        record_worker_assignment(result.created)
        return result

    async def assign_worker(self, schedule_id: int, user_id: int) -> ScheduleWorker:
        await self.schedules.get_schedule(schedule_id)
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.is_guest_user:
            raise BadRequestError("Guest users cannot be assigned as workers")

        result = await self.assign_if_absent(schedule_id, user_id)
        if not result.created:
            logger.info("worker_already_assigned", schedule_id=schedule_id, user_id=user_id)
            raise ConflictError("Worker is already assigned to this schedule")

        logger.info(
            "worker_assigned",
            assignment_id=result.value.id,
            schedule_id=schedule_id,
            user_id=user_id,
        )
        return await self.get_assignment(result.value.id)

    async def get_assignment(self, assignment_id: int) -> ScheduleWorker:
        result = await self.db.execute(
            select(ScheduleWorker)
            .where(ScheduleWorker.id == assignment_id)
            .options(selectinload(ScheduleWorker.user), selectinload(ScheduleWorker.schedule))
            .execution_options(populate_existing=True)
        )
        assignment = result.scalar_one_or_none()
        if assignment is None:
            raise NotFoundError("Worker assignment not found")
        return assignment

    async def list_assignments(
        self,
        schedule_id: Optional[int] = None,
        user_id: Optional[int] = None,
        event_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> tuple[list[ScheduleWorker], int]:
        query = select(ScheduleWorker)
        if schedule_id is not None:
            query = query.where(ScheduleWorker.schedule_id == schedule_id)
        if user_id is not None:
            query = query.where(ScheduleWorker.user_id == user_id)
        if event_id is not None:
            query = query.join(Schedule, ScheduleWorker.schedule_id == Schedule.id).where(
                Schedule.event_id == event_id
            )

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar_one()

        result = await self.db.execute(
            query.options(selectinload(ScheduleWorker.user), selectinload(ScheduleWorker.schedule))
            .order_by(ScheduleWorker.created_at.desc(), ScheduleWorker.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), total

    async def list_schedule_workers(self, schedule_id: int) -> list[ScheduleWorker]:
        await self.schedules.get_schedule(schedule_id)
        result = await self.db.execute(
            select(ScheduleWorker)
            .where(ScheduleWorker.schedule_id == schedule_id)
            .options(selectinload(ScheduleWorker.user), selectinload(ScheduleWorker.schedule))
            .order_by(ScheduleWorker.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def remove_assignment(self, assignment_id: int) -> None:
        result = await self.db.execute(
            delete(ScheduleWorker)
            .where(ScheduleWorker.id == assignment_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if result.rowcount == 0:
            raise NotFoundError("Worker assignment not found")
        logger.info("worker_unassigned", assignment_id=assignment_id)

    async def remove_worker(self, schedule_id: int, user_id: int) -> None:
        result = await self.db.execute(
            delete(ScheduleWorker)
            .where(ScheduleWorker.schedule_id == schedule_id, ScheduleWorker.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if result.rowcount == 0:
            raise NotFoundError("Worker assignment not found")
        logger.info("worker_unassigned", schedule_id=schedule_id, user_id=user_id)
