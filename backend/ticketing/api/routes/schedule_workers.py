"""
Worker to schedule assignment endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.security import get_current_user_id
from ticketing.db.session import get_db
from ticketing.schemas.common import Pagination
from ticketing.schemas.schedule_worker import (
    ScheduleWorkerCreate, ScheduleWorkerListResponse, ScheduleWorkerResponse,
)
from ticketing.services.schedule_worker_service import ScheduleWorkerService

router = APIRouter(prefix="/schedule-workers", tags=["Schedule Workers"])


def get_worker_service(db: AsyncSession = Depends(get_db)) -> ScheduleWorkerService:
    return ScheduleWorkerService(db)


@router.post("", response_model=ScheduleWorkerResponse, status_code=status.HTTP_201_CREATED)
async def assign_worker(
    payload: ScheduleWorkerCreate,
    _actor_id: int = Depends(get_current_user_id),
    service: ScheduleWorkerService = Depends(get_worker_service),
):
    """409 when the worker is already on this schedule, including when a parallel request won."""
    assignment = await service.assign_worker(payload.schedule_id, payload.user_id)
    return ScheduleWorkerResponse.model_validate(assignment)


@router.get("", response_model=ScheduleWorkerListResponse)
async def list_assignments(
    schedule_id: Optional[int] = Query(None, alias="scheduleId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    event_id: Optional[int] = Query(None, alias="eventId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    _actor_id: int = Depends(get_current_user_id),
    service: ScheduleWorkerService = Depends(get_worker_service),
):
    items, total = await service.list_assignments(
        schedule_id=schedule_id,
        user_id=user_id,
        event_id=event_id,
        page=page,
        page_size=page_size,
    )
    return ScheduleWorkerListResponse(
        items=[ScheduleWorkerResponse.model_validate(item) for item in items],
        pagination=Pagination.build(page, page_size, total),
    )


@router.get("/{assignment_id}", response_model=ScheduleWorkerResponse)
async def get_assignment(
    assignment_id: int,
    _actor_id: int = Depends(get_current_user_id),
    service: ScheduleWorkerService = Depends(get_worker_service),
):
    return ScheduleWorkerResponse.model_validate(await service.get_assignment(assignment_id))


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_assignment(
    assignment_id: int,
    _actor_id: int = Depends(get_current_user_id),
    service: ScheduleWorkerService = Depends(get_worker_service),
):
    await service.remove_assignment(assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/schedules/{schedule_id}/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_worker(
    schedule_id: int,
    user_id: int,
    _actor_id: int = Depends(get_current_user_id),
    service: ScheduleWorkerService = Depends(get_worker_service),
):
    await service.remove_worker(schedule_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
