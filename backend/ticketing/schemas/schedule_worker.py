"""
Pydantic schemas for worker to schedule assignments.
"""

from datetime import datetime
from typing import Optional

from ticketing.schemas.booking import ScheduleSummary, UserSummary
from ticketing.schemas.common import CamelModel, Pagination


class ScheduleWorkerCreate(CamelModel):
    schedule_id: int
    user_id: int


class ScheduleWorkerResponse(CamelModel):
    id: int
    schedule_id: int
    user_id: int
    created_at: datetime
    user: Optional[UserSummary] = None
    schedule: Optional[ScheduleSummary] = None


class ScheduleWorkerListResponse(CamelModel):
    items: list[ScheduleWorkerResponse]
    pagination: Pagination
