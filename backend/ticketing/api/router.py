"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from ticketing.api.routes import bookings, schedules, schedule_workers

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(bookings.router)
api_router.include_router(schedules.router)
api_router.include_router(schedule_workers.router)
