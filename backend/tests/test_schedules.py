"""
Tests for schedule creation, overlap detection and event lookup.
"""

from datetime import timedelta

import pytest

from ticketing.core.exceptions import BadRequestError, ConflictError, NotFoundError
from ticketing.services.booking_service import BookingService
from ticketing.services.schedule_service import ScheduleService


@pytest.mark.asyncio
async def test_touching_windows_do_not_overlap(db_session, seated_event, schedule):
    service = ScheduleService(db_session)
    event_id, start, end = seated_event.id, schedule.start_at, schedule.end_at

    assert await service.has_overlap(event_id, end, end + timedelta(hours=2)) is False
    assert await service.has_overlap(event_id, start - timedelta(hours=2), start) is False
    assert await service.has_overlap(event_id, start + timedelta(hours=1), end + timedelta(hours=1)) is True


@pytest.mark.asyncio
async def test_overlap_ignores_excluded_schedule(db_session, seated_event, schedule):
    service = ScheduleService(db_session)
    assert await service.has_overlap(
        seated_event.id, schedule.start_at, schedule.end_at, exclude_schedule_id=schedule.id
    ) is False


@pytest.mark.asyncio
async def test_create_schedule(db_session, seated_event, schedule):
    service = ScheduleService(db_session)
    event_id, end = seated_event.id, schedule.end_at

    created = await service.create_schedule(event_id, end, end + timedelta(hours=2))
    assert created.id is not None
    assert (await service.get_schedule(created.id)).event_id == event_id


@pytest.mark.asyncio
async def test_create_schedule_rejections(db_session, seated_event, schedule):
    service = ScheduleService(db_session)
    event_id, start, end = seated_event.id, schedule.start_at, schedule.end_at

    with pytest.raises(BadRequestError):
        await service.create_schedule(event_id, end, start)
    with pytest.raises(NotFoundError):
        await service.create_schedule(999999, start, end)
    with pytest.raises(ConflictError):
        await service.create_schedule(event_id, start + timedelta(minutes=30), end)


@pytest.mark.asyncio
async def test_get_missing_schedule(db_session):
    with pytest.raises(NotFoundError):
        await ScheduleService(db_session).get_schedule(999999)


@pytest.mark.asyncio
async def test_find_event_by_id_or_slug(db_session, general_event):
    service = BookingService(db_session)
    event_id = general_event.id

    assert (await service.find_event("open-air-festival")).id == event_id
    assert (await service.find_event(str(event_id))).id == event_id
    assert await service.find_event("no-such-event") is None
