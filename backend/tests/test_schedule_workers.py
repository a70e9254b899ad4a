"""
Tests for worker to schedule assignment and the insert-first guard.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import IntegrityError

from conftest import count_rows
from ticketing.models import ScheduleWorker, User
from ticketing.services.assignment_guard import UniqueViolation, insert_or_fetch_existing
from ticketing.services.schedule_worker_service import ScheduleWorkerService


@pytest.fixture
def worker_factory(db_session):
    async def make(name="Gate Staff", email="staff@example.com", guest=False) -> User:
        user = User(name=name, email=email, is_guest_user=guest)
        db_session.add(user)
        await db_session.commit()
        return user

    return make


@pytest.mark.asyncio
async def test_assign_worker_then_conflict(client: AsyncClient, auth_headers, schedule, worker_factory, db_session):
    worker = await worker_factory()
    body = {"scheduleId": schedule.id, "userId": worker.id}

    created = await client.post("/api/v1/schedule-workers", json=body, headers=auth_headers)
    assert created.status_code == 201
    assert created.json()["userId"] == worker.id
    assert created.json()["user"]["email"] == "staff@example.com"

    again = await client.post("/api/v1/schedule-workers", json=body, headers=auth_headers)
    assert again.status_code == 409
    assert again.json()["detail"] == "Worker is already assigned to this schedule"
    assert await count_rows(db_session, ScheduleWorker) == 1


@pytest.mark.asyncio
async def test_guard_returns_existing_row_when_insert_loses(db_session, schedule, worker_factory):
    """Insert-first: no pre-check, the unique index answers and the winner's row comes back."""
    worker = await worker_factory()
    # the losing insert rolls back and expires everything in the session
    schedule_id, user_id = schedule.id, worker.id
    service = ScheduleWorkerService(db_session)

    first = await service.assign_if_absent(schedule_id, user_id)
    first_id = first.value.id
    second = await insert_or_fetch_existing(
        db_session,
        ScheduleWorker(schedule_id=schedule_id, user_id=user_id),
        lambda: service.find_assignment(schedule_id, user_id),
    )

    assert first.created is True
    assert second.created is False
    assert second.value.id == first_id


@pytest.mark.asyncio
async def test_guard_propagates_failures_other_than_uniqueness(db_session, schedule):
    schedule_id = schedule.id
    looked_up = []

    async def fetch_existing():
        looked_up.append(True)
        return None

    with pytest.raises(IntegrityError) as excinfo:
        await insert_or_fetch_existing(
            db_session,
            ScheduleWorker(schedule_id=schedule_id, user_id=None),
            fetch_existing,
        )

    assert not isinstance(excinfo.value, UniqueViolation)
    assert looked_up == []
    assert await count_rows(db_session, ScheduleWorker) == 0


@pytest.mark.asyncio
async def test_assign_guest_rejected(client: AsyncClient, auth_headers, schedule, worker_factory):
    guest = await worker_factory(name="Guest WL-AAAAAAAA", email=None, guest=True)
    response = await client.post(
        "/api/v1/schedule-workers", json={"scheduleId": schedule.id, "userId": guest.id}, headers=auth_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_assign_unknown_schedule_or_user(client: AsyncClient, auth_headers, schedule, worker_factory):
    worker = await worker_factory()
    no_schedule = await client.post(
        "/api/v1/schedule-workers", json={"scheduleId": 999999, "userId": worker.id}, headers=auth_headers
    )
    no_user = await client.post(
        "/api/v1/schedule-workers", json={"scheduleId": schedule.id, "userId": 999999}, headers=auth_headers
    )
    assert no_schedule.status_code == 404
    assert no_user.status_code == 404


@pytest.mark.asyncio
async def test_list_get_and_remove(
    client: AsyncClient, auth_headers, schedule, second_schedule, seated_event, worker_factory
):
    worker = await worker_factory()
    other = await worker_factory(name="Usher", email="usher@example.com")
    for schedule_id, user_id in ((schedule.id, worker.id), (schedule.id, other.id), (second_schedule.id, worker.id)):
        response = await client.post(
            "/api/v1/schedule-workers", json={"scheduleId": schedule_id, "userId": user_id}, headers=auth_headers
        )
        assert response.status_code == 201

    by_schedule = await client.get(f"/api/v1/schedule-workers?scheduleId={schedule.id}", headers=auth_headers)
    assert by_schedule.json()["pagination"]["total"] == 2

    by_user = await client.get(f"/api/v1/schedule-workers?userId={worker.id}", headers=auth_headers)
    assert by_user.json()["pagination"]["total"] == 2

    by_event = await client.get(f"/api/v1/schedule-workers?eventId={seated_event.id}", headers=auth_headers)
    assert by_event.json()["pagination"]["total"] == 3

    roster = await client.get(f"/api/v1/schedules/{schedule.id}/workers", headers=auth_headers)
    assert {item["userId"] for item in roster.json()} == {worker.id, other.id}

    assignment_id = by_user.json()["items"][0]["id"]
    detail = await client.get(f"/api/v1/schedule-workers/{assignment_id}", headers=auth_headers)
    assert detail.status_code == 200

    removed = await client.delete(f"/api/v1/schedule-workers/{assignment_id}", headers=auth_headers)
    assert removed.status_code == 204
    gone = await client.get(f"/api/v1/schedule-workers/{assignment_id}", headers=auth_headers)
    assert gone.status_code == 404

    by_pair = await client.delete(
        f"/api/v1/schedule-workers/schedules/{schedule.id}/users/{other.id}", headers=auth_headers
    )
    assert by_pair.status_code == 204
    again = await client.delete(
        f"/api/v1/schedule-workers/schedules/{schedule.id}/users/{other.id}", headers=auth_headers
    )
    assert again.status_code == 404
