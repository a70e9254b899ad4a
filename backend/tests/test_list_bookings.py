"""
Tests for the filtered, paginated booking list.
"""

import pytest
from httpx import AsyncClient

from conftest import owner


async def checkout(client: AsyncClient, headers, event, quantity=1, **owner_kwargs):
    response = await client.post(
        "/api/v1/bookings/checkout",
        json={"eventId": event.id, "quantity": quantity, "ownerInfo": owner(**owner_kwargs)},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["booking"]


@pytest.mark.asyncio
async def test_pagination(client: AsyncClient, auth_headers, general_event):
    for n in range(5):
        await checkout(client, auth_headers, general_event, email=f"p{n}@example.com")

    page1 = await client.get("/api/v1/bookings?page=1&pageSize=2", headers=auth_headers)
    page3 = await client.get("/api/v1/bookings?page=3&pageSize=2", headers=auth_headers)

    assert page1.status_code == 200
    assert page1.json()["pagination"] == {"page": 1, "pageSize": 2, "total": 5, "totalPages": 3}
    assert len(page1.json()["items"]) == 2
    assert len(page3.json()["items"]) == 1


@pytest.mark.asyncio
async def test_filters(client: AsyncClient, auth_headers, general_event):
    kept = await checkout(client, auth_headers, general_event, email="keep@example.com")
    cancelled = await checkout(client, auth_headers, general_event, email="drop@example.com")
    await client.post(f"/api/v1/bookings/{cancelled['id']}/cancel", json={"reason": "x"}, headers=auth_headers)
    await client.post(
        "/api/v1/bookings/pre-reserve", json={"eventId": general_event.id, "quantity": 2}, headers=auth_headers
    )

    by_status = await client.get("/api/v1/bookings?status=CANCELLED", headers=auth_headers)
    assert [item["id"] for item in by_status.json()["items"]] == [cancelled["id"]]

    pre_reserved = await client.get("/api/v1/bookings?isPreReserved=true", headers=auth_headers)
    assert pre_reserved.json()["pagination"]["total"] == 2

    by_user = await client.get(f"/api/v1/bookings?userId={kept['userId']}", headers=auth_headers)
    assert [item["id"] for item in by_user.json()["items"]] == [kept["id"]]

    by_event = await client.get(f"/api/v1/bookings?eventId={general_event.id}", headers=auth_headers)
    assert by_event.json()["pagination"]["total"] == 4


@pytest.mark.asyncio
async def test_search_by_owner_and_number(client: AsyncClient, auth_headers, general_event):
    alice = await checkout(client, auth_headers, general_event, name="Alice Search", email="alice.s@example.com")
    await checkout(client, auth_headers, general_event, name="Bob Other", email="bob.o@example.com")

    by_name = await client.get("/api/v1/bookings?search=alice", headers=auth_headers)
    assert [item["id"] for item in by_name.json()["items"]] == [alice["id"]]

    by_number = await client.get(f"/api/v1/bookings?search={alice['bookingNumber'].lower()}", headers=auth_headers)
    assert [item["id"] for item in by_number.json()["items"]] == [alice["id"]]


@pytest.mark.asyncio
async def test_start_after_end_is_bad_request(client: AsyncClient, auth_headers):
    response = await client.get(
        "/api/v1/bookings?startDate=2026-05-02T00:00:00Z&endDate=2026-05-01T00:00:00Z",
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_requires_auth(client: AsyncClient):
    response = await client.get("/api/v1/bookings")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_search_wildcards_are_literal(client: AsyncClient, auth_headers, general_event):
    underscored = await checkout(client, auth_headers, general_event, name="Dee Under", email="dee_under@example.com")
    await checkout(client, auth_headers, general_event, name="Ed Plain", email="edplain@example.com")

    percent = await client.get("/api/v1/bookings", params={"search": "%"}, headers=auth_headers)
    assert percent.status_code == 200
    assert percent.json()["pagination"]["total"] == 0

    underscore = await client.get("/api/v1/bookings", params={"search": "_"}, headers=auth_headers)
    assert [item["id"] for item in underscore.json()["items"]] == [underscored["id"]]

    exact = await client.get("/api/v1/bookings", params={"search": "e_u"}, headers=auth_headers)
    assert [item["id"] for item in exact.json()["items"]] == [underscored["id"]]
