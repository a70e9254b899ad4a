"""
Tests for checkout, seat locking and cancellation, including the race
where two checkouts both pass the availability pre-check.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import InvalidRequestError

from conftest import count_rows, owner
from ticketing.models import Booking, BookingSeat, Event, User
from ticketing.services.booking_service import BookingService
from ticketing.services.seat_inventory import SeatAvailability, SeatInventoryChecker


def seated_body(event, schedule, seat_ids, **extra):
    body = {
        "eventId": event.id,
        "scheduleId": schedule.id,
        "seats": [{"seatId": seat_id} for seat_id in seat_ids],
        "ownerInfo": owner(),
    }
    body.update(extra)
    return body


async def availability(client: AsyncClient, schedule, seat_ids):
    query = "&".join(f"seatIds={seat_id}" for seat_id in seat_ids)
    response = await client.get(f"/api/v1/schedules/{schedule.id}/availability?{query}")
    assert response.status_code == 200
    return response.json()


# ---------------------------------------------------------------------------
# Non-seated checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_non_seated_checkout_uses_discounted_price(client: AsyncClient, auth_headers, admin_user, general_event):
    """quantity 3 at discounted 80 -> total 240, confirmed admin booking."""
    response = await client.post(
        "/api/v1/bookings/checkout",
        json={"eventId": general_event.id, "quantity": 3, "ownerInfo": owner()},
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()
    booking = data["booking"]
    assert booking["unitPrice"] == 80.0
    assert booking["totalPrice"] == 240.0
    assert booking["quantity"] == 3
    assert booking["status"] == "CONFIRMED"
    assert booking["isAdminBooking"] is True
    assert booking["bookedByAdminId"] == admin_user.id
    assert booking["bookingNumber"].startswith("WL-")
    assert booking["currency"] == "AED"
    assert booking["event"]["slug"] == "open-air-festival"
    assert booking["user"]["email"] == "alice@example.com"
    assert data["isNewUser"] is True


@pytest.mark.asyncio
async def test_non_seated_checkout_free_override(client: AsyncClient, auth_headers, general_event):
    response = await client.post(
        "/api/v1/bookings/checkout",
        json={"eventId": general_event.id, "quantity": 3, "ownerInfo": owner(), "unitPrice": 0},
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["booking"]["unitPrice"] == 0.0
    assert response.json()["booking"]["totalPrice"] == 0.0


@pytest.mark.asyncio
async def test_checkout_reuses_existing_owner(client: AsyncClient, auth_headers, general_event, db_session):
    for _ in range(2):
        response = await client.post(
            "/api/v1/bookings/checkout",
            json={"eventId": general_event.id, "quantity": 1, "ownerInfo": owner(email="Repeat@Example.com")},
            headers=auth_headers,
        )
        assert response.status_code == 201

    assert response.json()["isNewUser"] is False
    assert await count_rows(db_session, User, User.email == "repeat@example.com") == 1


@pytest.mark.asyncio
async def test_checkout_requires_contact(client: AsyncClient, auth_headers, general_event):
    response = await client.post(
        "/api/v1/bookings/checkout",
        json={"eventId": general_event.id, "quantity": 1, "ownerInfo": {"name": "No Contact"}},
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_checkout_unauthenticated(client: AsyncClient, general_event):
    response = await client.post(
        "/api/v1/bookings/checkout",
        json={"eventId": general_event.id, "quantity": 1, "ownerInfo": owner()},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_checkout_unknown_event(client: AsyncClient, auth_headers):
    response = await client.post(
        "/api/v1/bookings/checkout",
        json={"eventId": 999999, "quantity": 1, "ownerInfo": owner()},
        headers=auth_headers,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_checkout_inactive_event(client: AsyncClient, auth_headers, inactive_event):
    response = await client.post(
        "/api/v1/bookings/checkout",
        json={"eventId": inactive_event.id, "quantity": 1, "ownerInfo": owner()},
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_quantity_body_on_seated_event_is_rejected(client: AsyncClient, auth_headers, seated_event):
    response = await client.post(
        "/api/v1/bookings/checkout",
        json={"eventId": seated_event.id, "quantity": 2, "ownerInfo": owner()},
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_seat_body_on_general_event_is_rejected(client: AsyncClient, auth_headers, general_event, schedule, venue):
    response = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(general_event, schedule, venue.vip_seat_ids[:1]),
        headers=auth_headers,
    )
    assert response.status_code == 400


# ---------------------------------------------------------------------------
# Seated checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_seated_checkout_locks_seats(
    client: AsyncClient, auth_headers, seated_event, schedule, venue, zone_pricing
):
    seat_ids = venue.vip_seat_ids[:2]
    assert (await availability(client, schedule, seat_ids))["available"] is True

    response = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(seated_event, schedule, seat_ids),
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["seatsBooked"] == ["A-1", "A-2"]
    booking = data["booking"]
    assert booking["quantity"] == 2
    assert booking["unitPrice"] == 150.0
    assert booking["totalPrice"] == 300.0
    assert booking["scheduleId"] == schedule.id
    assert {seat["seatLabel"] for seat in booking["seats"]} == {"A-1", "A-2"}
    assert {seat["zoneType"] for seat in booking["seats"]} == {"VIP"}

    after = await availability(client, schedule, seat_ids)
    assert after["available"] is False
    assert sorted(after["conflictingSeatLabels"]) == ["A-1", "A-2"]


@pytest.mark.asyncio
async def test_seat_lock_is_per_schedule(
    client: AsyncClient, auth_headers, seated_event, schedule, second_schedule, venue, zone_pricing
):
    seat_ids = venue.vip_seat_ids[:1]
    response = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(seated_event, schedule, seat_ids),
        headers=auth_headers,
    )
    assert response.status_code == 201

    assert (await availability(client, second_schedule, seat_ids))["available"] is True
    assert (await availability(client, schedule, seat_ids))["available"] is False


@pytest.mark.asyncio
async def test_second_checkout_for_taken_seat_conflicts(
    client: AsyncClient, auth_headers, seated_event, schedule, venue, zone_pricing, db_session
):
    first = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(seated_event, schedule, venue.vip_seat_ids[:2]),
        headers=auth_headers,
    )
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(seated_event, schedule, venue.vip_seat_ids[1:3], ownerInfo=owner(email="bob@example.com")),
        headers=auth_headers,
    )
    assert second.status_code == 409
    assert "A-2" in second.json()["detail"]
    assert await count_rows(db_session, Booking) == 1
    assert await count_rows(db_session, BookingSeat) == 2


@pytest.mark.asyncio
async def test_race_past_precheck_is_stopped_by_unique_seat_lock(
    client: AsyncClient, auth_headers, seated_event, schedule, venue, zone_pricing, db_session, monkeypatch
):
    """
    Simulate the loser of a race: its availability pre-check ran before the
    winner committed. The unique (seat, schedule) index must reject the write,
    leave nothing behind, and the error must still name the seat.
    """
    winner = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(seated_event, schedule, venue.vip_seat_ids[:1]),
        headers=auth_headers,
    )
    assert winner.status_code == 201
    users_before = await count_rows(db_session, User)

    real_check = SeatInventoryChecker.check_availability
    calls = []

    async def stale_then_real(self, seat_ids, schedule_id):
        calls.append(list(seat_ids))
        if len(calls) == 1:
            return SeatAvailability(available=True)
        return await real_check(self, seat_ids, schedule_id)

    monkeypatch.setattr(SeatInventoryChecker, "check_availability", stale_then_real)

    loser = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(
            seated_event, schedule, venue.vip_seat_ids[:2], ownerInfo=owner(email="late@example.com")
        ),
        headers=auth_headers,
    )

    assert loser.status_code == 409
    assert "A-1" in loser.json()["detail"]
    assert len(calls) == 2
    # no partial booking, no orphan seat lock, no owner created
    assert await count_rows(db_session, Booking) == 1
    assert await count_rows(db_session, BookingSeat) == 1
    assert await count_rows(db_session, User) == users_before


@pytest.mark.asyncio
async def test_duplicate_seat_ids_rejected(client: AsyncClient, auth_headers, seated_event, schedule, venue, zone_pricing):
    seat_id = venue.vip_seat_ids[0]
    response = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(seated_event, schedule, [seat_id, seat_id]),
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_seat_is_not_found(client: AsyncClient, auth_headers, seated_event, schedule, venue, zone_pricing):
    response = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(seated_event, schedule, [venue.vip_seat_ids[0], 999999]),
        headers=auth_headers,
    )
    assert response.status_code == 404
    assert "999999" in response.json()["detail"]


@pytest.mark.asyncio
async def test_schedule_of_another_event_rejected(
    client: AsyncClient, auth_headers, db_session, schedule, venue, zone_pricing
):
    other = Event(name="Other Show", slug="other-show", active=True, has_seats=True)
    db_session.add(other)
    await db_session.commit()

    response = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(other, schedule, venue.vip_seat_ids[:1]),
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_seated_checkout_without_pricing_needs_override(
    client: AsyncClient, auth_headers, seated_event, schedule, venue
):
    without = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(seated_event, schedule, venue.vip_seat_ids[:1]),
        headers=auth_headers,
    )
    assert without.status_code == 400

    with_override = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(seated_event, schedule, venue.vip_seat_ids[:1], unitPrice=25),
        headers=auth_headers,
    )
    assert with_override.status_code == 201
    assert with_override.json()["booking"]["totalPrice"] == 25.0


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_cancel_releases_seats(
    client: AsyncClient, auth_headers, seated_event, schedule, venue, zone_pricing, db_session
):
    seat_ids = venue.vip_seat_ids[:3]
    created = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(seated_event, schedule, seat_ids),
        headers=auth_headers,
    )
    booking_id = created.json()["booking"]["id"]

    response = await client.post(
        f"/api/v1/bookings/{booking_id}/cancel",
        json={"reason": "Customer request"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "CANCELLED"
    assert data["cancelReason"] == "Customer request"
    assert data["cancelledAt"] is not None
    assert data["seats"] == []
    assert await count_rows(db_session, BookingSeat) == 0

    assert (await availability(client, schedule, seat_ids))["available"] is True

    rebook = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(seated_event, schedule, seat_ids, ownerInfo=owner(email="next@example.com")),
        headers=auth_headers,
    )
    assert rebook.status_code == 201


@pytest.mark.asyncio
async def test_cancel_twice_is_invalid_transition(client: AsyncClient, auth_headers, general_event):
    created = await client.post(
        "/api/v1/bookings/checkout",
        json={"eventId": general_event.id, "quantity": 1, "ownerInfo": owner()},
        headers=auth_headers,
    )
    booking_id = created.json()["booking"]["id"]

    first = await client.post(f"/api/v1/bookings/{booking_id}/cancel", json={"reason": "x"}, headers=auth_headers)
    second = await client.post(f"/api/v1/bookings/{booking_id}/cancel", json={"reason": "x"}, headers=auth_headers)

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["detail"] == "Cannot transition from CANCELLED to CANCELLED"


@pytest.mark.asyncio
async def test_get_booking_detail_and_missing(client: AsyncClient, auth_headers, admin_user, general_event):
    created = await client.post(
        "/api/v1/bookings/checkout",
        json={"eventId": general_event.id, "quantity": 2, "ownerInfo": owner()},
        headers=auth_headers,
    )
    booking_id = created.json()["booking"]["id"]

    response = await client.get(f"/api/v1/bookings/{booking_id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["bookedByAdmin"]["id"] == admin_user.id

    missing = await client.get("/api/v1/bookings/999999", headers=auth_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_availability_for_unknown_schedule(client: AsyncClient):
    response = await client.get("/api/v1/schedules/999999/availability?seatIds=1")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_relations_must_be_loaded_explicitly(
    client: AsyncClient, auth_headers, seated_event, schedule, venue, zone_pricing, db_session
):
    created = await client.post(
        "/api/v1/bookings/checkout",
        json=seated_body(seated_event, schedule, venue.vip_seat_ids[:1]),
        headers=auth_headers,
    )
    booking_id = created.json()["booking"]["id"]
    service = BookingService(db_session)

    plain = await service.get_plain_booking(booking_id)
    with pytest.raises(InvalidRequestError):
        plain.seats

    detailed = await service.get_booking(booking_id)
    assert [seat.seat_label for seat in detailed.seats] == ["A-1"]
    assert detailed.user.email == "alice@example.com"
