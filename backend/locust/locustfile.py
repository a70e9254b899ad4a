"""
Locust Load Test Suite

Needs a seeded database: one seated event with a schedule and zone pricing,
and one non-seated event. Point the scenarios at them through env vars:

  SEATED_EVENT_ID, SCHEDULE_ID, SEAT_IDS (comma separated),
  NON_SEATED_EVENT_ID, ADMIN_USER_ID

Run scenarios:
  locust -f locustfile.py --tags contention   # Many admins, same seats
  locust -f locustfile.py --tags availability # Cached availability reads
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random

from locust import HttpUser, task, between, tag, events

from ticketing.core.security import create_access_token

SEATED_EVENT_ID = int(os.getenv("SEATED_EVENT_ID", "1"))
SCHEDULE_ID = int(os.getenv("SCHEDULE_ID", "1"))
SEAT_IDS = [int(s) for s in os.getenv("SEAT_IDS", "1,2,3,4,5,6,7,8,9,10").split(",") if s]
NON_SEATED_EVENT_ID = int(os.getenv("NON_SEATED_EVENT_ID", "2"))
ADMIN_USER_ID = os.getenv("ADMIN_USER_ID", "1")


def random_owner():
    n = random.randint(100000, 999999)
    return {"name": f"Load Customer {n}", "email": f"load_{n}@test.com"}


def admin_headers():
    return {"Authorization": f"Bearer {create_access_token({'sub': ADMIN_USER_ID})}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Seat contention target: event {SEATED_EVENT_ID}, schedule {SCHEDULE_ID}, {len(SEAT_IDS)} seats")
    print("=" * 60)


class SeatContentionUser(HttpUser):
    """
    TEST 1: Contention - many admins race for the same seats

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After test, verify no seat was sold twice:
      SELECT seat_id, COUNT(*) FROM booking_seats
      WHERE schedule_id = X GROUP BY seat_id HAVING COUNT(*) > 1;
    Should return no rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = admin_headers()

    @tag("contention")
    @task
    def book_contended_seats(self):
        seats = random.sample(SEAT_IDS, k=min(2, len(SEAT_IDS)))
        with self.client.post(
            "/api/v1/bookings/checkout",
            json={
                "eventId": SEATED_EVENT_ID,
                "scheduleId": SCHEDULE_ID,
                "seats": [{"seatId": seat_id} for seat_id in seats],
                "ownerInfo": random_owner(),
            },
            headers=self.headers,
            name="/api/v1/bookings/checkout [seated]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: seat already taken
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class AvailabilityUser(HttpUser):
    """
    TEST 2: Availability reads - cache effectiveness

    Run with and without Redis (REDIS_ENABLED=false) and compare latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("availability", "read")
    @task(10)
    def seat_availability(self):
        seats = random.sample(SEAT_IDS, k=min(3, len(SEAT_IDS)))
        query = "&".join(f"seatIds={seat_id}" for seat_id in seats)
        self.client.get(
            f"/api/v1/schedules/{SCHEDULE_ID}/availability?{query}",
            name="/api/v1/schedules/{id}/availability",
        )

    @tag("availability")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - the system answers 4xx, never 5xx

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = admin_headers()

    def _expect(self, resp, allowed):
        if resp.status_code in allowed:
            resp.success()
        else:
            resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        with self.client.post(
            "/api/v1/bookings/checkout",
            json={"eventId": 999999, "quantity": 1, "ownerInfo": random_owner()},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def zero_quantity(self):
        with self.client.post(
            "/api/v1/bookings/checkout",
            json={"eventId": NON_SEATED_EVENT_ID, "quantity": 0, "ownerInfo": random_owner()},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def duplicate_seats(self):
        with self.client.post(
            "/api/v1/bookings/checkout",
            json={
                "eventId": SEATED_EVENT_ID,
                "scheduleId": SCHEDULE_ID,
                "seats": [{"seatId": SEAT_IDS[0]}, {"seatId": SEAT_IDS[0]}],
                "ownerInfo": random_owner(),
            },
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (400, 409))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/checkout",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/bookings/checkout",
            json={"eventId": NON_SEATED_EVENT_ID, "quantity": 1, "ownerInfo": random_owner()},
            catch_response=True,
        ) as resp:
            self._expect(resp, (401,))


class BoxOfficeUser(HttpUser):
    """
    TEST 4: Realistic box office workload

    Run: locust -f locustfile.py -u 50 -r 10 --run-time 120s

    Mostly listing, some general admission sales, occasional
    pre-reserve + assign round trips.
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = admin_headers()

    @task(20)
    def list_bookings(self):
        self.client.get(
            f"/api/v1/bookings?eventId={NON_SEATED_EVENT_ID}&page=1&pageSize=20",
            headers=self.headers,
            name="/api/v1/bookings",
        )

    @task(10)
    def sell_general_admission(self):
        self.client.post(
            "/api/v1/bookings/checkout",
            json={
                "eventId": NON_SEATED_EVENT_ID,
                "quantity": random.randint(1, 4),
                "ownerInfo": random_owner(),
            },
            headers=self.headers,
            name="/api/v1/bookings/checkout [general]",
        )

    @task(2)
    def pre_reserve_and_assign(self):
        resp = self.client.post(
            "/api/v1/bookings/pre-reserve",
            json={"eventId": NON_SEATED_EVENT_ID, "quantity": 2},
            headers=self.headers,
        )
        if resp.status_code != 201:
            return
        booking_id = resp.json()["bookings"][0]["bookingId"]
        self.client.post(
            f"/api/v1/bookings/{booking_id}/assign",
            json={"userInfo": random_owner()},
            headers=self.headers,
            name="/api/v1/bookings/{id}/assign",
        )
