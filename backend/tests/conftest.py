"""
Pytest fixtures for test database, client, authentication and seed data.

Every test gets a fresh database: a SQLite file under tmp_path by default,
or TEST_DATABASE_URL (e.g. a throwaway PostgreSQL database) when set.
The HTTP client opens a new session per request, like production does.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ["REDIS_ENABLED"] = "false"

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketing.main import app
from ticketing.core.security import create_access_token
from ticketing.db.base import Base
from ticketing.db.session import build_engine, build_session_factory, get_db
from ticketing.models import (
    Event, Schedule, Seat, SeatRow, Section, SectionPosition, User, Zone, ZonePricing, ZoneType,
)


async def count_rows(session: AsyncSession, model, *criteria) -> int:
    query = select(func.count()).select_from(model)
    if criteria:
        query = query.where(*criteria)
    return (await session.execute(query)).scalar_one()


@dataclass
class Venue:
    vip_zone: Zone
    regular_zone: Zone
    vip_seats: list[Seat]
    regular_seats: list[Seat]

    @property
    def vip_seat_ids(self) -> list[int]:
        return [seat.id for seat in self.vip_seats]

    @property
    def regular_seat_ids(self) -> list[int]:
        return [seat.id for seat in self.regular_seats]


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = build_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield build_session_factory(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get their own session on the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    user = User(name="Box Office Admin", email="admin@example.com", is_guest_user=False)
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def auth_headers(admin_user: User) -> dict:
    token = create_access_token(data={"sub": str(admin_user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def general_event(db_session: AsyncSession) -> Event:
    """Non-seated, original 100, discounted 80."""
    event = Event(
        name="Open Air Festival",
        slug="open-air-festival",
        active=True,
        has_seats=False,
        original_price=Decimal("100.00"),
        discounted_price=Decimal("80.00"),
    )
    db_session.add(event)
    await db_session.commit()
    return event


@pytest_asyncio.fixture
async def inactive_event(db_session: AsyncSession) -> Event:
    event = Event(
        name="Cancelled Tour",
        slug="cancelled-tour",
        active=False,
        has_seats=False,
        original_price=Decimal("50.00"),
    )
    db_session.add(event)
    await db_session.commit()
    return event


@pytest_asyncio.fixture
async def seated_event(db_session: AsyncSession) -> Event:
    event = Event(name="Symphony Night", slug="symphony-night", active=True, has_seats=True)
    db_session.add(event)
    await db_session.commit()
    return event


@pytest_asyncio.fixture
async def schedule(db_session: AsyncSession, seated_event: Event) -> Schedule:
    start = datetime.now(timezone.utc) + timedelta(days=14)
    schedule = Schedule(event_id=seated_event.id, start_at=start, end_at=start + timedelta(hours=3))
    db_session.add(schedule)
    await db_session.commit()
    return schedule


@pytest_asyncio.fixture
async def second_schedule(db_session: AsyncSession, seated_event: Event, schedule: Schedule) -> Schedule:
    start = schedule.end_at + timedelta(days=1)
    other = Schedule(event_id=seated_event.id, start_at=start, end_at=start + timedelta(hours=3))
    db_session.add(other)
    await db_session.commit()
    return other


@pytest_asyncio.fixture
async def venue(db_session: AsyncSession) -> Venue:
    """VIP zone with seats A-1..A-5, REGULAR zone with seats B-1..B-3."""
    vip = Zone(name="VIP", type=ZoneType.VIP.value)
    regular = Zone(name="Stalls", type=ZoneType.REGULAR.value)
    db_session.add_all([vip, regular])
    await db_session.flush()

    vip_section = Section(zone_id=vip.id, position=SectionPosition.CENTER.value)
    regular_section = Section(zone_id=regular.id, position=SectionPosition.LEFT.value)
    db_session.add_all([vip_section, regular_section])
    await db_session.flush()

    row_a = SeatRow(section_id=vip_section.id, row_number=1)
    row_b = SeatRow(section_id=regular_section.id, row_number=2)
    db_session.add_all([row_a, row_b])
    await db_session.flush()

    vip_seats = [Seat(row_id=row_a.id, seat_number=n, seat_label=f"A-{n}") for n in range(1, 6)]
    regular_seats = [Seat(row_id=row_b.id, seat_number=n, seat_label=f"B-{n}") for n in range(1, 4)]
    db_session.add_all(vip_seats + regular_seats)
    await db_session.commit()

    return Venue(vip_zone=vip, regular_zone=regular, vip_seats=vip_seats, regular_seats=regular_seats)


@pytest_asyncio.fixture
async def zone_pricing(
    db_session: AsyncSession, seated_event: Event, schedule: Schedule, venue: Venue
) -> list[ZonePricing]:
    """VIP 200 discounted to 150, REGULAR 100 with no discount."""
    pricings = [
        ZonePricing(
            zone_id=venue.vip_zone.id,
            event_id=seated_event.id,
            schedule_id=schedule.id,
            original_price=Decimal("200.00"),
            discounted_price=Decimal("150.00"),
        ),
        ZonePricing(
            zone_id=venue.regular_zone.id,
            event_id=seated_event.id,
            schedule_id=schedule.id,
            original_price=Decimal("100.00"),
        ),
    ]
    db_session.add_all(pricings)
    await db_session.commit()
    return pricings


def owner(name: str = "Alice Example", email: str = "alice@example.com", phone: str = None) -> dict:
    info = {"name": name}
    if email:
        info["email"] = email
    if phone:
        info["phoneNumber"] = phone
    return info
