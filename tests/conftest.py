"""
Shared test fixtures.

Everything runs against an in-memory ``RideLedger`` driven by a fake
clock, so ride durations are exact and no test sleeps.  Rate limiting and
demo seeding are switched off before the application settings load.
"""

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SEED_MOCK_DATA", "false")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.domain.entities import Location, Scooter, User
from src.domain.enums import PaymentType
from src.infrastructure.payments import MockPaymentGateway
from src.infrastructure.repositories import UserRepository
from src.services.ledger import RideLedger

# Downtown San Francisco
ORIGIN = Location(37.7749, -122.4194)
T0 = datetime(2026, 3, 14, 9, 0, tzinfo=timezone.utc)

# One kilometre of latitude, in degrees
KM_LAT = 1 / 111.195


def north_of(location: Location, km: float) -> Location:
    return Location(location.latitude + km * KM_LAT, location.longitude)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_scooter(
    scooter_id: str,
    qr_code: str,
    location: Location = ORIGIN,
    hourly_rate: float = 0.25,
    **kwargs,
) -> Scooter:
    return Scooter(
        id=scooter_id,
        qr_code=qr_code,
        location=location,
        hourly_rate=hourly_rate,
        **kwargs,
    )


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def users() -> UserRepository:
    repo = UserRepository()
    repo.add(User(id="user_001", name="John Doe", email="john.doe@example.com"))
    repo.add_payment_method(
        "user_001",
        PaymentType.CREDIT_CARD,
        card_number="4111111111111234",
        expiry_date="12/25",
    )
    return repo


@pytest.fixture
def ledger(clock: FakeClock, users: UserRepository) -> RideLedger:
    ledger = RideLedger(accounts=users, clock=clock)
    ledger.register_scooter(make_scooter("scooter_001", "SWIFT001", hourly_rate=0.25))
    ledger.register_scooter(
        make_scooter("scooter_002", "SWIFT002", north_of(ORIGIN, 0.5), hourly_rate=0.30)
    )
    ledger.register_scooter(
        make_scooter("scooter_003", "SWIFT003", north_of(ORIGIN, 2.0), hourly_rate=0.25)
    )
    return ledger


@pytest.fixture
def gateway(users: UserRepository) -> MockPaymentGateway:
    return MockPaymentGateway(users)


@pytest_asyncio.fixture
async def client(
    ledger: RideLedger,
    users: UserRepository,
    gateway: MockPaymentGateway,
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient bound to an app that owns the fixture ledger."""
    from src.api.app import create_app

    app = create_app(ledger=ledger, users=users, gateway=gateway)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
