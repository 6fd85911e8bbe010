"""
Seed script -- populates a ledger with the demo fleet and rider.

Used by ``main.py`` when ``SEED_MOCK_DATA`` is on, and runnable on its own
to print the seeded fleet:
    python seed.py

Creates:
  - 5 scooters around downtown San Francisco (SWIFT001 - SWIFT005)
  - 2 riders; the demo rider owns a credit card and Apple Pay
  - 1 open ride on scooter_003, so that scooter starts out in use
"""

from __future__ import annotations

import logging
from datetime import timedelta

from src.domain.entities import Location, Scooter, User, utcnow
from src.domain.enums import PaymentType
from src.infrastructure.repositories import UserRepository
from src.services.ledger import RideLedger

logger = logging.getLogger(__name__)

DEMO_USER_ID = "user_001"

SCOOTERS = [
    {"id": "scooter_001", "model": "SwiftX Pro", "battery": 85, "lat": 37.7749, "lng": -122.4194, "rate": 0.25, "speed": 25.0, "range": 50.0, "serviced_days_ago": 7, "qr": "SWIFT001"},
    {"id": "scooter_002", "model": "EcoRide Plus", "battery": 92, "lat": 37.7849, "lng": -122.4094, "rate": 0.30, "speed": 30.0, "range": 60.0, "serviced_days_ago": 3, "qr": "SWIFT002"},
    {"id": "scooter_003", "model": "SwiftX Pro", "battery": 45, "lat": 37.7649, "lng": -122.4294, "rate": 0.25, "speed": 25.0, "range": 50.0, "serviced_days_ago": 14, "qr": "SWIFT003"},
    {"id": "scooter_004", "model": "EcoRide Plus", "battery": 78, "lat": 37.7949, "lng": -122.3994, "rate": 0.30, "speed": 30.0, "range": 60.0, "serviced_days_ago": 1, "qr": "SWIFT004"},
    {"id": "scooter_005", "model": "SwiftX Pro", "battery": 95, "lat": 37.7549, "lng": -122.4394, "rate": 0.25, "speed": 25.0, "range": 50.0, "serviced_days_ago": 5, "qr": "SWIFT005"},
]

USERS = [
    {"id": DEMO_USER_ID, "name": "John Doe", "email": "john.doe@example.com", "phone": "+1 (555) 123-4567", "rating": 4.8, "total_rides": 47, "member_days": 365},
    {"id": "user_002", "name": "Jane Roe", "email": "jane.roe@example.com", "phone": "+1 (555) 987-6543", "rating": 4.6, "total_rides": 12, "member_days": 90},
]

# (user, scooter, code) rides left open after seeding
OPEN_RIDES = [("user_002", "scooter_003", "SWIFT003")]


def seed(ledger: RideLedger, users: UserRepository) -> None:
    now = utcnow()

    for u in USERS:
        users.add(
            User(
                id=u["id"],
                name=u["name"],
                email=u["email"],
                phone_number=u["phone"],
                rating=u["rating"],
                total_rides=u["total_rides"],
                member_since=now - timedelta(days=u["member_days"]),
            )
        )
    users.add_payment_method(
        DEMO_USER_ID,
        PaymentType.CREDIT_CARD,
        card_number="4111111111111234",
        expiry_date="12/25",
        is_default=True,
    )
    users.add_payment_method(DEMO_USER_ID, PaymentType.APPLE_PAY)
    logger.info("Seeded %d users", len(USERS))

    for s in SCOOTERS:
        ledger.register_scooter(
            Scooter(
                id=s["id"],
                qr_code=s["qr"],
                location=Location(s["lat"], s["lng"]),
                hourly_rate=s["rate"],
                model=s["model"],
                battery_level=s["battery"],
                max_speed=s["speed"],
                range_km=s["range"],
                last_maintenance=now - timedelta(days=s["serviced_days_ago"]),
            )
        )
    logger.info("Seeded %d scooters", len(SCOOTERS))

    for user_id, scooter_id, code in OPEN_RIDES:
        parked = ledger.get_scooter(scooter_id).location
        ledger.start_ride(user_id, scooter_id, code, parked)
    logger.info("Seeded %d open rides", len(OPEN_RIDES))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    users = UserRepository()
    ledger = RideLedger(accounts=users)
    seed(ledger, users)

    for scooter in ledger.list_scooters():
        state = "available" if scooter.is_available else "in use"
        print(
            f"  {scooter.id}  {scooter.qr_code}  {scooter.model:<13} "
            f"{scooter.battery_level:>3}%  ${scooter.hourly_rate:.2f}/min  {state}"
        )


if __name__ == "__main__":
    main()
