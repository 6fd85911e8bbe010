"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Ride``: enforces valid lifecycle transitions
  (ACTIVE <-> PAUSED -> COMPLETED | CANCELLED).
- ``Ride.finalize`` is the single place terminal fields are written.
- ``User.record_completed_ride`` keeps ``total_rides`` monotonic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .enums import (
    OPEN_STATUSES,
    RIDE_TRANSITIONS,
    PaymentStatus,
    PaymentType,
    RideStatus,
)
from .errors import InvalidStateTransition


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Scooter:
    id: str
    qr_code: str
    location: Location
    hourly_rate: float  # currency per minute
    model: str = "SwiftX Pro"
    battery_level: int = 100
    is_available: bool = True
    max_speed: float = 25.0
    range_km: float = 50.0
    last_maintenance: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.hourly_rate <= 0:
            raise ValueError("hourly_rate must be positive")
        if not 0 <= self.battery_level <= 100:
            raise ValueError("battery_level must be within 0-100")
        if not self.qr_code:
            raise ValueError("qr_code must not be empty")


@dataclass
class Ride:
    id: str
    user_id: str
    scooter_id: str
    start_time: datetime
    start_location: Location
    status: RideStatus = RideStatus.ACTIVE
    end_time: Optional[datetime] = None
    end_location: Optional[Location] = None
    distance: float = 0.0  # km
    duration: float = 0.0  # seconds
    cost: float = 0.0
    payment_id: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def can_transition_to(self, new_status: RideStatus) -> bool:
        return new_status in RIDE_TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status: RideStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        if not self.can_transition_to(new_status):
            raise InvalidStateTransition(
                f"Cannot transition ride {self.id} from "
                f"{self.status.value} to {new_status.value}"
            )
        self.status = new_status

    def finalize(
        self,
        status: RideStatus,
        *,
        end_time: datetime,
        end_location: Optional[Location],
        distance: float,
        duration: float,
        cost: float,
    ) -> None:
        """Write the terminal fields together with the terminal status."""
        self.transition_to(status)
        self.end_time = end_time
        self.end_location = end_location
        self.distance = distance
        self.duration = duration
        self.cost = cost


@dataclass
class PaymentMethod:
    id: str
    type: PaymentType
    last_four_digits: str = ""
    expiry_date: str = ""
    is_default: bool = False

    def __post_init__(self) -> None:
        if not self.type.is_card:
            self.last_four_digits = ""


@dataclass
class User:
    id: str
    name: str
    email: str
    phone_number: str = ""
    profile_image: Optional[str] = None
    rating: float = 0.0
    total_rides: int = 0
    member_since: datetime = field(default_factory=utcnow)
    payment_methods: list[PaymentMethod] = field(default_factory=list)

    def record_completed_ride(self) -> None:
        self.total_rides += 1


@dataclass(frozen=True)
class Payment:
    id: str
    ride_id: str
    amount: float
    currency: str
    status: PaymentStatus
    payment_method_id: str
    timestamp: datetime
    description: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == PaymentStatus.COMPLETED
