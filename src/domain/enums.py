"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.ACTIVE: {
        RideStatus.PAUSED,
        RideStatus.COMPLETED,
        RideStatus.CANCELLED,
    },
    RideStatus.PAUSED: {
        RideStatus.ACTIVE,
        RideStatus.COMPLETED,
        RideStatus.CANCELLED,
    },
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}

OPEN_STATUSES = frozenset({RideStatus.ACTIVE, RideStatus.PAUSED})


class PaymentType(str, enum.Enum):
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    APPLE_PAY = "APPLE_PAY"
    PAYPAL = "PAYPAL"

    @property
    def is_card(self) -> bool:
        return self in (PaymentType.CREDIT_CARD, PaymentType.DEBIT_CARD)


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
