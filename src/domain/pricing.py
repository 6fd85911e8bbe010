"""
Fare Engine  (Strategy Pattern)
===============================

Formula
-------
Cost = Rate_Per_Minute x Duration_Minutes, rounded to the cent (half-up)

* Fares are strictly time-based; distance never enters the formula.
* There is no minimum fare: a zero-length ride costs 0.00.
* Cancelled rides are never charged.
* Quotes shown before unlock add a flat service fee on top of an
  estimated ride length.  The fee is not part of the final ride cost.

Money is computed with ``Decimal`` so that e.g. 0.25 x 15 is exactly 3.75.

Complexity: O(1) per fare.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
SECONDS_PER_MINUTE = Decimal(60)


def to_cents(amount: Decimal | float) -> float:
    """Round *amount* to two decimals using round-half-up."""
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return float(amount.quantize(CENT, rounding=ROUND_HALF_UP))


# ── Strategy hierarchy ────────────────────────────────────────────────


class FareStrategy(ABC):
    @abstractmethod
    def calculate(self, duration_seconds: float, rate_per_minute: float) -> float: ...


class PerMinuteFare(FareStrategy):
    def calculate(self, duration_seconds: float, rate_per_minute: float) -> float:
        if duration_seconds < 0:
            raise ValueError("duration must not be negative")
        minutes = Decimal(str(duration_seconds)) / SECONDS_PER_MINUTE
        return to_cents(Decimal(str(rate_per_minute)) * minutes)


class NoCharge(FareStrategy):
    """Used for cancelled rides."""

    def calculate(self, duration_seconds: float, rate_per_minute: float) -> float:
        return 0.0


# ── Quote ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FareQuote:
    rate_per_minute: float
    minutes: int
    ride_estimate: float
    service_fee: float
    total: float
    currency: str


# ── Engine facade ─────────────────────────────────────────────────────


class FareEngine:
    """High-level API used by the ledger and the API layer."""

    def __init__(self, service_fee: float = 0.50, currency: str = "USD"):
        self.service_fee = service_fee
        self.currency = currency
        self._ride = PerMinuteFare()
        self._cancelled = NoCharge()

    def ride_fare(self, duration_seconds: float, rate_per_minute: float) -> float:
        return self._ride.calculate(duration_seconds, rate_per_minute)

    def cancellation_fare(self, duration_seconds: float, rate_per_minute: float) -> float:
        return self._cancelled.calculate(duration_seconds, rate_per_minute)

    def quote(self, rate_per_minute: float, minutes: int = 15) -> FareQuote:
        if minutes < 0:
            raise ValueError("minutes must not be negative")
        estimate = self.ride_fare(minutes * 60, rate_per_minute)
        fee = to_cents(self.service_fee)
        return FareQuote(
            rate_per_minute=rate_per_minute,
            minutes=minutes,
            ride_estimate=estimate,
            service_fee=fee,
            total=to_cents(Decimal(str(estimate)) + Decimal(str(fee))),
            currency=self.currency,
        )
