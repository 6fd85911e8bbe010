"""
Rider session -- the app-side flow around the ledger.

Wires the hardware / vendor ports (location, QR scanner, payment gateway)
to ledger calls for one rider:

* ``nearby``  -- scooters around the rider's current position
* ``unlock``  -- scan, start the ride, re-prompt on a wrong code
* ``finish``  -- end the ride where the rider stands, then charge
* ``pause`` / ``resume`` / ``cancel``

Retry policy lives here, not in the ledger: only ``InvalidCode`` is
re-prompted, every other ledger error goes straight back to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from src.domain.entities import Location, Payment, Ride, Scooter
from src.domain.errors import InvalidCode
from src.domain.ports import LocationProvider, PaymentGateway, QRCodeReader
from src.infrastructure.repositories import UserRepository
from src.services.ledger import RideLedger

logger = logging.getLogger(__name__)


class LocationUnavailable(RuntimeError):
    pass


class NoActiveRide(RuntimeError):
    pass


class ForeignPaymentMethod(PermissionError):
    pass


@dataclass(frozen=True)
class Checkout:
    ride: Ride
    payment: Optional[Payment] = None

    @property
    def paid(self) -> bool:
        return self.payment is not None and self.payment.succeeded


class RiderSession:
    def __init__(
        self,
        ledger: RideLedger,
        user_id: str,
        *,
        location: LocationProvider,
        scanner: QRCodeReader,
        gateway: PaymentGateway,
        users: Optional[UserRepository] = None,
        unlock_attempts: int = 3,
    ):
        self.ledger = ledger
        self.user_id = user_id
        self.location = location
        self.scanner = scanner
        self.gateway = gateway
        self.users = users
        self.unlock_attempts = max(1, unlock_attempts)
        self.active_ride: Optional[Ride] = None

    def nearby(self, radius_m: float = 1_000.0) -> list[Scooter]:
        here = self.location.current_location()
        if here is None:
            return []
        return self.ledger.nearby_available_scooters(here, radius_m)

    def unlock(self, scooter_id: str) -> Ride:
        if self.active_ride is not None:
            raise RuntimeError(f"Ride {self.active_ride.id} is still open")
        here = self._here()

        attempt = 1
        while True:
            code = self.scanner.scan()
            try:
                ride = self.ledger.start_ride(self.user_id, scooter_id, code, here)
            except InvalidCode:
                if attempt >= self.unlock_attempts:
                    raise
                logger.info(
                    "Wrong code for %s (attempt %d/%d), scanning again",
                    scooter_id, attempt, self.unlock_attempts,
                )
                attempt += 1
                continue
            self.active_ride = ride
            return ride

    def pause(self) -> Ride:
        self.active_ride = self.ledger.pause_ride(self._ride_id())
        return self.active_ride

    def resume(self) -> Ride:
        self.active_ride = self.ledger.resume_ride(self._ride_id())
        return self.active_ride

    def cancel(self) -> Ride:
        ride = self.ledger.cancel_ride(self._ride_id())
        self.active_ride = None
        return ride

    def finish(self, payment_method_id: Optional[str] = None) -> Checkout:
        """End the ride at the current location and charge for it.

        Uses *payment_method_id* or the rider's default method.  A method
        on another rider's account is refused before the ride is ended.  A
        declined charge leaves the ride completed but unpaid.
        """
        ride_id = self._ride_id()
        if payment_method_id is not None:
            self._check_owner(payment_method_id)

        ride = self.ledger.end_ride(ride_id, self._here())
        self.active_ride = None

        method_id = payment_method_id or self._default_method_id()
        if method_id is None:
            logger.warning("Ride %s completed without a payment method", ride.id)
            return Checkout(ride)

        payment = self.gateway.charge(
            method_id,
            ride.cost,
            ride_id=ride.id,
            description=f"Scooter ride {ride.id}",
        )
        if payment.succeeded:
            ride = self.ledger.record_payment(ride.id, payment.id)
        return Checkout(ride, payment)

    # ── Internals ─────────────────────────────────────────────────────

    def _here(self) -> Location:
        here = self.location.current_location()
        if here is None:
            raise LocationUnavailable("Current location is not available")
        return here

    def _ride_id(self) -> str:
        if self.active_ride is None:
            raise NoActiveRide("No ride in progress")
        return self.active_ride.id

    def _check_owner(self, payment_method_id: str) -> None:
        if self.users is None:
            return
        owner = self.users.owner_of(payment_method_id)
        if owner is not None and owner != self.user_id:
            raise ForeignPaymentMethod(
                f"Payment method {payment_method_id} does not belong to {self.user_id}"
            )

    def _default_method_id(self) -> Optional[str]:
        if self.users is None:
            return None
        method = self.users.default_payment_method(self.user_id)
        return method.id if method else None
