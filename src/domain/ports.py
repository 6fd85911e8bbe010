"""
Collaborator interfaces (ports).

The ledger only depends on ``AccountDirectory``.  Location, QR scanning
and payment are hardware- or vendor-bound and are consumed by the
presentation layer, which calls into the ledger with plain values.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from .entities import Location, Payment


@runtime_checkable
class LocationProvider(Protocol):
    def current_location(self) -> Optional[Location]: ...


@runtime_checkable
class QRCodeReader(Protocol):
    def scan(self) -> str: ...


@runtime_checkable
class PaymentGateway(Protocol):
    def charge(
        self,
        payment_method_id: str,
        amount: float,
        *,
        ride_id: str = "",
        description: str = "",
    ) -> Payment: ...


@runtime_checkable
class AccountDirectory(Protocol):
    def record_completed_ride(self, user_id: str) -> None: ...
