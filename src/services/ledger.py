"""
Ride Ledger
===========

Owns the authoritative scooter and ride collections and enforces the
availability invariant:

    scooter.is_available  <=>  no ACTIVE / PAUSED ride references it

Concurrency safety
------------------
* **Per-scooter lock** around the check-then-flip in ``start_ride`` so two
  simultaneous unlocks of one scooter cannot both observe it available.
* **Per-ride lock** around every status change so pause / resume / end /
  cancel on one ride are serialised and a lost race is reported, not
  overwritten.
* Lock order is always ride -> scooter.  ``start_ride`` only holds the
  scooter lock, and the ride it creates is not visible to anyone else
  until the lock is released.
* ``_index_lock`` guards the id maps themselves so reads can snapshot them
  while other threads register scooters or start rides.

Every operation validates before it mutates, so a raised ``LedgerError``
leaves the ledger exactly as it was.  Callers receive copies of the
entities; the ledger's own records are never handed out.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional

from src.domain.distance import distance_km, distance_m
from src.domain.entities import Location, Ride, Scooter, as_utc, utcnow
from src.domain.enums import RideStatus
from src.domain.errors import (
    DuplicateScooter,
    InvalidCode,
    InvalidStateTransition,
    InvalidTime,
    NotFound,
    ScooterUnavailable,
)
from src.domain.ports import AccountDirectory
from src.domain.pricing import FareEngine, FareQuote, to_cents
from src.domain.spatial import ScooterGrid
from src.infrastructure.locks import LockRegistry

logger = logging.getLogger(__name__)


def _new_ride_id() -> str:
    return f"ride_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class RideSummary:
    user_id: str
    total_rides: int
    total_distance_km: float
    total_cost: float


class RideLedger:
    def __init__(
        self,
        *,
        accounts: Optional[AccountDirectory] = None,
        fares: Optional[FareEngine] = None,
        grid: Optional[ScooterGrid] = None,
        locks: Optional[LockRegistry] = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = _new_ride_id,
    ):
        self.accounts = accounts
        self.fares = fares or FareEngine()
        self._grid = grid or ScooterGrid()
        self._locks = locks or LockRegistry()
        self._clock = clock
        self._id_factory = id_factory

        self._scooters: dict[str, Scooter] = {}
        self._qr_codes: dict[str, str] = {}
        self._rides: dict[str, Ride] = {}
        self._rides_by_user: dict[str, list[str]] = defaultdict(list)
        self._index_lock = threading.Lock()

    # ── Fleet ─────────────────────────────────────────────────────────

    def register_scooter(self, scooter: Scooter) -> Scooter:
        with self._index_lock:
            if scooter.id in self._scooters:
                raise DuplicateScooter(f"Scooter {scooter.id} already registered")
            owner = self._qr_codes.get(scooter.qr_code)
            if owner is not None:
                raise DuplicateScooter(
                    f"QR code {scooter.qr_code} already belongs to {owner}"
                )
            record = replace(scooter)
            self._scooters[record.id] = record
            self._qr_codes[record.qr_code] = record.id
        self._grid.add(record.id, record.location)
        logger.debug("Registered scooter %s (%s)", record.id, record.qr_code)
        return replace(record)

    def get_scooter(self, scooter_id: str) -> Scooter:
        return replace(self._require_scooter(scooter_id))

    def list_scooters(self) -> list[Scooter]:
        with self._index_lock:
            fleet = list(self._scooters.values())
        return [replace(s) for s in sorted(fleet, key=lambda s: s.id)]

    def quote(self, scooter_id: str, minutes: int = 15) -> FareQuote:
        scooter = self._require_scooter(scooter_id)
        return self.fares.quote(scooter.hourly_rate, minutes)

    # ── Ride lifecycle ────────────────────────────────────────────────

    def start_ride(
        self,
        user_id: str,
        scooter_id: str,
        presented_code: str,
        start_location: Location,
    ) -> Ride:
        with self._locks.lock(f"scooter:{scooter_id}"):
            scooter = self._require_scooter(scooter_id)
            if presented_code != scooter.qr_code:
                logger.warning(
                    "Rejected unlock of %s by %s: code mismatch", scooter_id, user_id
                )
                raise InvalidCode(f"Code does not unlock scooter {scooter_id}")
            if not scooter.is_available:
                logger.warning(
                    "Rejected unlock of %s by %s: scooter in use", scooter_id, user_id
                )
                raise ScooterUnavailable(f"Scooter {scooter_id} is not available")

            with self._index_lock:
                ride_id = self._id_factory()
                while ride_id in self._rides:
                    ride_id = self._id_factory()
                ride = Ride(
                    id=ride_id,
                    user_id=user_id,
                    scooter_id=scooter_id,
                    start_time=as_utc(self._clock()),
                    start_location=start_location,
                )
                self._rides[ride.id] = ride
                self._rides_by_user[user_id].append(ride.id)
            scooter.is_available = False

        logger.info("Ride %s started: user=%s scooter=%s", ride.id, user_id, scooter_id)
        return replace(ride)

    def pause_ride(self, ride_id: str) -> Ride:
        return self._change_status(ride_id, RideStatus.PAUSED, RideStatus.ACTIVE)

    def resume_ride(self, ride_id: str) -> Ride:
        return self._change_status(ride_id, RideStatus.ACTIVE, RideStatus.PAUSED)

    def end_ride(
        self,
        ride_id: str,
        end_location: Location,
        end_time: Optional[datetime] = None,
    ) -> Ride:
        with self._locks.lock(f"ride:{ride_id}"):
            ride = self._require_ride(ride_id)
            self._check_transition(ride, RideStatus.COMPLETED)
            finished = as_utc(end_time) if end_time is not None else as_utc(self._clock())
            if finished < ride.start_time:
                raise InvalidTime(
                    f"Ride {ride_id} cannot end before it started "
                    f"({finished.isoformat()} < {ride.start_time.isoformat()})"
                )

            with self._locks.lock(f"scooter:{ride.scooter_id}"):
                scooter = self._scooters[ride.scooter_id]
                duration = (finished - ride.start_time).total_seconds()
                ride.finalize(
                    RideStatus.COMPLETED,
                    end_time=finished,
                    end_location=end_location,
                    distance=distance_km(ride.start_location, end_location),
                    duration=duration,
                    cost=self.fares.ride_fare(duration, scooter.hourly_rate),
                )
                scooter.location = end_location
                scooter.is_available = True
                self._grid.move(scooter.id, end_location)

            if self.accounts is not None:
                self.accounts.record_completed_ride(ride.user_id)

        logger.info(
            "Ride %s completed: %.0fs, %.3f km, cost %.2f",
            ride.id, ride.duration, ride.distance, ride.cost,
        )
        return replace(ride)

    def cancel_ride(self, ride_id: str) -> Ride:
        with self._locks.lock(f"ride:{ride_id}"):
            ride = self._require_ride(ride_id)
            self._check_transition(ride, RideStatus.CANCELLED)

            with self._locks.lock(f"scooter:{ride.scooter_id}"):
                scooter = self._scooters[ride.scooter_id]
                ride.finalize(
                    RideStatus.CANCELLED,
                    end_time=max(as_utc(self._clock()), ride.start_time),
                    end_location=None,
                    distance=0.0,
                    duration=0.0,
                    cost=self.fares.cancellation_fare(0.0, scooter.hourly_rate),
                )
                scooter.is_available = True

        logger.info("Ride %s cancelled", ride.id)
        return replace(ride)

    def record_payment(self, ride_id: str, payment_id: str) -> Ride:
        """Attach the charge for a completed ride.  Allowed once."""
        with self._locks.lock(f"ride:{ride_id}"):
            ride = self._require_ride(ride_id)
            if ride.status != RideStatus.COMPLETED:
                raise InvalidStateTransition(
                    f"Ride {ride_id} is {ride.status.value}; only completed rides are paid"
                )
            if ride.payment_id is not None:
                raise InvalidStateTransition(
                    f"Ride {ride_id} already paid by {ride.payment_id}"
                )
            ride.payment_id = payment_id

        logger.info("Ride %s paid: payment=%s", ride_id, payment_id)
        return replace(ride)

    # ── Queries ───────────────────────────────────────────────────────

    def get_ride(self, ride_id: str) -> Ride:
        with self._locks.lock(f"ride:{ride_id}"):
            return replace(self._require_ride(ride_id))

    def list_rides_for_user(self, user_id: str) -> list[Ride]:
        with self._index_lock:
            ride_ids = list(self._rides_by_user.get(user_id, ()))
            rides = [self._rides[rid] for rid in ride_ids]
        return [replace(r) for r in rides]

    def open_rides(self) -> list[Ride]:
        with self._index_lock:
            rides = list(self._rides.values())
        return [replace(r) for r in rides if r.is_open]

    def ride_history(
        self,
        user_id: str,
        status: Optional[RideStatus] = None,
        search: Optional[str] = None,
    ) -> list[Ride]:
        """Newest first, optionally filtered by status and id substring."""
        rides = self.list_rides_for_user(user_id)
        if status is not None:
            rides = [r for r in rides if r.status == status]
        if search:
            needle = search.casefold()
            rides = [
                r
                for r in rides
                if needle in r.id.casefold() or needle in r.scooter_id.casefold()
            ]
        # rides arrive oldest first; reversing first keeps later starts ahead on ties
        return sorted(reversed(rides), key=lambda r: r.start_time, reverse=True)

    def ride_summary(self, user_id: str) -> RideSummary:
        rides = self.list_rides_for_user(user_id)
        return RideSummary(
            user_id=user_id,
            total_rides=len(rides),
            total_distance_km=round(sum(r.distance for r in rides), 3),
            total_cost=to_cents(sum(r.cost for r in rides)),
        )

    def nearby_with_distance(
        self, location: Location, radius_meters: float
    ) -> list[tuple[Scooter, float]]:
        """Available scooters within the radius with their distance in metres."""
        if radius_meters < 0:
            raise ValueError("radius_meters must not be negative")

        candidates = self._grid.candidates(location, radius_meters)
        with self._index_lock:
            if candidates is None:
                pool = list(self._scooters.values())
            else:
                pool = [self._scooters[i] for i in candidates if i in self._scooters]

        hits: list[tuple[float, str, Scooter]] = []
        for scooter in pool:
            snapshot = replace(scooter)
            if not snapshot.is_available:
                continue
            meters = distance_m(location, snapshot.location)
            if meters <= radius_meters:
                hits.append((meters, snapshot.id, snapshot))

        hits.sort(key=lambda hit: (hit[0], hit[1]))
        return [(scooter, meters) for meters, _, scooter in hits]

    def nearby_available_scooters(
        self, location: Location, radius_meters: float
    ) -> list[Scooter]:
        return [s for s, _ in self.nearby_with_distance(location, radius_meters)]

    # ── Internals ─────────────────────────────────────────────────────

    def _require_scooter(self, scooter_id: str) -> Scooter:
        scooter = self._scooters.get(scooter_id)
        if scooter is None:
            raise NotFound(f"Scooter {scooter_id} not found")
        return scooter

    def _require_ride(self, ride_id: str) -> Ride:
        ride = self._rides.get(ride_id)
        if ride is None:
            raise NotFound(f"Ride {ride_id} not found")
        return ride

    @staticmethod
    def _check_transition(ride: Ride, new_status: RideStatus) -> None:
        if not ride.can_transition_to(new_status):
            raise InvalidStateTransition(
                f"Cannot transition ride {ride.id} from "
                f"{ride.status.value} to {new_status.value}"
            )

    def _change_status(
        self, ride_id: str, new_status: RideStatus, required: RideStatus
    ) -> Ride:
        with self._locks.lock(f"ride:{ride_id}"):
            ride = self._require_ride(ride_id)
            if ride.status != required:
                raise InvalidStateTransition(
                    f"Cannot move ride {ride_id} to {new_status.value} "
                    f"while {ride.status.value}"
                )
            ride.transition_to(new_status)

        logger.info("Ride %s %s", ride_id, new_status.value.lower())
        return replace(ride)
