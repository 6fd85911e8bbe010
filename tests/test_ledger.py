"""Tests for the ride ledger: lifecycle, fares, invariants and queries."""

from datetime import timedelta

import pytest

from src.domain.entities import Location
from src.domain.enums import RideStatus
from src.domain.errors import (
    DuplicateScooter,
    InvalidCode,
    InvalidStateTransition,
    InvalidTime,
    NotFound,
    ScooterUnavailable,
)
from src.services.ledger import RideLedger
from tests.conftest import ORIGIN, T0, FakeClock, make_scooter, north_of


def _assert_availability_invariant(ledger: RideLedger) -> None:
    open_scooters = {r.scooter_id for r in ledger.open_rides()}
    for scooter in ledger.list_scooters():
        assert scooter.is_available == (scooter.id not in open_scooters)


class TestRegistration:
    def test_duplicate_id_rejected(self, ledger):
        with pytest.raises(DuplicateScooter):
            ledger.register_scooter(make_scooter("scooter_001", "OTHER"))

    def test_duplicate_qr_code_rejected(self, ledger):
        with pytest.raises(DuplicateScooter):
            ledger.register_scooter(make_scooter("scooter_999", "SWIFT001"))
        with pytest.raises(NotFound):
            ledger.get_scooter("scooter_999")

    def test_rate_must_be_positive(self):
        with pytest.raises(ValueError):
            make_scooter("s", "Q", hourly_rate=0)

    def test_battery_bounds(self):
        with pytest.raises(ValueError):
            make_scooter("s", "Q", battery_level=101)

    def test_returned_scooter_is_a_copy(self, ledger):
        scooter = ledger.get_scooter("scooter_001")
        scooter.is_available = False
        assert ledger.get_scooter("scooter_001").is_available


class TestStartRide:
    def test_start_creates_active_ride(self, ledger, clock):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)

        assert ride.status == RideStatus.ACTIVE
        assert ride.start_time == T0
        assert ride.start_location == ORIGIN
        assert ride.end_time is None
        assert ride.end_location is None
        assert ride.distance == 0.0
        assert ride.duration == 0.0
        assert ride.cost == 0.0
        assert ride.payment_id is None
        assert not ledger.get_scooter("scooter_001").is_available

    def test_ride_ids_are_unique(self, ledger):
        a = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        b = ledger.start_ride("user_001", "scooter_002", "SWIFT002", ORIGIN)
        assert a.id != b.id

    def test_unknown_scooter(self, ledger):
        with pytest.raises(NotFound):
            ledger.start_ride("user_001", "scooter_404", "SWIFT001", ORIGIN)

    @pytest.mark.parametrize("code", ["SWIFT002", "swift001", "SWIFT001 ", ""])
    def test_wrong_code_never_mutates(self, ledger, code):
        with pytest.raises(InvalidCode):
            ledger.start_ride("user_001", "scooter_001", code, ORIGIN)

        assert ledger.get_scooter("scooter_001").is_available
        assert ledger.list_rides_for_user("user_001") == []

    def test_code_checked_before_availability(self, ledger):
        ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        with pytest.raises(InvalidCode):
            ledger.start_ride("user_002", "scooter_001", "WRONG", ORIGIN)

    def test_in_use_scooter_is_unavailable(self, ledger):
        ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        with pytest.raises(ScooterUnavailable):
            ledger.start_ride("user_002", "scooter_001", "SWIFT001", ORIGIN)
        assert ledger.list_rides_for_user("user_002") == []


class TestPauseResume:
    def test_pause_and_resume(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        assert ledger.pause_ride(ride.id).status == RideStatus.PAUSED
        assert not ledger.get_scooter("scooter_001").is_available
        assert ledger.resume_ride(ride.id).status == RideStatus.ACTIVE

    def test_pause_twice_fails(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        ledger.pause_ride(ride.id)
        with pytest.raises(InvalidStateTransition):
            ledger.pause_ride(ride.id)

    def test_resume_active_fails(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        with pytest.raises(InvalidStateTransition):
            ledger.resume_ride(ride.id)

    def test_unknown_ride(self, ledger):
        with pytest.raises(NotFound):
            ledger.pause_ride("ride_missing")
        with pytest.raises(NotFound):
            ledger.resume_ride("ride_missing")

    def test_pause_after_end_fails(self, ledger, clock):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        ledger.end_ride(ride.id, ORIGIN, clock.advance(minutes=1))
        with pytest.raises(InvalidStateTransition):
            ledger.pause_ride(ride.id)


class TestEndRide:
    def test_fifteen_minutes_at_quarter_rate(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        done = ledger.end_ride(ride.id, ORIGIN, T0 + timedelta(seconds=900))

        assert done.cost == 3.75
        assert done.duration == 900.0
        assert done.distance == 0.0

    def test_one_km_ten_minute_ride(self, ledger):
        start = ledger.get_scooter("scooter_002").location
        ride = ledger.start_ride("user_001", "scooter_002", "SWIFT002", start)
        assert not ledger.get_scooter("scooter_002").is_available

        end = north_of(start, 1.0)
        done = ledger.end_ride(ride.id, end, T0 + timedelta(minutes=10))

        assert done.status == RideStatus.COMPLETED
        assert done.cost == 3.00
        assert done.distance == pytest.approx(1.0, abs=0.01)
        assert done.end_location == end
        assert done.end_time == T0 + timedelta(minutes=10)
        assert ledger.get_scooter("scooter_002").is_available

    def test_scooter_is_parked_at_end_location(self, ledger, clock):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        end = north_of(ORIGIN, 3.0)
        ledger.end_ride(ride.id, end, clock.advance(minutes=12))
        assert ledger.get_scooter("scooter_001").location == end

    def test_paused_ride_can_end_and_pause_time_is_billed(self, ledger, clock):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        clock.advance(minutes=5)
        ledger.pause_ride(ride.id)
        done = ledger.end_ride(ride.id, ORIGIN, clock.advance(minutes=5))
        assert done.cost == 2.50

    def test_default_end_time_is_now(self, ledger, clock):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        clock.advance(minutes=4)
        done = ledger.end_ride(ride.id, ORIGIN)
        assert done.duration == 240.0
        assert done.cost == 1.00

    def test_naive_end_time_is_treated_as_utc(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        naive = (T0 + timedelta(minutes=2)).replace(tzinfo=None)
        assert ledger.end_ride(ride.id, ORIGIN, naive).duration == 120.0

    def test_zero_length_ride_costs_nothing(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        assert ledger.end_ride(ride.id, ORIGIN, T0).cost == 0.0

    def test_end_before_start_fails_without_mutation(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        with pytest.raises(InvalidTime):
            ledger.end_ride(ride.id, ORIGIN, T0 - timedelta(seconds=1))

        still_open = ledger.get_ride(ride.id)
        assert still_open.status == RideStatus.ACTIVE
        assert still_open.end_time is None
        assert not ledger.get_scooter("scooter_001").is_available

    def test_second_end_fails_and_keeps_fare(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        first = ledger.end_ride(ride.id, north_of(ORIGIN, 1.0), T0 + timedelta(minutes=15))

        with pytest.raises(InvalidStateTransition):
            ledger.end_ride(ride.id, north_of(ORIGIN, 5.0), T0 + timedelta(hours=2))

        again = ledger.get_ride(ride.id)
        assert again.cost == first.cost == 3.75
        assert again.distance == first.distance
        assert again.duration == first.duration
        assert again.end_location == first.end_location

    def test_unknown_ride(self, ledger):
        with pytest.raises(NotFound):
            ledger.end_ride("ride_missing", ORIGIN, T0)

    def test_completion_increments_total_rides(self, ledger, users):
        before = users.get_by_id("user_001").total_rides
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        ledger.end_ride(ride.id, ORIGIN, T0 + timedelta(minutes=1))
        assert users.get_by_id("user_001").total_rides == before + 1

    def test_unknown_user_can_still_complete(self, ledger):
        ride = ledger.start_ride("guest", "scooter_001", "SWIFT001", ORIGIN)
        assert ledger.end_ride(ride.id, ORIGIN, T0).status == RideStatus.COMPLETED

    def test_returned_ride_cannot_alter_ledger(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        done = ledger.end_ride(ride.id, ORIGIN, T0 + timedelta(minutes=15))
        done.cost = 0.0
        assert ledger.get_ride(ride.id).cost == 3.75


class TestCancelRide:
    @pytest.mark.parametrize("pause_first", [False, True])
    def test_cancel_is_free_and_releases_scooter(self, ledger, clock, pause_first):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        clock.advance(hours=3)
        if pause_first:
            ledger.pause_ride(ride.id)

        cancelled = ledger.cancel_ride(ride.id)

        assert cancelled.status == RideStatus.CANCELLED
        assert cancelled.cost == 0.0
        assert cancelled.distance == 0.0
        assert cancelled.duration == 0.0
        assert cancelled.end_time == clock.now
        assert ledger.get_scooter("scooter_001").is_available

    def test_cancel_does_not_count_as_ride(self, ledger, users):
        before = users.get_by_id("user_001").total_rides
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        ledger.cancel_ride(ride.id)
        assert users.get_by_id("user_001").total_rides == before

    def test_cancel_terminal_ride_fails(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        ledger.cancel_ride(ride.id)
        with pytest.raises(InvalidStateTransition):
            ledger.cancel_ride(ride.id)
        with pytest.raises(InvalidStateTransition):
            ledger.end_ride(ride.id, ORIGIN, T0)

    def test_cancel_completed_ride_fails(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        ledger.end_ride(ride.id, ORIGIN, T0 + timedelta(minutes=15))
        with pytest.raises(InvalidStateTransition):
            ledger.cancel_ride(ride.id)
        assert ledger.get_ride(ride.id).cost == 3.75

    def test_unknown_ride(self, ledger):
        with pytest.raises(NotFound):
            ledger.cancel_ride("ride_missing")

    def test_scooter_can_be_reused_after_cancel(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        ledger.cancel_ride(ride.id)
        again = ledger.start_ride("user_002", "scooter_001", "SWIFT001", ORIGIN)
        assert again.status == RideStatus.ACTIVE


class TestPaymentRecording:
    def test_record_payment_once(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        ledger.end_ride(ride.id, ORIGIN, T0 + timedelta(minutes=15))

        paid = ledger.record_payment(ride.id, "pay_1")
        assert paid.payment_id == "pay_1"

        with pytest.raises(InvalidStateTransition):
            ledger.record_payment(ride.id, "pay_2")
        assert ledger.get_ride(ride.id).payment_id == "pay_1"

    def test_open_ride_cannot_be_paid(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        with pytest.raises(InvalidStateTransition):
            ledger.record_payment(ride.id, "pay_1")

    def test_cancelled_ride_cannot_be_paid(self, ledger):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        ledger.cancel_ride(ride.id)
        with pytest.raises(InvalidStateTransition):
            ledger.record_payment(ride.id, "pay_1")


class TestNearby:
    def test_orders_by_distance(self, ledger):
        found = ledger.nearby_available_scooters(ORIGIN, 5_000)
        assert [s.id for s in found] == ["scooter_001", "scooter_002", "scooter_003"]

    def test_radius_excludes_far_scooters(self, ledger):
        found = ledger.nearby_available_scooters(ORIGIN, 1_000)
        assert [s.id for s in found] == ["scooter_001", "scooter_002"]

    def test_excludes_unavailable_scooters_within_radius(self, ledger):
        ledger.start_ride("user_001", "scooter_002", "SWIFT002", ORIGIN)
        found = ledger.nearby_available_scooters(ORIGIN, 5_000)
        assert "scooter_002" not in [s.id for s in found]

    def test_distances_strictly_increase(self, ledger):
        hits = ledger.nearby_with_distance(ORIGIN, 5_000)
        distances = [d for _, d in hits]
        assert distances == sorted(distances)
        assert len(set(distances)) == len(distances)

    def test_ties_break_by_id(self, clock):
        ledger = RideLedger(clock=clock)
        spot = north_of(ORIGIN, 0.2)
        for scooter_id, code in [("b", "QB"), ("a", "QA"), ("c", "QC")]:
            ledger.register_scooter(make_scooter(scooter_id, code, spot))
        assert [s.id for s in ledger.nearby_available_scooters(ORIGIN, 500)] == ["a", "b", "c"]

    def test_infinite_radius_returns_whole_fleet(self, ledger):
        found = ledger.nearby_available_scooters(ORIGIN, float("inf"))
        assert [s.id for s in found] == ["scooter_001", "scooter_002", "scooter_003"]

    def test_zero_radius_matches_exact_spot(self, ledger):
        assert [s.id for s in ledger.nearby_available_scooters(ORIGIN, 0)] == ["scooter_001"]

    def test_negative_radius_rejected(self, ledger):
        with pytest.raises(ValueError):
            ledger.nearby_available_scooters(ORIGIN, -1)

    def test_large_radius_scans_whole_fleet(self, ledger):
        far = Location(40.7128, -74.0060)
        ledger.register_scooter(make_scooter("nyc", "NYC1", far))
        found = ledger.nearby_available_scooters(ORIGIN, 5_000_000)
        assert found[-1].id == "nyc"

    def test_returned_scooter_follows_ride(self, ledger, clock):
        ride = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        ledger.end_ride(ride.id, north_of(ORIGIN, 3.0), clock.advance(minutes=9))
        assert "scooter_001" not in [
            s.id for s in ledger.nearby_available_scooters(ORIGIN, 1_000)
        ]


class TestHistory:
    def _history(self, ledger, clock):
        first = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        ledger.end_ride(first.id, north_of(ORIGIN, 1.0), clock.advance(minutes=15))
        second = ledger.start_ride("user_001", "scooter_002", "SWIFT002", ORIGIN)
        ledger.cancel_ride(second.id)
        clock.advance(minutes=1)
        third = ledger.start_ride("user_001", "scooter_003", "SWIFT003", ORIGIN)
        return first, second, third

    def test_list_rides_for_user(self, ledger, clock):
        first, second, third = self._history(ledger, clock)
        ids = [r.id for r in ledger.list_rides_for_user("user_001")]
        assert ids == [first.id, second.id, third.id]
        assert ledger.list_rides_for_user("nobody") == []

    def test_history_is_newest_first(self, ledger, clock):
        first, _, third = self._history(ledger, clock)
        history = ledger.ride_history("user_001")
        assert history[0].id == third.id
        assert history[-1].id == first.id

    def test_history_same_start_time_latest_first(self, ledger):
        first = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        second = ledger.start_ride("user_001", "scooter_002", "SWIFT002", ORIGIN)
        assert first.start_time == second.start_time
        history = ledger.ride_history("user_001")
        assert [r.id for r in history] == [second.id, first.id]

    def test_history_filters_by_status(self, ledger, clock):
        first, _, _ = self._history(ledger, clock)
        completed = ledger.ride_history("user_001", status=RideStatus.COMPLETED)
        assert [r.id for r in completed] == [first.id]

    def test_history_search_matches_scooter_id(self, ledger, clock):
        _, second, _ = self._history(ledger, clock)
        found = ledger.ride_history("user_001", search="SCOOTER_002")
        assert [r.id for r in found] == [second.id]

    def test_summary(self, ledger, clock):
        self._history(ledger, clock)
        summary = ledger.ride_summary("user_001")
        assert summary.total_rides == 3
        assert summary.total_cost == 3.75
        assert summary.total_distance_km == pytest.approx(1.0, abs=0.01)

    def test_open_rides(self, ledger, clock):
        _, _, third = self._history(ledger, clock)
        assert [r.id for r in ledger.open_rides()] == [third.id]


class TestQuote:
    def test_quote_uses_scooter_rate(self, ledger):
        quote = ledger.quote("scooter_002", minutes=15)
        assert quote.ride_estimate == 4.50
        assert quote.total == 5.00

    def test_quote_unknown_scooter(self, ledger):
        with pytest.raises(NotFound):
            ledger.quote("scooter_404")


class TestAvailabilityInvariant:
    def test_holds_through_mixed_lifecycle(self, ledger, clock):
        _assert_availability_invariant(ledger)

        a = ledger.start_ride("user_001", "scooter_001", "SWIFT001", ORIGIN)
        b = ledger.start_ride("user_002", "scooter_002", "SWIFT002", ORIGIN)
        _assert_availability_invariant(ledger)

        ledger.pause_ride(a.id)
        _assert_availability_invariant(ledger)

        ledger.end_ride(a.id, ORIGIN, clock.advance(minutes=3))
        _assert_availability_invariant(ledger)

        with pytest.raises(ScooterUnavailable):
            ledger.start_ride("user_003", "scooter_002", "SWIFT002", ORIGIN)
        _assert_availability_invariant(ledger)

        ledger.cancel_ride(b.id)
        _assert_availability_invariant(ledger)


class TestClock:
    def test_custom_id_factory(self):
        ids = iter(["ride_a", "ride_a", "ride_b"])
        ledger = RideLedger(clock=FakeClock(), id_factory=lambda: next(ids))
        ledger.register_scooter(make_scooter("s1", "Q1"))
        ledger.register_scooter(make_scooter("s2", "Q2"))
        assert ledger.start_ride("u", "s1", "Q1", ORIGIN).id == "ride_a"
        # duplicate id is skipped
        assert ledger.start_ride("u", "s2", "Q2", ORIGIN).id == "ride_b"
