"""
Ride lifecycle engine tests.

Runs the engine over the in-memory store with a fixed clock
(Monday 2 June 2025, 08:00 UTC).
"""

import pytest
from datetime import datetime, timedelta, timezone

from backend.app.domain.rides.events import RideEventKind
from backend.app.domain.rides.records import Actor, RideDetailsPatch
from backend.app.domain.rides.results import RideErrorCode, RideFailureReason
from backend.app.domain.rides.ride_service import RideService, recurring_departures, sunday_based_weekday
from backend.app.domain.rides.store import InMemoryRideStore
from backend.app.models.enums import UserRole
from backend.app.models.ride_enums import Location, RideStatus

MAIN_ROAD = Location.MAIN_ROAD
COLLEGE = Location.COLLEGE


def tomorrow(clock, hours=0):
    return clock.now + timedelta(days=1, hours=hours)


async def post(service, driver, clock, seats=3, **kwargs):
    result = await service.post_ride(driver, tomorrow(clock), MAIN_ROAD, COLLEGE, seats, **kwargs)
    assert result.success, result.message
    return result.ride


async def request(service, passenger, clock):
    result = await service.request_ride(passenger, tomorrow(clock), COLLEGE, MAIN_ROAD)
    assert result.success, result.message
    return result.ride


def assert_seat_invariant(ride):
    assert ride.seats_available == ride.total_seats - len(ride.passengers)
    assert len({p.user_id for p in ride.passengers}) == len(ride.passengers)
    assert 0 <= ride.progress <= 100


# ===================== Creation =====================

@pytest.mark.asyncio
async def test_request_ride_creates_unassigned_request(ride_service, passenger, clock):
    result = await ride_service.request_ride(passenger, tomorrow(clock), COLLEGE, MAIN_ROAD)

    assert result.success
    ride = result.ride
    assert ride.status == RideStatus.REQUESTED
    assert ride.requested_by == passenger.id
    assert ride.driver_id is None
    assert ride.passengers == []
    assert ride.total_seats == 3
    assert ride.seats_available == 3


@pytest.mark.asyncio
async def test_request_ride_requires_passenger(ride_service, driver, clock):
    result = await ride_service.request_ride(driver, tomorrow(clock), COLLEGE, MAIN_ROAD)
    assert not result.success
    assert result.error_code == RideErrorCode.UNAUTHORIZED
    assert result.reason == RideFailureReason.ROLE_MISMATCH


@pytest.mark.asyncio
async def test_departure_in_past_rejected(ride_service, passenger, driver, clock):
    past = clock.now - timedelta(minutes=1)

    result = await ride_service.request_ride(passenger, past, COLLEGE, MAIN_ROAD)
    assert result.error_code == RideErrorCode.VALIDATION
    assert result.reason == RideFailureReason.DEPARTURE_IN_PAST

    result = await ride_service.post_ride(driver, past, MAIN_ROAD, COLLEGE, 3)
    assert result.reason == RideFailureReason.DEPARTURE_IN_PAST

    assert await ride_service.list_rides() == []


@pytest.mark.asyncio
async def test_departure_exactly_now_allowed(ride_service, driver, clock):
    result = await ride_service.post_ride(driver, clock.now, MAIN_ROAD, COLLEGE, 3)
    assert result.success


@pytest.mark.asyncio
async def test_same_origin_and_destination_rejected(ride_service, passenger, driver, clock):
    result = await ride_service.request_ride(passenger, tomorrow(clock), COLLEGE, COLLEGE)
    assert result.reason == RideFailureReason.SAME_LOCATION

    result = await ride_service.post_ride(driver, tomorrow(clock), MAIN_ROAD, MAIN_ROAD, 3)
    assert result.error_code == RideErrorCode.VALIDATION
    assert result.reason == RideFailureReason.SAME_LOCATION


@pytest.mark.asyncio
@pytest.mark.parametrize("seats,ok", [(0, False), (1, True), (10, True), (11, False)])
async def test_post_ride_seat_bounds(ride_service, driver, clock, seats, ok):
    result = await ride_service.post_ride(driver, tomorrow(clock), MAIN_ROAD, COLLEGE, seats)
    assert result.success is ok
    if ok:
        assert result.ride.status == RideStatus.SCHEDULED
        assert result.ride.seats_available == seats
        assert result.ride.driver_id == driver.id
        assert result.ride.driver_name == driver.name
        assert result.ride.driver_phone_number == driver.phone_number
    else:
        assert result.reason == RideFailureReason.SEATS_OUT_OF_RANGE


@pytest.mark.asyncio
async def test_post_ride_requires_driver(ride_service, passenger, clock):
    result = await ride_service.post_ride(passenger, tomorrow(clock), MAIN_ROAD, COLLEGE, 3)
    assert result.reason == RideFailureReason.ROLE_MISMATCH


@pytest.mark.asyncio
async def test_naive_departure_is_treated_as_utc(ride_service, driver, clock):
    naive = tomorrow(clock).replace(tzinfo=None)
    result = await ride_service.post_ride(driver, naive, MAIN_ROAD, COLLEGE, 3)
    assert result.ride.departure_time == tomorrow(clock)
    assert result.ride.departure_time.tzinfo is not None


# ===================== Recurring rides =====================

def test_sunday_based_weekday():
    assert sunday_based_weekday(datetime(2025, 6, 1, tzinfo=timezone.utc)) == 0  # Sunday
    assert sunday_based_weekday(datetime(2025, 6, 2, tzinfo=timezone.utc)) == 1  # Monday
    assert sunday_based_weekday(datetime(2025, 6, 7, tzinfo=timezone.utc)) == 6  # Saturday


def test_recurring_departures_stay_within_one_week():
    first = datetime(2025, 6, 3, 8, 0, tzinfo=timezone.utc)  # Tuesday
    departures = recurring_departures(first, [1, 3, 5])
    assert departures == [
        datetime(2025, 6, 4, 8, 0, tzinfo=timezone.utc),
        datetime(2025, 6, 6, 8, 0, tzinfo=timezone.utc),
        datetime(2025, 6, 9, 8, 0, tzinfo=timezone.utc),
    ]


@pytest.mark.asyncio
async def test_post_recurring_ride_creates_series(ride_service, driver, clock):
    result = await ride_service.post_ride(
        driver, tomorrow(clock), MAIN_ROAD, COLLEGE, 4, recurring_days=[5, 1, 3, 3]
    )

    assert result.success
    assert len(result.rides) == 3
    assert result.ride.id == result.rides[0].id
    assert [r.departure_time.day for r in result.rides] == [4, 6, 9]
    assert len({r.recurrence_id for r in result.rides}) == 1
    assert result.ride.recurrence_id is not None
    assert len(await ride_service.list_rides()) == 3


@pytest.mark.asyncio
async def test_invalid_recurring_day_rejected(ride_service, driver, clock):
    result = await ride_service.post_ride(
        driver, tomorrow(clock), MAIN_ROAD, COLLEGE, 4, recurring_days=[1, 7]
    )
    assert result.error_code == RideErrorCode.VALIDATION
    assert result.reason == RideFailureReason.INVALID_RECURRING_DAYS


# ===================== Reservations =====================

@pytest.mark.asyncio
async def test_reserve_seat(ride_service, driver, passenger, clock, notifier):
    ride = await post(ride_service, driver, clock, seats=3)

    result = await ride_service.reserve_seat(passenger, ride.id)

    assert result.success
    assert result.ride.seats_available == 2
    assert [p.user_id for p in result.ride.passengers] == [passenger.id]
    assert result.ride.passengers[0].name == passenger.name
    assert_seat_invariant(result.ride)

    assert len(notifier.events) == 1
    event = notifier.events[0]
    assert event.kind == RideEventKind.RESERVATION_MADE
    assert event.recipients == [driver.id]


@pytest.mark.asyncio
async def test_reserve_twice_is_rejected(ride_service, driver, passenger, clock):
    ride = await post(ride_service, driver, clock, seats=3)
    await ride_service.reserve_seat(passenger, ride.id)

    result = await ride_service.reserve_seat(passenger, ride.id)

    assert result.error_code == RideErrorCode.STATE_CONFLICT
    assert result.reason == RideFailureReason.ALREADY_RESERVED
    stored = await ride_service.get_ride_by_id(ride.id)
    assert stored.seats_available == 2
    assert len(stored.passengers) == 1


@pytest.mark.asyncio
async def test_reserve_on_full_ride(ride_service, driver, passenger, other_passenger, clock):
    ride = await post(ride_service, driver, clock, seats=1)
    assert (await ride_service.reserve_seat(passenger, ride.id)).success

    result = await ride_service.reserve_seat(other_passenger, ride.id)

    assert result.reason == RideFailureReason.NO_SEATS
    stored = await ride_service.get_ride_by_id(ride.id)
    assert stored.seats_available == 0
    assert_seat_invariant(stored)


@pytest.mark.asyncio
async def test_driver_cannot_reserve(ride_service, driver, other_driver, clock):
    ride = await post(ride_service, driver, clock)
    result = await ride_service.reserve_seat(other_driver, ride.id)
    assert result.error_code == RideErrorCode.UNAUTHORIZED


@pytest.mark.asyncio
async def test_reserve_unknown_ride(ride_service, passenger):
    result = await ride_service.reserve_seat(passenger, "missing")
    assert result.error_code == RideErrorCode.NOT_FOUND
    assert result.reason == RideFailureReason.RIDE_NOT_FOUND


@pytest.mark.asyncio
async def test_reserve_on_cancelled_ride(ride_service, driver, passenger, clock):
    ride = await post(ride_service, driver, clock)
    await ride_service.update_ride_status(driver, ride.id, RideStatus.CANCELLED)

    result = await ride_service.reserve_seat(passenger, ride.id)

    assert result.error_code == RideErrorCode.STATE_CONFLICT
    assert result.reason == RideFailureReason.RIDE_TERMINAL


@pytest.mark.asyncio
async def test_reserve_requires_scheduled(ride_service, driver, passenger, clock):
    ride = await post(ride_service, driver, clock)
    await ride_service.update_ride_status(driver, ride.id, RideStatus.ON_ROUTE)

    result = await ride_service.reserve_seat(passenger, ride.id)

    assert result.reason == RideFailureReason.NOT_BOOKABLE


@pytest.mark.asyncio
async def test_cancel_reservation_releases_seat(ride_service, driver, passenger, clock, notifier):
    ride = await post(ride_service, driver, clock, seats=2)
    await ride_service.reserve_seat(passenger, ride.id)

    result = await ride_service.cancel_reservation(passenger, ride.id)

    assert result.success
    assert result.ride.seats_available == 2
    assert result.ride.passengers == []
    assert notifier.events[-1].kind == RideEventKind.RESERVATION_CANCELLED


@pytest.mark.asyncio
async def test_cancel_reservation_without_seat(ride_service, driver, passenger, clock):
    ride = await post(ride_service, driver, clock)
    result = await ride_service.cancel_reservation(passenger, ride.id)
    assert result.reason == RideFailureReason.NOT_A_PASSENGER


@pytest.mark.asyncio
async def test_cancel_reservation_twice(ride_service, driver, passenger, clock):
    ride = await post(ride_service, driver, clock, seats=2)
    await ride_service.reserve_seat(passenger, ride.id)
    first = await ride_service.cancel_reservation(passenger, ride.id)
    assert first.success

    second = await ride_service.cancel_reservation(passenger, ride.id)

    assert not second.success
    assert second.error_code == RideErrorCode.STATE_CONFLICT
    assert second.reason == RideFailureReason.NOT_A_PASSENGER
    stored = await ride_service.get_ride_by_id(ride.id)
    assert stored.version == first.ride.version
    assert stored.seats_available == 2
    assert stored.passengers == []


@pytest.mark.asyncio
async def test_cancel_reservation_after_departure(ride_service, driver, passenger, clock):
    ride = await post(ride_service, driver, clock)
    await ride_service.reserve_seat(passenger, ride.id)
    await ride_service.update_ride_status(driver, ride.id, RideStatus.ON_ROUTE)

    result = await ride_service.cancel_reservation(passenger, ride.id)

    assert result.error_code == RideErrorCode.STATE_CONFLICT
    assert (await ride_service.get_ride_by_id(ride.id)).has_passenger(passenger.id)


# ===================== Requests =====================

@pytest.mark.asyncio
async def test_accept_ride_request(ride_service, driver, passenger, clock, notifier):
    ride = await request(ride_service, passenger, clock)

    result = await ride_service.accept_ride_request(driver, ride.id)

    assert result.success
    accepted = result.ride
    assert accepted.status == RideStatus.SCHEDULED
    assert accepted.driver_id == driver.id
    assert accepted.driver_name == driver.name
    assert accepted.driver_phone_number == driver.phone_number
    assert [p.user_id for p in accepted.passengers] == [passenger.id]
    assert accepted.seats_available == accepted.total_seats - 1

    event = notifier.events[-1]
    assert event.kind == RideEventKind.REQUEST_ACCEPTED
    assert event.recipients == [passenger.id]


@pytest.mark.asyncio
async def test_accept_twice_rejected(ride_service, driver, other_driver, passenger, clock):
    ride = await request(ride_service, passenger, clock)
    await ride_service.accept_ride_request(driver, ride.id)

    result = await ride_service.accept_ride_request(other_driver, ride.id)

    assert result.reason == RideFailureReason.NOT_A_REQUEST
    assert (await ride_service.get_ride_by_id(ride.id)).driver_id == driver.id


@pytest.mark.asyncio
async def test_passenger_cannot_accept(ride_service, passenger, other_passenger, clock):
    ride = await request(ride_service, passenger, clock)
    result = await ride_service.accept_ride_request(other_passenger, ride.id)
    assert result.reason == RideFailureReason.ROLE_MISMATCH


@pytest.mark.asyncio
async def test_accept_with_unknown_requester(ride_service, driver, clock):
    stranger = Actor(id="5550001111", name="Stranger", phone_number="5550001111", role=UserRole.PASSENGER)
    ride = await request(ride_service, stranger, clock)

    result = await ride_service.accept_ride_request(driver, ride.id)

    assert result.error_code == RideErrorCode.NOT_FOUND
    assert result.reason == RideFailureReason.USER_NOT_FOUND
    assert (await ride_service.get_ride_by_id(ride.id)).status == RideStatus.REQUESTED


@pytest.mark.asyncio
async def test_requester_can_withdraw_request(ride_service, passenger, other_passenger, clock):
    ride = await request(ride_service, passenger, clock)

    result = await ride_service.update_ride_status(other_passenger, ride.id, RideStatus.CANCELLED)
    assert result.error_code == RideErrorCode.UNAUTHORIZED

    result = await ride_service.update_ride_status(passenger, ride.id, RideStatus.CANCELLED)
    assert result.success
    assert result.ride.status == RideStatus.CANCELLED


@pytest.mark.asyncio
async def test_request_cannot_be_scheduled_by_status_update(ride_service, driver, passenger, clock):
    ride = await request(ride_service, passenger, clock)
    result = await ride_service.update_ride_status(driver, ride.id, RideStatus.SCHEDULED)
    assert result.reason == RideFailureReason.INVALID_TRANSITION


# ===================== Status & progress =====================

@pytest.mark.asyncio
async def test_progress_is_monotonic_within_on_route(ride_service, driver, passenger, clock):
    ride = await post(ride_service, driver, clock)
    await ride_service.reserve_seat(passenger, ride.id)

    started = await ride_service.update_ride_status(driver, ride.id, RideStatus.ON_ROUTE)
    assert started.ride.status == RideStatus.ON_ROUTE
    assert started.ride.progress == 0

    result = await ride_service.update_ride_status(driver, ride.id, RideStatus.ON_ROUTE, progress=40)
    assert result.ride.progress == 40

    result = await ride_service.update_ride_status(driver, ride.id, RideStatus.ON_ROUTE, progress=20)
    assert result.success
    assert result.ride.progress == 40

    result = await ride_service.update_ride_status(driver, ride.id, RideStatus.ON_ROUTE)
    assert result.ride.progress == 40


@pytest.mark.asyncio
async def test_full_progress_reaches_destination(ride_service, driver, clock):
    ride = await post(ride_service, driver, clock)
    await ride_service.update_ride_status(driver, ride.id, RideStatus.ON_ROUTE, progress=10)

    result = await ride_service.update_ride_status(driver, ride.id, RideStatus.ON_ROUTE, progress=100)

    assert result.ride.status == RideStatus.DESTINATION_REACHED
    assert result.ride.progress == 100

    result = await ride_service.update_ride_status(driver, ride.id, RideStatus.COMPLETED)
    assert result.ride.status == RideStatus.COMPLETED
    assert result.ride.progress == 100


@pytest.mark.asyncio
async def test_completing_sets_full_progress(ride_service, driver, clock):
    ride = await post(ride_service, driver, clock)
    await ride_service.update_ride_status(driver, ride.id, RideStatus.ON_ROUTE, progress=30)

    result = await ride_service.update_ride_status(driver, ride.id, RideStatus.COMPLETED)

    assert result.ride.status == RideStatus.COMPLETED
    assert result.ride.progress == 100


@pytest.mark.asyncio
async def test_arriving_never_moves_progress_back(ride_service, driver, clock):
    ride = await post(ride_service, driver, clock)
    await ride_service.update_ride_status(driver, ride.id, RideStatus.ON_ROUTE, progress=80)

    result = await ride_service.update_ride_status(driver, ride.id, RideStatus.ARRIVING, progress=10)
    assert result.ride.status == RideStatus.ARRIVING
    assert result.ride.progress == 80

    ride = await post(ride_service, driver, clock)
    await ride_service.update_ride_status(driver, ride.id, RideStatus.ON_ROUTE, progress=60)
    result = await ride_service.update_ride_status(driver, ride.id, RideStatus.ARRIVING, progress=90)
    assert result.ride.progress == 90


@pytest.mark.asyncio
async def test_progress_ignored_outside_travel(ride_service, driver, clock):
    ride = await post(ride_service, driver, clock)

    result = await ride_service.update_ride_status(driver, ride.id, RideStatus.ABOUT_TO_DEPART, progress=30)
    assert result.ride.progress == 0

    result = await ride_service.update_ride_status(driver, ride.id, RideStatus.CANCELLED, progress=55)
    assert result.ride.status == RideStatus.CANCELLED
    assert result.ride.progress == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("progress", [-1, 101])
async def test_progress_out_of_range(ride_service, driver, clock, progress):
    ride = await post(ride_service, driver, clock)
    result = await ride_service.update_ride_status(driver, ride.id, RideStatus.ON_ROUTE, progress=progress)
    assert result.error_code == RideErrorCode.VALIDATION
    assert result.reason == RideFailureReason.PROGRESS_OUT_OF_RANGE
    assert (await ride_service.get_ride_by_id(ride.id)).status == RideStatus.SCHEDULED


@pytest.mark.asyncio
async def test_intermediate_statuses(ride_service, driver, clock):
    ride = await post(ride_service, driver, clock)
    for status in (RideStatus.ABOUT_TO_DEPART, RideStatus.AT_SOURCE, RideStatus.WAITING, RideStatus.ON_ROUTE,
                   RideStatus.ARRIVING, RideStatus.DESTINATION_REACHED, RideStatus.COMPLETED):
        result = await ride_service.update_ride_status(driver, ride.id, status)
        assert result.success, f"{status.value}: {result.message}"
        assert result.ride.status == status


@pytest.mark.asyncio
async def test_invalid_transition(ride_service, driver, clock):
    ride = await post(ride_service, driver, clock)
    result = await ride_service.update_ride_status(driver, ride.id, RideStatus.COMPLETED)
    assert result.error_code == RideErrorCode.STATE_CONFLICT
    assert result.reason == RideFailureReason.INVALID_TRANSITION


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", [RideStatus.COMPLETED, RideStatus.CANCELLED])
async def test_terminal_rides_are_frozen(ride_service, driver, passenger, clock, terminal):
    ride = await post(ride_service, driver, clock)
    await ride_service.update_ride_status(driver, ride.id, RideStatus.ON_ROUTE)
    await ride_service.update_ride_status(driver, ride.id, terminal)

    for status in RideStatus:
        result = await ride_service.update_ride_status(driver, ride.id, status)
        assert result.reason == RideFailureReason.RIDE_TERMINAL

    assert (await ride_service.reserve_seat(passenger, ride.id)).reason == RideFailureReason.RIDE_TERMINAL
    edit = await ride_service.update_ride_details(driver, ride.id, RideDetailsPatch(total_seats=5))
    assert edit.reason == RideFailureReason.RIDE_TERMINAL
    assert (await ride_service.get_ride_by_id(ride.id)).status == terminal


@pytest.mark.asyncio
async def test_only_owner_changes_status(ride_service, driver, other_driver, passenger, clock):
    ride = await post(ride_service, driver, clock)

    result = await ride_service.update_ride_status(other_driver, ride.id, RideStatus.ON_ROUTE)
    assert result.error_code == RideErrorCode.UNAUTHORIZED
    assert result.reason == RideFailureReason.NOT_OWNER

    result = await ride_service.update_ride_status(passenger, ride.id, RideStatus.CANCELLED)
    assert result.reason == RideFailureReason.NOT_OWNER


@pytest.mark.asyncio
async def test_cancelling_notifies_passengers(ride_service, driver, passenger, other_passenger, clock, notifier):
    ride = await post(ride_service, driver, clock)
    await ride_service.reserve_seat(passenger, ride.id)
    await ride_service.reserve_seat(other_passenger, ride.id)

    await ride_service.update_ride_status(driver, ride.id, RideStatus.CANCELLED)

    event = notifier.events[-1]
    assert event.kind == RideEventKind.RIDE_CANCELLED
    assert event.recipients == [passenger.id, other_passenger.id]


# ===================== Edits & deletion =====================

@pytest.mark.asyncio
async def test_update_ride_details(ride_service, driver, passenger, clock):
    ride = await post(ride_service, driver, clock, seats=2)
    await ride_service.reserve_seat(passenger, ride.id)
    new_time = tomorrow(clock, hours=2)

    result = await ride_service.update_ride_details(
        driver, ride.id,
        RideDetailsPatch(origin=COLLEGE, destination=MAIN_ROAD, departure_time=new_time, total_seats=5),
    )

    assert result.success
    assert result.ride.origin == COLLEGE
    assert result.ride.destination == MAIN_ROAD
    assert result.ride.departure_time == new_time
    assert result.ride.total_seats == 5
    assert result.ride.seats_available == 4
    assert_seat_invariant(result.ride)


@pytest.mark.asyncio
async def test_update_cannot_drop_below_passengers(ride_service, driver, passenger, other_passenger, clock):
    ride = await post(ride_service, driver, clock, seats=3)
    await ride_service.reserve_seat(passenger, ride.id)
    await ride_service.reserve_seat(other_passenger, ride.id)

    result = await ride_service.update_ride_details(driver, ride.id, RideDetailsPatch(total_seats=1))

    assert result.error_code == RideErrorCode.VALIDATION
    assert result.reason == RideFailureReason.SEATS_BELOW_PASSENGERS
    assert (await ride_service.get_ride_by_id(ride.id)).total_seats == 3


@pytest.mark.asyncio
async def test_update_validation(ride_service, driver, other_driver, clock):
    ride = await post(ride_service, driver, clock)

    result = await ride_service.update_ride_details(driver, ride.id, RideDetailsPatch(destination=MAIN_ROAD))
    assert result.reason == RideFailureReason.SAME_LOCATION

    past = RideDetailsPatch(departure_time=clock.now - timedelta(hours=1))
    assert (await ride_service.update_ride_details(driver, ride.id, past)).reason == RideFailureReason.DEPARTURE_IN_PAST

    result = await ride_service.update_ride_details(driver, ride.id, RideDetailsPatch(total_seats=11))
    assert result.reason == RideFailureReason.SEATS_OUT_OF_RANGE

    result = await ride_service.update_ride_details(other_driver, ride.id, RideDetailsPatch(total_seats=4))
    assert result.reason == RideFailureReason.NOT_OWNER


@pytest.mark.asyncio
async def test_delete_ride(ride_service, driver, other_driver, passenger, clock):
    ride = await post(ride_service, driver, clock)
    await ride_service.reserve_seat(passenger, ride.id)

    result = await ride_service.delete_ride(driver, ride.id)
    assert result.reason == RideFailureReason.HAS_PASSENGERS

    await ride_service.cancel_reservation(passenger, ride.id)
    assert (await ride_service.delete_ride(other_driver, ride.id)).reason == RideFailureReason.NOT_OWNER

    result = await ride_service.delete_ride(driver, ride.id)
    assert result.success
    assert await ride_service.get_ride_by_id(ride.id) is None
    assert (await ride_service.delete_ride(driver, ride.id)).reason == RideFailureReason.RIDE_NOT_FOUND


@pytest.mark.asyncio
async def test_delete_future_recurring_instances(ride_service, driver, passenger, clock):
    posted = await ride_service.post_ride(
        driver, tomorrow(clock), MAIN_ROAD, COLLEGE, 3, recurring_days=[1, 3, 5]
    )
    wednesday, friday, monday = posted.rides
    await ride_service.reserve_seat(passenger, friday.id)

    result = await ride_service.delete_future_recurring_instances(driver, wednesday.id)

    assert result.success
    assert result.extra == {"deleted_count": 2, "skipped_count": 1, "conflict_count": 0}
    remaining = await ride_service.list_rides()
    assert [r.id for r in remaining] == [friday.id]


@pytest.mark.asyncio
async def test_delete_recurring_from_later_seed(ride_service, driver, clock):
    posted = await ride_service.post_ride(
        driver, tomorrow(clock), MAIN_ROAD, COLLEGE, 3, recurring_days=[1, 3, 5]
    )
    wednesday, friday, monday = posted.rides

    result = await ride_service.delete_future_recurring_instances(driver, friday.id)

    assert result.extra["deleted_count"] == 2
    assert [r.id for r in await ride_service.list_rides()] == [wednesday.id]


class StaleDeleteStore(InMemoryRideStore):
    """Deletes of the listed rides always lose to a concurrent write."""

    def __init__(self, contested):
        super().__init__()
        self.contested = contested

    async def delete(self, ride_id, expected_version):
        if ride_id in self.contested:
            return False
        return await super().delete(ride_id, expected_version)


@pytest.mark.asyncio
async def test_series_deletion_reports_conflicts_separately(driver, passenger, clock):
    contested = set()
    service = RideService(StaleDeleteStore(contested), users=None, clock=clock)
    posted = await service.post_ride(driver, tomorrow(clock), MAIN_ROAD, COLLEGE, 3, recurring_days=[1, 3, 5])
    wednesday, friday, monday = posted.rides
    await service.reserve_seat(passenger, friday.id)
    contested.add(monday.id)

    result = await service.delete_future_recurring_instances(driver, wednesday.id)

    assert result.extra == {"deleted_count": 1, "skipped_count": 1, "conflict_count": 1}
    assert "1 instance(s) changed concurrently" in result.message
    assert sorted(r.id for r in await service.list_rides()) == sorted([friday.id, monday.id])


@pytest.mark.asyncio
async def test_delete_recurring_rejections(ride_service, driver, other_driver, clock):
    single = await post(ride_service, driver, clock)
    result = await ride_service.delete_future_recurring_instances(driver, single.id)
    assert result.reason == RideFailureReason.NOT_RECURRING

    posted = await ride_service.post_ride(
        driver, tomorrow(clock), MAIN_ROAD, COLLEGE, 3, recurring_days=[1, 3]
    )
    result = await ride_service.delete_future_recurring_instances(other_driver, posted.ride.id)
    assert result.reason == RideFailureReason.NOT_OWNER

    result = await ride_service.delete_future_recurring_instances(driver, "missing")
    assert result.reason == RideFailureReason.RIDE_NOT_FOUND


# ===================== Capabilities =====================

@pytest.mark.asyncio
async def test_capabilities_follow_guards(ride_service, driver, other_driver, passenger, clock):
    ride = await post(ride_service, driver, clock)

    caps = ride_service.capabilities(passenger, ride)
    assert caps.can_reserve
    assert not caps.can_cancel_reservation
    assert not caps.can_start
    assert not caps.can_edit

    caps = ride_service.capabilities(driver, ride)
    assert not caps.can_reserve
    assert caps.can_start
    assert caps.can_cancel_ride
    assert caps.can_edit
    assert caps.can_delete
    assert not caps.can_complete

    caps = ride_service.capabilities(other_driver, ride)
    assert not any([caps.can_start, caps.can_edit, caps.can_delete, caps.can_cancel_ride])

    reserved = (await ride_service.reserve_seat(passenger, ride.id)).ride
    caps = ride_service.capabilities(passenger, reserved)
    assert not caps.can_reserve
    assert caps.can_cancel_reservation
    assert not ride_service.capabilities(driver, reserved).can_delete


@pytest.mark.asyncio
async def test_request_capabilities(ride_service, driver, passenger, clock):
    ride = await request(ride_service, passenger, clock)

    assert ride_service.capabilities(driver, ride).can_accept
    assert not ride_service.capabilities(passenger, ride).can_accept
    assert ride_service.capabilities(passenger, ride).can_cancel_ride
