"""
Ride policy.

Guards shared by the ride engine operations and the capability query. Each
guard returns None when the check passes, or a RideFailure describing why it
did not.
"""

from datetime import datetime
from typing import Dict, FrozenSet, Iterable, Optional

from backend.app.core.config import settings
from backend.app.domain.rides.records import Actor, RideRecord
from backend.app.domain.rides.results import RideFailure, RideFailureReason
from backend.app.models.enums import UserRole
from backend.app.models.ride_enums import Location, RideStatus

# Statuses a driver may move a ride to via a status update.
# Requested -> Scheduled is only reachable through accepting the request.
ALLOWED_TRANSITIONS: Dict[RideStatus, FrozenSet[RideStatus]] = {
    RideStatus.REQUESTED: frozenset({RideStatus.CANCELLED}),
    RideStatus.SCHEDULED: frozenset({
        RideStatus.ABOUT_TO_DEPART, RideStatus.ON_ROUTE, RideStatus.CANCELLED,
    }),
    RideStatus.ABOUT_TO_DEPART: frozenset({
        RideStatus.AT_SOURCE, RideStatus.WAITING, RideStatus.ON_ROUTE, RideStatus.CANCELLED,
    }),
    RideStatus.AT_SOURCE: frozenset({
        RideStatus.WAITING, RideStatus.ON_ROUTE, RideStatus.CANCELLED,
    }),
    RideStatus.WAITING: frozenset({RideStatus.ON_ROUTE, RideStatus.CANCELLED}),
    RideStatus.ON_ROUTE: frozenset({
        RideStatus.ON_ROUTE, RideStatus.ARRIVING, RideStatus.DESTINATION_REACHED,
        RideStatus.COMPLETED, RideStatus.CANCELLED,
    }),
    RideStatus.ARRIVING: frozenset({
        RideStatus.DESTINATION_REACHED, RideStatus.COMPLETED, RideStatus.CANCELLED,
    }),
    RideStatus.DESTINATION_REACHED: frozenset({RideStatus.COMPLETED, RideStatus.CANCELLED}),
    RideStatus.COMPLETED: frozenset(),
    RideStatus.CANCELLED: frozenset(),
}

# Statuses during which a passenger may give up their seat.
RELEASABLE_STATUSES = frozenset({RideStatus.SCHEDULED, RideStatus.ABOUT_TO_DEPART})

WEEKDAY_RANGE = range(0, 7)


def require_role(actor: Actor, role: UserRole) -> Optional[RideFailure]:
    if actor.role != role:
        return RideFailure(
            RideFailureReason.ROLE_MISMATCH,
            f"Only a {role.value} can perform this action",
        )
    return None


def require_owner(actor: Actor, ride: RideRecord) -> Optional[RideFailure]:
    if not actor.is_driver or not ride.is_driven_by(actor.id):
        return RideFailure(RideFailureReason.NOT_OWNER, "This ride is not assigned to you")
    return None


def require_not_terminal(ride: RideRecord) -> Optional[RideFailure]:
    if ride.is_terminal:
        return RideFailure(
            RideFailureReason.RIDE_TERMINAL,
            f"Ride is already {ride.status.value}",
        )
    return None


def check_departure(departure_time: datetime, now: datetime) -> Optional[RideFailure]:
    if departure_time < now:
        return RideFailure(RideFailureReason.DEPARTURE_IN_PAST, "Departure time cannot be in the past")
    return None


def check_route(origin: Location, destination: Location) -> Optional[RideFailure]:
    if origin == destination:
        return RideFailure(RideFailureReason.SAME_LOCATION, "Origin and destination cannot be the same")
    return None


def check_total_seats(total_seats: int) -> Optional[RideFailure]:
    if not 1 <= total_seats <= settings.ride_max_total_seats:
        return RideFailure(
            RideFailureReason.SEATS_OUT_OF_RANGE,
            f"Number of seats must be between 1 and {settings.ride_max_total_seats}",
        )
    return None


def check_progress(progress: Optional[int]) -> Optional[RideFailure]:
    if progress is not None and not 0 <= progress <= 100:
        return RideFailure(RideFailureReason.PROGRESS_OUT_OF_RANGE, "Progress must be between 0 and 100")
    return None


def check_recurring_days(days: Iterable[int]) -> Optional[RideFailure]:
    if any(day not in WEEKDAY_RANGE for day in days):
        return RideFailure(
            RideFailureReason.INVALID_RECURRING_DAYS,
            "Recurring days must be weekday indices 0 (Sunday) to 6 (Saturday)",
        )
    return None


def first_failure(*failures: Optional[RideFailure]) -> Optional[RideFailure]:
    for failure in failures:
        if failure is not None:
            return failure
    return None


# Per-operation guards

def can_reserve(actor: Actor, ride: RideRecord) -> Optional[RideFailure]:
    failure = first_failure(require_role(actor, UserRole.PASSENGER), require_not_terminal(ride))
    if failure:
        return failure
    if ride.has_passenger(actor.id):
        return RideFailure(RideFailureReason.ALREADY_RESERVED, "You already have a seat on this ride")
    if ride.status != RideStatus.SCHEDULED:
        return RideFailure(
            RideFailureReason.NOT_BOOKABLE,
            f"Seats can only be reserved on scheduled rides, current status: {ride.status.value}",
        )
    if ride.seats_available <= 0:
        return RideFailure(RideFailureReason.NO_SEATS, "No seats available on this ride")
    return None


def can_cancel_reservation(actor: Actor, ride: RideRecord) -> Optional[RideFailure]:
    if not ride.has_passenger(actor.id):
        return RideFailure(RideFailureReason.NOT_A_PASSENGER, "You do not have a seat on this ride")
    failure = require_not_terminal(ride)
    if failure:
        return failure
    if ride.status not in RELEASABLE_STATUSES:
        return RideFailure(
            RideFailureReason.INVALID_TRANSITION,
            f"Reservations cannot be cancelled once the ride is {ride.status.value}",
        )
    return None


def can_accept(actor: Actor, ride: RideRecord) -> Optional[RideFailure]:
    failure = require_role(actor, UserRole.DRIVER)
    if failure:
        return failure
    if ride.status != RideStatus.REQUESTED or not ride.requested_by:
        return RideFailure(RideFailureReason.NOT_A_REQUEST, "Ride is not an open request")
    return None


def can_transition(actor: Actor, ride: RideRecord, new_status: RideStatus) -> Optional[RideFailure]:
    failure = require_not_terminal(ride)
    if failure:
        return failure
    if ride.status == RideStatus.REQUESTED:
        # An unaccepted request has no driver; only its requester may withdraw it.
        if new_status == RideStatus.CANCELLED and actor.is_passenger and ride.requested_by == actor.id:
            return None
        if new_status == RideStatus.SCHEDULED:
            return RideFailure(
                RideFailureReason.INVALID_TRANSITION,
                "Requests are scheduled by accepting them",
            )
        return require_owner(actor, ride) or RideFailure(
            RideFailureReason.INVALID_TRANSITION,
            f"Cannot move a ride from {ride.status.value} to {new_status.value}",
        )
    failure = require_owner(actor, ride)
    if failure:
        return failure
    if new_status not in ALLOWED_TRANSITIONS[ride.status]:
        return RideFailure(
            RideFailureReason.INVALID_TRANSITION,
            f"Cannot move a ride from {ride.status.value} to {new_status.value}",
        )
    return None


def can_edit(actor: Actor, ride: RideRecord) -> Optional[RideFailure]:
    return first_failure(require_owner(actor, ride), require_not_terminal(ride))


def can_delete(actor: Actor, ride: RideRecord) -> Optional[RideFailure]:
    failure = require_owner(actor, ride)
    if failure:
        return failure
    if ride.passengers:
        return RideFailure(
            RideFailureReason.HAS_PASSENGERS,
            f"Ride still has {len(ride.passengers)} passenger(s) and cannot be deleted",
        )
    return None
