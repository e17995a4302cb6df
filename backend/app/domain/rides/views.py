"""
Derived ride views.

Pure functions over a snapshot of the ride collection and the viewing user.
Upcoming lists are ordered by departure ascending, past lists descending.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from backend.app.domain.rides.records import Actor, RideRecord
from backend.app.models.ride_enums import RideStatus

logger = logging.getLogger(__name__)


class RideInvariantError(Exception):
    """Raised when the ride collection violates an invariant the views rely on."""
    pass


def _upcoming(rides: Iterable[RideRecord]) -> List[RideRecord]:
    return sorted(rides, key=lambda r: r.departure_time)


def _past(rides: Iterable[RideRecord]) -> List[RideRecord]:
    return sorted(rides, key=lambda r: r.departure_time, reverse=True)


def _is_upcoming(ride: RideRecord, now: datetime) -> bool:
    return ride.departure_time >= now and not ride.is_terminal


def passenger_upcoming_rides(rides: Iterable[RideRecord], viewer: Actor, now: datetime) -> List[RideRecord]:
    return _upcoming(r for r in rides if r.has_passenger(viewer.id) and _is_upcoming(r, now))


def passenger_past_rides(rides: Iterable[RideRecord], viewer: Actor, now: datetime) -> List[RideRecord]:
    return _past(r for r in rides if r.has_passenger(viewer.id) and not _is_upcoming(r, now))


def passenger_pending_requests(rides: Iterable[RideRecord], viewer: Actor) -> List[RideRecord]:
    """The viewer's own requests no driver has accepted yet."""
    return _upcoming(
        r for r in rides if r.status == RideStatus.REQUESTED and r.requested_by == viewer.id
    )


def driver_upcoming_rides(rides: Iterable[RideRecord], viewer: Actor, now: datetime) -> List[RideRecord]:
    return _upcoming(
        r for r in rides
        if r.is_driven_by(viewer.id) and r.status != RideStatus.REQUESTED and _is_upcoming(r, now)
    )


def driver_past_rides(rides: Iterable[RideRecord], viewer: Actor, now: datetime) -> List[RideRecord]:
    return _past(
        r for r in rides
        if r.is_driven_by(viewer.id) and r.status != RideStatus.REQUESTED and not _is_upcoming(r, now)
    )


def driver_ride_requests(rides: Iterable[RideRecord], viewer: Actor) -> List[RideRecord]:
    """Open passenger requests; only drivers see them."""
    if not viewer.is_driver:
        return []
    return _upcoming(r for r in rides if r.status == RideStatus.REQUESTED)


def _single_active(matches: List[RideRecord], viewer: Actor, strict: bool) -> Optional[RideRecord]:
    if len(matches) > 1:
        ride_ids = [r.id for r in matches]
        logger.error("User %s has %s active rides: %s", viewer.id, len(matches), ride_ids)
        if strict:
            raise RideInvariantError(f"User {viewer.id} has more than one active ride: {ride_ids}")
    return matches[0] if matches else None


def current_passenger_ride(rides: Iterable[RideRecord], viewer: Actor, strict: bool = False) -> Optional[RideRecord]:
    """
    The ride the passenger is on right now, if any.

    At most one active ride per user is expected; more than one is logged and,
    with `strict`, raised as a RideInvariantError. Otherwise the first match in
    collection order wins.
    """
    matches = [r for r in rides if r.is_active and r.has_passenger(viewer.id)]
    return _single_active(matches, viewer, strict)


def current_driver_ride(rides: Iterable[RideRecord], viewer: Actor, strict: bool = False) -> Optional[RideRecord]:
    """The ride the driver is driving right now, if any (see current_passenger_ride)."""
    matches = [r for r in rides if r.is_active and r.is_driven_by(viewer.id)]
    return _single_active(matches, viewer, strict)
