"""
Ride-related enumerations.
"""

import enum


class RideStatus(str, enum.Enum):
    """Ride status enumeration."""
    REQUESTED = "Requested"  # Passenger request, no driver yet
    SCHEDULED = "Scheduled"  # Driver assigned, accepting reservations
    ABOUT_TO_DEPART = "About to Depart"
    AT_SOURCE = "At Source"
    WAITING = "Waiting"
    ON_ROUTE = "On Route"
    ARRIVING = "Arriving"
    DESTINATION_REACHED = "Destination Reached"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


TERMINAL_STATUSES = frozenset({RideStatus.COMPLETED, RideStatus.CANCELLED})

ACTIVE_STATUSES = frozenset({
    RideStatus.ABOUT_TO_DEPART,
    RideStatus.ON_ROUTE,
    RideStatus.ARRIVING,
    RideStatus.AT_SOURCE,
    RideStatus.WAITING,
})


class Location(str, enum.Enum):
    """The two fixed stops every ride runs between."""
    MAIN_ROAD = "Main Transport Road"
    COLLEGE = "College Campus"
