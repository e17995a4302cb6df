"""
GPS service (stub).

Real positions would come from vehicle telemetry. Here the position is
interpolated between the two fixed stops using the ride's progress.
"""

from pydantic import BaseModel

from backend.app.domain.rides.records import RideRecord
from backend.app.models.ride_enums import Location, RideStatus


class Coordinates(BaseModel):
    latitude: float
    longitude: float


LOCATION_COORDINATES = {
    Location.MAIN_ROAD: Coordinates(latitude=22.5726, longitude=88.3639),
    Location.COLLEGE: Coordinates(latitude=22.5700, longitude=88.3700),
}


def get_coordinates(ride: RideRecord) -> Coordinates:
    """Approximate position of the ride's vehicle."""
    start = LOCATION_COORDINATES[ride.origin]
    end = LOCATION_COORDINATES[ride.destination]
    if ride.status in (RideStatus.DESTINATION_REACHED, RideStatus.COMPLETED):
        return end
    if ride.status not in (RideStatus.ON_ROUTE, RideStatus.ARRIVING):
        return start
    fraction = ride.progress / 100
    return Coordinates(
        latitude=round(start.latitude + (end.latitude - start.latitude) * fraction, 6),
        longitude=round(start.longitude + (end.longitude - start.longitude) * fraction, 6),
    )
