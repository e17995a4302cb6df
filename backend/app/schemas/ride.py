"""
Ride schemas.

Request bodies and responses for the ride endpoints. Range checks on seats,
times and progress are left to the ride engine so they come back with a
reason code.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from backend.app.domain.rides.records import RidePassenger
from backend.app.models.ride_enums import Location, RideStatus


class RideRequestCreate(BaseModel):
    """Passenger asks for a ride; a driver accepts it later."""
    departure_time: datetime
    origin: Location
    destination: Location


class RidePostCreate(BaseModel):
    """Driver offers a ride, optionally repeating on weekdays (0 = Sunday)."""
    departure_time: datetime
    origin: Location
    destination: Location
    total_seats: int = Field(..., description="Between 1 and 10")
    recurring_days: Optional[List[int]] = Field(default=None, description="Weekday indices, 0 = Sunday")


class StatusUpdate(BaseModel):
    status: RideStatus
    progress: Optional[int] = Field(default=None, description="0-100, only meaningful On Route")


class RideUpdate(BaseModel):
    """Driver edit. Omitted fields stay as they are."""
    origin: Optional[Location] = None
    destination: Optional[Location] = None
    departure_time: Optional[datetime] = None
    total_seats: Optional[int] = None


class RideResponse(BaseModel):
    id: str
    origin: Location
    destination: Location
    departure_time: datetime
    total_seats: int
    seats_available: int
    status: RideStatus
    progress: int
    driver_id: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone_number: Optional[str] = None
    passengers: List[RidePassenger] = []
    requested_by: Optional[str] = None
    recurrence_id: Optional[str] = None
    version: int

    class Config:
        from_attributes = True


class RideListResponse(BaseModel):
    rides: List[RideResponse]
    total: int


class PostRideResponse(BaseModel):
    """Response after posting; a recurring post yields several rides."""
    message: str
    ride: RideResponse
    rides: List[RideResponse]


class CurrentRideResponse(BaseModel):
    ride: Optional[RideResponse] = None


class SeriesDeletionResponse(BaseModel):
    message: str
    deleted_count: int
    skipped_count: int
    conflict_count: int = 0


class LocationResponse(BaseModel):
    ride_id: str
    status: RideStatus
    progress: int
    latitude: float
    longitude: float
