"""
Ride domain records.

Plain structured records shared by the ride engine, the stores and the API.
Timestamps are always timezone-aware UTC.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.app.models.enums import UserRole
from backend.app.models.ride_enums import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Location,
    RideStatus,
)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Actor(BaseModel):
    """The authenticated user performing an operation."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    phone_number: str
    role: Optional[UserRole] = None

    @property
    def is_driver(self) -> bool:
        return self.role == UserRole.DRIVER

    @property
    def is_passenger(self) -> bool:
        return self.role == UserRole.PASSENGER


class RidePassenger(BaseModel):
    """A passenger holding a seat on a ride."""
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    name: str
    phone_number: str

    @classmethod
    def from_actor(cls, actor: Actor) -> "RidePassenger":
        return cls(user_id=actor.id, name=actor.name, phone_number=actor.phone_number)


class RideRecord(BaseModel):
    """
    Snapshot of a single ride.

    `version` is the revision the snapshot was read at; stores only accept a
    write whose expected version still matches.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    origin: Location
    destination: Location
    departure_time: datetime
    total_seats: int
    seats_available: int
    status: RideStatus
    driver_id: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone_number: Optional[str] = None
    passengers: List[RidePassenger] = Field(default_factory=list)
    progress: int = 0
    requested_by: Optional[str] = None
    recurrence_id: Optional[str] = None
    version: int = 0

    @field_validator("departure_time")
    @classmethod
    def _departure_in_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def has_passenger(self, user_id: str) -> bool:
        return any(p.user_id == user_id for p in self.passengers)

    def is_driven_by(self, user_id: str) -> bool:
        return self.driver_id is not None and self.driver_id == user_id


class RideDetailsPatch(BaseModel):
    """Driver edits to an existing ride. Unset fields are left unchanged."""
    origin: Optional[Location] = None
    destination: Optional[Location] = None
    departure_time: Optional[datetime] = None
    total_seats: Optional[int] = None

    @field_validator("departure_time")
    @classmethod
    def _departure_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None


class RideCapabilities(BaseModel):
    """What a given actor may currently do with a given ride."""
    ride_id: str
    can_reserve: bool
    can_cancel_reservation: bool
    can_accept: bool
    can_start: bool
    can_complete: bool
    can_cancel_ride: bool
    can_edit: bool
    can_delete: bool
