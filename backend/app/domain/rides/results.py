"""Result objects returned by ride engine operations."""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from backend.app.domain.rides.records import RideRecord


class RideErrorCode(str, enum.Enum):
    """Failure categories callers branch on."""
    VALIDATION = "VALIDATION"
    UNAUTHORIZED = "UNAUTHORIZED"
    STATE_CONFLICT = "STATE_CONFLICT"
    NOT_FOUND = "NOT_FOUND"


class RideFailureReason(str, enum.Enum):
    """Specific reason codes, each belonging to one category."""
    # Validation
    DEPARTURE_IN_PAST = "DEPARTURE_IN_PAST"
    SAME_LOCATION = "SAME_LOCATION"
    SEATS_OUT_OF_RANGE = "SEATS_OUT_OF_RANGE"
    SEATS_BELOW_PASSENGERS = "SEATS_BELOW_PASSENGERS"
    PROGRESS_OUT_OF_RANGE = "PROGRESS_OUT_OF_RANGE"
    INVALID_RECURRING_DAYS = "INVALID_RECURRING_DAYS"
    NOT_RECURRING = "NOT_RECURRING"
    # Authorization
    ROLE_MISMATCH = "ROLE_MISMATCH"
    NOT_OWNER = "NOT_OWNER"
    # State conflicts
    RIDE_TERMINAL = "RIDE_TERMINAL"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NOT_BOOKABLE = "NOT_BOOKABLE"
    NO_SEATS = "NO_SEATS"
    ALREADY_RESERVED = "ALREADY_RESERVED"
    NOT_A_PASSENGER = "NOT_A_PASSENGER"
    NOT_A_REQUEST = "NOT_A_REQUEST"
    HAS_PASSENGERS = "HAS_PASSENGERS"
    CONCURRENT_UPDATE = "CONCURRENT_UPDATE"
    # Not found
    RIDE_NOT_FOUND = "RIDE_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"

    @property
    def category(self) -> RideErrorCode:
        return _CATEGORIES[self]


_CATEGORIES = {
    RideFailureReason.DEPARTURE_IN_PAST: RideErrorCode.VALIDATION,
    RideFailureReason.SAME_LOCATION: RideErrorCode.VALIDATION,
    RideFailureReason.SEATS_OUT_OF_RANGE: RideErrorCode.VALIDATION,
    RideFailureReason.SEATS_BELOW_PASSENGERS: RideErrorCode.VALIDATION,
    RideFailureReason.PROGRESS_OUT_OF_RANGE: RideErrorCode.VALIDATION,
    RideFailureReason.INVALID_RECURRING_DAYS: RideErrorCode.VALIDATION,
    RideFailureReason.NOT_RECURRING: RideErrorCode.VALIDATION,
    RideFailureReason.ROLE_MISMATCH: RideErrorCode.UNAUTHORIZED,
    RideFailureReason.NOT_OWNER: RideErrorCode.UNAUTHORIZED,
    RideFailureReason.RIDE_TERMINAL: RideErrorCode.STATE_CONFLICT,
    RideFailureReason.INVALID_TRANSITION: RideErrorCode.STATE_CONFLICT,
    RideFailureReason.NOT_BOOKABLE: RideErrorCode.STATE_CONFLICT,
    RideFailureReason.NO_SEATS: RideErrorCode.STATE_CONFLICT,
    RideFailureReason.ALREADY_RESERVED: RideErrorCode.STATE_CONFLICT,
    RideFailureReason.NOT_A_PASSENGER: RideErrorCode.STATE_CONFLICT,
    RideFailureReason.NOT_A_REQUEST: RideErrorCode.STATE_CONFLICT,
    RideFailureReason.HAS_PASSENGERS: RideErrorCode.STATE_CONFLICT,
    RideFailureReason.CONCURRENT_UPDATE: RideErrorCode.STATE_CONFLICT,
    RideFailureReason.RIDE_NOT_FOUND: RideErrorCode.NOT_FOUND,
    RideFailureReason.USER_NOT_FOUND: RideErrorCode.NOT_FOUND,
}


@dataclass
class RideFailure:
    """A rejected check: the reason plus a human-readable message."""
    reason: RideFailureReason
    message: str


@dataclass
class RideResult:
    """Result object for ride operations."""
    success: bool
    ride: Optional[RideRecord] = None
    rides: List[RideRecord] = field(default_factory=list)
    message: str = ""
    error_code: Optional[RideErrorCode] = None
    reason: Optional[RideFailureReason] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, ride: Optional[RideRecord] = None, message: str = "", **extra) -> "RideResult":
        return cls(
            success=True,
            ride=ride,
            rides=[ride] if ride is not None else [],
            message=message,
            extra=extra,
        )

    @classmethod
    def fail(cls, failure: RideFailure) -> "RideResult":
        return cls(
            success=False,
            message=failure.message,
            error_code=failure.reason.category,
            reason=failure.reason,
        )
