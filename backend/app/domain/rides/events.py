"""Ride events published to side channels after a successful write."""

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

from backend.app.domain.rides.records import RideRecord

logger = logging.getLogger(__name__)


class RideEventKind(str, enum.Enum):
    RESERVATION_MADE = "RESERVATION_MADE"
    RESERVATION_CANCELLED = "RESERVATION_CANCELLED"
    REQUEST_ACCEPTED = "REQUEST_ACCEPTED"
    RIDE_STARTED = "RIDE_STARTED"
    RIDE_STATUS_CHANGED = "RIDE_STATUS_CHANGED"
    RIDE_COMPLETED = "RIDE_COMPLETED"
    RIDE_CANCELLED = "RIDE_CANCELLED"
    RIDE_UPDATED = "RIDE_UPDATED"


@dataclass
class RideEvent:
    kind: RideEventKind
    ride: RideRecord
    actor_id: str
    message: str
    recipients: List[str] = field(default_factory=list)


class RideNotifier(ABC):
    """Delivers ride events to the users they concern."""

    @abstractmethod
    async def publish(self, event: RideEvent) -> None:
        ...


class NullRideNotifier(RideNotifier):
    """Drops every event."""

    async def publish(self, event: RideEvent) -> None:
        logger.debug("Dropping %s event for ride %s", event.kind.value, event.ride.id)
