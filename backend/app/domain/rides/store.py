"""
Ride store.

The persistence boundary of the ride engine. Every write is conditional on
the version the caller read, so a lost race surfaces as a failed write
instead of a silently overwritten ride.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domain.rides.records import RideRecord
from backend.app.models.ride import Ride

logger = logging.getLogger(__name__)


class RideStore(ABC):
    """Interface the ride engine persists through."""

    @abstractmethod
    async def list_all(self) -> List[RideRecord]:
        """Return a snapshot of every ride."""

    @abstractmethod
    async def get(self, ride_id: str) -> Optional[RideRecord]:
        """Return the ride, or None if it does not exist."""

    @abstractmethod
    async def create(self, ride: RideRecord) -> RideRecord:
        """Insert a new ride at version 0."""

    @abstractmethod
    async def compare_and_set(self, ride: RideRecord, expected_version: int) -> Optional[RideRecord]:
        """
        Replace the stored ride if its version still equals `expected_version`.

        Returns the stored ride (with its new version) or None on conflict.
        """

    @abstractmethod
    async def delete(self, ride_id: str, expected_version: int) -> bool:
        """Delete the ride if its version still equals `expected_version`."""

    @abstractmethod
    async def list_by_recurrence(self, recurrence_id: str) -> List[RideRecord]:
        """Return every instance of a recurring series."""


class InMemoryRideStore(RideStore):
    """
    Process-local store.

    Reads hand out copies and yield to the event loop, so concurrent
    coroutines interleave the same way remote round trips would.
    """

    def __init__(self):
        self._rides: Dict[str, RideRecord] = {}

    async def list_all(self) -> List[RideRecord]:
        await asyncio.sleep(0)
        return [ride.model_copy(deep=True) for ride in self._rides.values()]

    async def get(self, ride_id: str) -> Optional[RideRecord]:
        await asyncio.sleep(0)
        ride = self._rides.get(ride_id)
        return ride.model_copy(deep=True) if ride else None

    async def create(self, ride: RideRecord) -> RideRecord:
        stored = ride.model_copy(update={"version": 0}, deep=True)
        self._rides[stored.id] = stored
        return stored.model_copy(deep=True)

    async def compare_and_set(self, ride: RideRecord, expected_version: int) -> Optional[RideRecord]:
        current = self._rides.get(ride.id)
        if current is None or current.version != expected_version:
            return None
        stored = ride.model_copy(update={"version": expected_version + 1}, deep=True)
        self._rides[ride.id] = stored
        return stored.model_copy(deep=True)

    async def delete(self, ride_id: str, expected_version: int) -> bool:
        current = self._rides.get(ride_id)
        if current is None or current.version != expected_version:
            return False
        del self._rides[ride_id]
        return True

    async def list_by_recurrence(self, recurrence_id: str) -> List[RideRecord]:
        rides = await self.list_all()
        return [ride for ride in rides if ride.recurrence_id == recurrence_id]


def _row_values(ride: RideRecord) -> dict:
    """Column values for a ride record, passengers flattened to JSON."""
    values = ride.model_dump(exclude={"id", "version", "passengers"})
    values["passengers"] = [p.model_dump() for p in ride.passengers]
    return values


class SQLRideStore(RideStore):
    """
    SQLAlchemy-backed store.

    Each write commits on its own; conditional writes compare `version` in
    the WHERE clause so the database arbitrates between racing sessions.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_all(self) -> List[RideRecord]:
        result = await self.db.execute(
            select(Ride).order_by(Ride.departure_time.desc()).execution_options(populate_existing=True)
        )
        return [RideRecord.model_validate(row) for row in result.scalars().all()]

    async def get(self, ride_id: str) -> Optional[RideRecord]:
        result = await self.db.execute(
            select(Ride).where(Ride.id == ride_id).execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return RideRecord.model_validate(row) if row else None

    async def create(self, ride: RideRecord) -> RideRecord:
        row = Ride(id=ride.id, version=0, **_row_values(ride))
        self.db.add(row)
        await self.db.commit()
        await self.db.refresh(row)
        return RideRecord.model_validate(row)

    async def compare_and_set(self, ride: RideRecord, expected_version: int) -> Optional[RideRecord]:
        stmt = (
            update(Ride)
            .where(Ride.id == ride.id, Ride.version == expected_version)
            .values(version=expected_version + 1, **_row_values(ride))
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            await self.db.rollback()
            logger.debug("Version conflict on ride %s (expected v%s)", ride.id, expected_version)
            return None
        await self.db.commit()
        return ride.model_copy(update={"version": expected_version + 1})

    async def delete(self, ride_id: str, expected_version: int) -> bool:
        stmt = (
            delete(Ride)
            .where(Ride.id == ride_id, Ride.version == expected_version)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            await self.db.rollback()
            return False
        await self.db.commit()
        return True

    async def list_by_recurrence(self, recurrence_id: str) -> List[RideRecord]:
        result = await self.db.execute(
            select(Ride)
            .where(Ride.recurrence_id == recurrence_id)
            .order_by(Ride.departure_time)
            .execution_options(populate_existing=True)
        )
        return [RideRecord.model_validate(row) for row in result.scalars().all()]
