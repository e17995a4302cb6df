"""
Ride database model.

A ride is either posted by a driver or requested by a passenger. The
passenger roster is embedded as a JSON list; every write bumps `version`.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, JSON, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.ride_enums import RideStatus, Location


class Ride(Base):
    """
    Ride model.

    Writes go through conditional updates on `version` (see SQLRideStore),
    so two actors racing on the same ride cannot both win.
    """
    __tablename__ = "rides"

    id = Column(String(36), primary_key=True, index=True)

    # Route
    origin = Column(Enum(Location), nullable=False)
    destination = Column(Enum(Location), nullable=False)
    departure_time = Column(DateTime(timezone=True), nullable=False, index=True)

    # Capacity
    total_seats = Column(Integer, nullable=False)
    seats_available = Column(Integer, nullable=False)
    passengers = Column(JSON, nullable=False, default=list)

    # Status
    status = Column(Enum(RideStatus), nullable=False, index=True)
    progress = Column(Integer, nullable=False, default=0)

    # Driver snapshot (taken at assignment time)
    driver_id = Column(String(20), ForeignKey("users.id"), index=True, nullable=True)
    driver_name = Column(String(100), nullable=True)
    driver_phone_number = Column(String(20), nullable=True)

    # Request / recurrence bookkeeping
    requested_by = Column(String(20), ForeignKey("users.id"), index=True, nullable=True)
    recurrence_id = Column(String(36), index=True, nullable=True)

    # Optimistic concurrency revision
    version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Ride(id={self.id}, status='{self.status.value}', seats={self.seats_available}/{self.total_seats})>"
