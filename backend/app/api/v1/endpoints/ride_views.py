"""
Ride View Endpoints.

Per-role lists derived from the ride collection: upcoming and past rides,
open requests and the single current ride.
"""

from fastapi import APIRouter, Depends

from backend.app.core.config import settings
from backend.app.core.dependencies import get_ride_service
from backend.app.core.guards import require_driver, require_passenger
from backend.app.domain.rides import views
from backend.app.domain.rides.records import Actor, utcnow
from backend.app.domain.rides.ride_service import RideService
from backend.app.schemas.ride import CurrentRideResponse, RideListResponse

passenger_router = APIRouter(prefix="/passenger", tags=["Passenger - Rides"])
driver_router = APIRouter(prefix="/driver", tags=["Driver - Rides"])


def _listing(rides) -> RideListResponse:
    return RideListResponse(rides=rides, total=len(rides))


# --- Passenger ---

@passenger_router.get("/rides/upcoming", response_model=RideListResponse)
async def passenger_upcoming(
    actor: Actor = Depends(require_passenger),
    service: RideService = Depends(get_ride_service)
):
    return _listing(views.passenger_upcoming_rides(await service.list_rides(), actor, utcnow()))


@passenger_router.get("/rides/past", response_model=RideListResponse)
async def passenger_past(
    actor: Actor = Depends(require_passenger),
    service: RideService = Depends(get_ride_service)
):
    return _listing(views.passenger_past_rides(await service.list_rides(), actor, utcnow()))


@passenger_router.get("/rides/current", response_model=CurrentRideResponse)
async def passenger_current(
    actor: Actor = Depends(require_passenger),
    service: RideService = Depends(get_ride_service)
):
    ride = views.current_passenger_ride(await service.list_rides(), actor, strict=settings.strict_ride_invariants)
    return CurrentRideResponse(ride=ride)


@passenger_router.get("/requests", response_model=RideListResponse)
async def passenger_requests(
    actor: Actor = Depends(require_passenger),
    service: RideService = Depends(get_ride_service)
):
    """Requests the passenger made that no driver has accepted yet."""
    return _listing(views.passenger_pending_requests(await service.list_rides(), actor))


# --- Driver ---

@driver_router.get("/rides/upcoming", response_model=RideListResponse)
async def driver_upcoming(
    actor: Actor = Depends(require_driver),
    service: RideService = Depends(get_ride_service)
):
    return _listing(views.driver_upcoming_rides(await service.list_rides(), actor, utcnow()))


@driver_router.get("/rides/past", response_model=RideListResponse)
async def driver_past(
    actor: Actor = Depends(require_driver),
    service: RideService = Depends(get_ride_service)
):
    return _listing(views.driver_past_rides(await service.list_rides(), actor, utcnow()))


@driver_router.get("/rides/current", response_model=CurrentRideResponse)
async def driver_current(
    actor: Actor = Depends(require_driver),
    service: RideService = Depends(get_ride_service)
):
    ride = views.current_driver_ride(await service.list_rides(), actor, strict=settings.strict_ride_invariants)
    return CurrentRideResponse(ride=ride)


@driver_router.get("/requests", response_model=RideListResponse)
async def driver_requests(
    actor: Actor = Depends(require_driver),
    service: RideService = Depends(get_ride_service)
):
    """Open passenger requests any driver may accept."""
    return _listing(views.driver_ride_requests(await service.list_rides(), actor))
