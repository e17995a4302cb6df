"""
Ride API Endpoints.

Thin HTTP layer over the ride engine: every handler builds the actor from
the bearer token, calls one engine operation and maps a failed RideResult
to an error response.
"""

from fastapi import APIRouter, Depends, Path, status

from backend.app.core.dependencies import get_current_actor, get_ride_service
from backend.app.core.exceptions import ResourceNotFoundError, raise_for_result
from backend.app.domain.rides.records import Actor, RideCapabilities, RideDetailsPatch
from backend.app.domain.rides.ride_service import RideService
from backend.app.schemas.ride import (
    LocationResponse,
    PostRideResponse,
    RidePostCreate,
    RideRequestCreate,
    RideResponse,
    RideUpdate,
    SeriesDeletionResponse,
    StatusUpdate,
)
from backend.app.services.gps import get_coordinates

router = APIRouter(prefix="/rides", tags=["Rides"])


async def _load_ride(service: RideService, ride_id: str):
    ride = await service.get_ride_by_id(ride_id)
    if ride is None:
        raise ResourceNotFoundError("Ride", ride_id)
    return ride


@router.post("", response_model=PostRideResponse, status_code=status.HTTP_201_CREATED)
async def post_ride(
    body: RidePostCreate,
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service)
):
    """
    Post a ride offer (Driver only).

    With `recurring_days` one ride is created per selected weekday in the
    week starting at `departure_time`.
    """
    result = raise_for_result(await service.post_ride(
        actor,
        departure_time=body.departure_time,
        origin=body.origin,
        destination=body.destination,
        total_seats=body.total_seats,
        recurring_days=body.recurring_days,
    ))
    return PostRideResponse(
        message=result.message,
        ride=RideResponse.model_validate(result.ride),
        rides=[RideResponse.model_validate(r) for r in result.rides],
    )


@router.post("/requests", response_model=RideResponse, status_code=status.HTTP_201_CREATED)
async def request_ride(
    body: RideRequestCreate,
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service)
):
    """Ask for a ride (Passenger only). A driver must accept it."""
    result = raise_for_result(await service.request_ride(
        actor,
        departure_time=body.departure_time,
        origin=body.origin,
        destination=body.destination,
    ))
    return result.ride


@router.get("/{ride_id}", response_model=RideResponse)
async def get_ride(
    ride_id: str = Path(..., description="Ride ID"),
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service)
):
    return await _load_ride(service, ride_id)


@router.get("/{ride_id}/capabilities", response_model=RideCapabilities)
async def get_ride_capabilities(
    ride_id: str = Path(..., description="Ride ID"),
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service)
):
    """Which actions the current user may take on this ride right now."""
    ride = await _load_ride(service, ride_id)
    return service.capabilities(actor, ride)


@router.get("/{ride_id}/location", response_model=LocationResponse)
async def get_ride_location(
    ride_id: str = Path(..., description="Ride ID"),
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service)
):
    """Approximate vehicle position (simulated)."""
    ride = await _load_ride(service, ride_id)
    coordinates = get_coordinates(ride)
    return LocationResponse(
        ride_id=ride.id,
        status=ride.status,
        progress=ride.progress,
        latitude=coordinates.latitude,
        longitude=coordinates.longitude,
    )


@router.post("/{ride_id}/reservation", response_model=RideResponse)
async def reserve_seat(
    ride_id: str = Path(..., description="Ride ID"),
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service)
):
    """Reserve one seat on a Scheduled ride (Passenger only)."""
    result = raise_for_result(await service.reserve_seat(actor, ride_id))
    return result.ride


@router.delete("/{ride_id}/reservation", response_model=RideResponse)
async def cancel_reservation(
    ride_id: str = Path(..., description="Ride ID"),
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service)
):
    """Give back the current user's seat."""
    result = raise_for_result(await service.cancel_reservation(actor, ride_id))
    return result.ride


@router.post("/{ride_id}/accept", response_model=RideResponse)
async def accept_ride_request(
    ride_id: str = Path(..., description="Ride ID"),
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service)
):
    """Take on a passenger's ride request (Driver only)."""
    result = raise_for_result(await service.accept_ride_request(actor, ride_id))
    return result.ride


@router.patch("/{ride_id}/status", response_model=RideResponse)
async def update_ride_status(
    body: StatusUpdate,
    ride_id: str = Path(..., description="Ride ID"),
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service)
):
    """
    Move the ride to a new status.

    Drivers drive their rides through the lifecycle; a passenger may only
    cancel their own unaccepted request.
    """
    result = raise_for_result(await service.update_ride_status(
        actor, ride_id, body.status, progress=body.progress
    ))
    return result.ride


@router.patch("/{ride_id}", response_model=RideResponse)
async def update_ride_details(
    body: RideUpdate,
    ride_id: str = Path(..., description="Ride ID"),
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service)
):
    patch = RideDetailsPatch(**body.model_dump(exclude_unset=True))
    result = raise_for_result(await service.update_ride_details(actor, ride_id, patch))
    return result.ride


@router.delete("/{ride_id}")
async def delete_ride(
    ride_id: str = Path(..., description="Ride ID"),
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service)
):
    """Delete a ride nobody has booked yet (owning driver only)."""
    result = raise_for_result(await service.delete_ride(actor, ride_id))
    return {"status": "success", "message": result.message, "ride_id": ride_id}


@router.delete("/{ride_id}/series", response_model=SeriesDeletionResponse)
async def delete_future_recurring_instances(
    ride_id: str = Path(..., description="Any ride of the series; it and later instances are removed"),
    actor: Actor = Depends(get_current_actor),
    service: RideService = Depends(get_ride_service)
):
    result = raise_for_result(await service.delete_future_recurring_instances(actor, ride_id))
    return SeriesDeletionResponse(
        message=result.message,
        deleted_count=result.extra["deleted_count"],
        skipped_count=result.extra["skipped_count"],
        conflict_count=result.extra["conflict_count"],
    )
