"""
Ride Service (Domain Logic).

Owns the ride lifecycle: creating requests and offers, seat reservation,
request acceptance, status/progress transitions, edits and deletion.

Every mutation is a read -> validate -> compare-and-set cycle against the
ride store, retried a bounded number of times when another actor wrote the
same ride in between. Expected failures are returned as RideResult objects,
never raised.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Protocol, Union

from backend.app.core.config import settings
from backend.app.domain.rides import policy
from backend.app.domain.rides.events import (
    NullRideNotifier,
    RideEvent,
    RideEventKind,
    RideNotifier,
)
from backend.app.domain.rides.records import (
    Actor,
    RideCapabilities,
    RideDetailsPatch,
    RidePassenger,
    RideRecord,
    as_utc,
    utcnow,
)
from backend.app.domain.rides.results import RideFailure, RideFailureReason, RideResult
from backend.app.domain.rides.store import RideStore
from backend.app.models.enums import UserRole
from backend.app.models.ride_enums import Location, RideStatus

logger = logging.getLogger(__name__)

# A mutation either produces the replacement record or explains why not.
Mutation = Callable[[RideRecord], Union[RideRecord, RideFailure]]

RIDE_NOT_FOUND = RideFailure(RideFailureReason.RIDE_NOT_FOUND, "Ride not found")


class UserDirectory(Protocol):
    """Read-only view of the identity provider."""

    async def get_actor(self, user_id: str) -> Optional[Actor]:
        ...


def new_ride_id() -> str:
    return str(uuid.uuid4())


def with_roster(ride: RideRecord, passengers: List[RidePassenger], **changes) -> RideRecord:
    """Copy of `ride` with a new roster and seat count derived from it."""
    total_seats = changes.pop("total_seats", ride.total_seats)
    return ride.model_copy(update={
        **changes,
        "passengers": passengers,
        "total_seats": total_seats,
        "seats_available": total_seats - len(passengers),
    })


def sunday_based_weekday(moment: datetime) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (moment.weekday() + 1) % 7


def recurring_departures(first: datetime, days: Iterable[int]) -> List[datetime]:
    """Departures on the selected weekdays within the week starting at `first`."""
    wanted = set(days)
    candidates = (first + timedelta(days=offset) for offset in range(7))
    return [moment for moment in candidates if sunday_based_weekday(moment) in wanted]


class RideService:
    """Ride lifecycle engine bound to a store, a user directory and a notifier."""

    def __init__(
        self,
        store: RideStore,
        users: UserDirectory,
        notifier: Optional[RideNotifier] = None,
        clock: Callable[[], datetime] = utcnow,
        max_attempts: Optional[int] = None,
    ):
        self.store = store
        self.users = users
        self.notifier = notifier or NullRideNotifier()
        self.clock = clock
        self.max_attempts = max_attempts or settings.ride_update_max_attempts

    # ===================== Queries =====================

    async def get_ride_by_id(self, ride_id: str) -> Optional[RideRecord]:
        return await self.store.get(ride_id)

    async def list_rides(self) -> List[RideRecord]:
        return await self.store.list_all()

    def capabilities(self, actor: Actor, ride: RideRecord) -> RideCapabilities:
        """Which operations `actor` may perform on `ride` right now."""
        return RideCapabilities(
            ride_id=ride.id,
            can_reserve=policy.can_reserve(actor, ride) is None,
            can_cancel_reservation=policy.can_cancel_reservation(actor, ride) is None,
            can_accept=policy.can_accept(actor, ride) is None,
            can_start=(
                ride.status != RideStatus.ON_ROUTE
                and policy.can_transition(actor, ride, RideStatus.ON_ROUTE) is None
            ),
            can_complete=policy.can_transition(actor, ride, RideStatus.COMPLETED) is None,
            can_cancel_ride=policy.can_transition(actor, ride, RideStatus.CANCELLED) is None,
            can_edit=policy.can_edit(actor, ride) is None,
            can_delete=policy.can_delete(actor, ride) is None,
        )

    # ===================== Creation =====================

    async def request_ride(
        self,
        actor: Actor,
        departure_time: datetime,
        origin: Location,
        destination: Location,
    ) -> RideResult:
        """Create a Requested ride on behalf of a passenger."""
        departure_time = as_utc(departure_time)
        failure = policy.first_failure(
            policy.require_role(actor, UserRole.PASSENGER),
            policy.check_route(origin, destination),
            policy.check_departure(departure_time, self.clock()),
        )
        if failure:
            return RideResult.fail(failure)

        seats = settings.ride_default_total_seats
        ride = await self.store.create(RideRecord(
            id=new_ride_id(),
            origin=origin,
            destination=destination,
            departure_time=departure_time,
            total_seats=seats,
            seats_available=seats,
            status=RideStatus.REQUESTED,
            requested_by=actor.id,
        ))
        logger.info("Passenger %s requested ride %s", actor.id, ride.id)
        return RideResult.ok(ride, "Ride requested")

    async def post_ride(
        self,
        actor: Actor,
        departure_time: datetime,
        origin: Location,
        destination: Location,
        total_seats: int,
        recurring_days: Optional[Iterable[int]] = None,
    ) -> RideResult:
        """
        Create a Scheduled ride owned by a driver.

        With `recurring_days` one instance is created per selected weekday in
        the week starting at `departure_time`; all share a recurrence id.
        """
        departure_time = as_utc(departure_time)
        days = sorted(set(recurring_days or []))
        failure = policy.first_failure(
            policy.require_role(actor, UserRole.DRIVER),
            policy.check_route(origin, destination),
            policy.check_departure(departure_time, self.clock()),
            policy.check_total_seats(total_seats),
            policy.check_recurring_days(days),
        )
        if failure:
            return RideResult.fail(failure)

        departures = recurring_departures(departure_time, days) if days else [departure_time]
        recurrence_id = new_ride_id() if days else None

        rides = []
        for departure in departures:
            rides.append(await self.store.create(RideRecord(
                id=new_ride_id(),
                origin=origin,
                destination=destination,
                departure_time=departure,
                total_seats=total_seats,
                seats_available=total_seats,
                status=RideStatus.SCHEDULED,
                driver_id=actor.id,
                driver_name=actor.name,
                driver_phone_number=actor.phone_number,
                recurrence_id=recurrence_id,
            )))
        logger.info("Driver %s posted %s ride(s) %s", actor.id, len(rides), [r.id for r in rides])

        result = RideResult.ok(rides[0], f"{len(rides)} ride(s) posted")
        result.rides = rides
        return result

    # ===================== Seats =====================

    async def reserve_seat(self, actor: Actor, ride_id: str) -> RideResult:
        """Add the passenger to the roster, taking one seat."""
        failure = policy.require_role(actor, UserRole.PASSENGER)
        if failure:
            return RideResult.fail(failure)

        def reserve(ride: RideRecord) -> Union[RideRecord, RideFailure]:
            failure = policy.can_reserve(actor, ride)
            if failure:
                return failure
            return with_roster(ride, ride.passengers + [RidePassenger.from_actor(actor)])

        result = await self._mutate(ride_id, reserve)
        if result.success:
            logger.info("Passenger %s reserved a seat on ride %s", actor.id, ride_id)
            await self._publish(
                RideEventKind.RESERVATION_MADE, result.ride, actor,
                f"{actor.name} reserved a seat",
                [result.ride.driver_id],
            )
        return result

    async def cancel_reservation(self, actor: Actor, ride_id: str) -> RideResult:
        """Remove the passenger from the roster, releasing their seat."""

        def release(ride: RideRecord) -> Union[RideRecord, RideFailure]:
            failure = policy.can_cancel_reservation(actor, ride)
            if failure:
                return failure
            return with_roster(ride, [p for p in ride.passengers if p.user_id != actor.id])

        result = await self._mutate(ride_id, release)
        if result.success:
            logger.info("Passenger %s released their seat on ride %s", actor.id, ride_id)
            await self._publish(
                RideEventKind.RESERVATION_CANCELLED, result.ride, actor,
                f"{actor.name} cancelled their reservation",
                [result.ride.driver_id],
            )
        return result

    # ===================== Requests =====================

    async def accept_ride_request(self, actor: Actor, ride_id: str) -> RideResult:
        """Assign the driver to a Requested ride and seat the requester."""
        failure = policy.require_role(actor, UserRole.DRIVER)
        if failure:
            return RideResult.fail(failure)

        ride = await self.store.get(ride_id)
        if ride is None:
            return RideResult.fail(RIDE_NOT_FOUND)
        failure = policy.can_accept(actor, ride)
        if failure:
            return RideResult.fail(failure)

        requester = await self.users.get_actor(ride.requested_by)
        if requester is None:
            logger.error("Requester %s of ride %s does not exist", ride.requested_by, ride_id)
            return RideResult.fail(RideFailure(RideFailureReason.USER_NOT_FOUND, "Requester not found"))

        def accept(ride: RideRecord) -> Union[RideRecord, RideFailure]:
            failure = policy.can_accept(actor, ride)
            if failure:
                return failure
            return with_roster(
                ride,
                [RidePassenger.from_actor(requester)],
                status=RideStatus.SCHEDULED,
                driver_id=actor.id,
                driver_name=actor.name,
                driver_phone_number=actor.phone_number,
            )

        result = await self._mutate(ride_id, accept)
        if result.success:
            logger.info("Driver %s accepted ride request %s", actor.id, ride_id)
            await self._publish(
                RideEventKind.REQUEST_ACCEPTED, result.ride, actor,
                f"{actor.name} accepted your ride request",
                [requester.id],
            )
        return result

    # ===================== Status =====================

    async def update_ride_status(
        self,
        actor: Actor,
        ride_id: str,
        new_status: RideStatus,
        progress: Optional[int] = None,
    ) -> RideResult:
        """
        Move a ride along its lifecycle.

        Progress is clamped to [previous, 100] within an On Route episode and
        reaching 100 there marks the destination as reached.
        """
        failure = policy.check_progress(progress)
        if failure:
            return RideResult.fail(failure)

        previous = {}

        def transition(ride: RideRecord) -> Union[RideRecord, RideFailure]:
            failure = policy.can_transition(actor, ride, new_status)
            if failure:
                return failure
            previous["status"] = ride.status
            status, new_progress = self._next_progress(ride, new_status, progress)
            return ride.model_copy(update={"status": status, "progress": new_progress})

        result = await self._mutate(ride_id, transition)
        if not result.success:
            return result

        ride = result.ride
        logger.info(
            "Ride %s is now %s (progress %s) by %s", ride_id, ride.status.value, ride.progress, actor.id
        )
        if previous["status"] != ride.status:
            await self._publish_status_change(ride, actor)
        return result

    @staticmethod
    def _next_progress(ride: RideRecord, new_status: RideStatus, progress: Optional[int]):
        if new_status == RideStatus.ON_ROUTE:
            if ride.status == RideStatus.ON_ROUTE:
                value = ride.progress if progress is None else max(ride.progress, progress)
            else:
                value = 0 if progress is None else progress
            if value >= 100:
                return RideStatus.DESTINATION_REACHED, 100
            return RideStatus.ON_ROUTE, value
        if new_status in (RideStatus.DESTINATION_REACHED, RideStatus.COMPLETED):
            return new_status, 100
        if new_status == RideStatus.ARRIVING and progress is not None:
            return new_status, max(ride.progress, progress)
        # Progress only moves while the vehicle is underway
        return new_status, ride.progress

    async def _publish_status_change(self, ride: RideRecord, actor: Actor):
        recipients = [p.user_id for p in ride.passengers]
        if ride.status == RideStatus.CANCELLED:
            kind, message = RideEventKind.RIDE_CANCELLED, "Your ride was cancelled"
            if ride.driver_id:
                recipients.append(ride.driver_id)
        elif ride.status == RideStatus.COMPLETED:
            kind, message = RideEventKind.RIDE_COMPLETED, "Your ride is complete"
        elif ride.status == RideStatus.ON_ROUTE:
            kind, message = RideEventKind.RIDE_STARTED, "Your ride is on route"
        else:
            kind, message = RideEventKind.RIDE_STATUS_CHANGED, f"Your ride is now {ride.status.value}"
        await self._publish(kind, ride, actor, message, recipients)

    # ===================== Edits & deletion =====================

    async def update_ride_details(self, actor: Actor, ride_id: str, patch: RideDetailsPatch) -> RideResult:
        """Apply a driver's edit to route, time or capacity."""
        failure = policy.first_failure(
            policy.check_total_seats(patch.total_seats) if patch.total_seats is not None else None,
            policy.check_departure(patch.departure_time, self.clock()) if patch.departure_time else None,
        )
        if failure:
            return RideResult.fail(failure)

        def edit(ride: RideRecord) -> Union[RideRecord, RideFailure]:
            failure = policy.can_edit(actor, ride)
            if failure:
                return failure
            origin = patch.origin or ride.origin
            destination = patch.destination or ride.destination
            failure = policy.check_route(origin, destination)
            if failure:
                return failure
            total_seats = patch.total_seats if patch.total_seats is not None else ride.total_seats
            if total_seats < len(ride.passengers):
                return RideFailure(
                    RideFailureReason.SEATS_BELOW_PASSENGERS,
                    f"Cannot reduce seats below current passenger count ({len(ride.passengers)})",
                )
            return with_roster(
                ride,
                list(ride.passengers),
                origin=origin,
                destination=destination,
                departure_time=patch.departure_time or ride.departure_time,
                total_seats=total_seats,
            )

        result = await self._mutate(ride_id, edit)
        if result.success:
            logger.info("Driver %s edited ride %s", actor.id, ride_id)
            await self._publish(
                RideEventKind.RIDE_UPDATED, result.ride, actor,
                "Your ride details changed",
                [p.user_id for p in result.ride.passengers],
            )
        return result

    async def delete_ride(self, actor: Actor, ride_id: str) -> RideResult:
        """Remove a passenger-free ride owned by the driver."""
        for attempt in range(1, self.max_attempts + 1):
            ride = await self.store.get(ride_id)
            if ride is None:
                return RideResult.fail(RIDE_NOT_FOUND)
            failure = policy.can_delete(actor, ride)
            if failure:
                return RideResult.fail(failure)
            if await self.store.delete(ride_id, ride.version):
                logger.info("Driver %s deleted ride %s", actor.id, ride_id)
                return RideResult.ok(ride, "Ride deleted")
            logger.warning("Ride %s changed while deleting (attempt %s/%s)", ride_id, attempt, self.max_attempts)
        return self._conflict(ride_id)

    async def delete_future_recurring_instances(self, actor: Actor, seed_ride_id: str) -> RideResult:
        """
        Delete this and every later instance of the seed's recurring series.

        Instances still holding passengers are skipped, never partially
        deleted. The counts come back in `extra`.
        """
        seed = await self.store.get(seed_ride_id)
        if seed is None:
            return RideResult.fail(RIDE_NOT_FOUND)
        failure = policy.require_owner(actor, seed)
        if failure:
            return RideResult.fail(failure)
        if not seed.recurrence_id:
            return RideResult.fail(RideFailure(RideFailureReason.NOT_RECURRING, "Ride is not part of a recurring series"))

        cutoff = max(self.clock(), seed.departure_time)
        instances = sorted(
            (r for r in await self.store.list_by_recurrence(seed.recurrence_id) if r.departure_time >= cutoff),
            key=lambda r: r.departure_time,
        )
        if seed.id not in {r.id for r in instances}:
            instances.insert(0, seed)

        deleted_count = skipped_count = conflict_count = 0
        for instance in instances:
            result = await self.delete_ride(actor, instance.id)
            if result.success:
                deleted_count += 1
            elif result.reason == RideFailureReason.HAS_PASSENGERS:
                skipped_count += 1
            elif result.reason == RideFailureReason.RIDE_NOT_FOUND:
                continue
            else:
                conflict_count += 1
                logger.warning(
                    "Could not delete instance %s of series %s: %s",
                    instance.id, seed.recurrence_id, result.reason.value,
                )

        logger.info(
            "Driver %s deleted %s instance(s) of series %s, skipped %s, conflicts %s",
            actor.id, deleted_count, seed.recurrence_id, skipped_count, conflict_count,
        )
        message = (
            f"{deleted_count} future instance(s) deleted. "
            f"{skipped_count} instance(s) with passengers were skipped."
        )
        if conflict_count:
            message += f" {conflict_count} instance(s) changed concurrently and were left in place."
        return RideResult.ok(
            None,
            message,
            deleted_count=deleted_count,
            skipped_count=skipped_count,
            conflict_count=conflict_count,
        )

    # ===================== Internals =====================

    async def _mutate(self, ride_id: str, mutation: Mutation) -> RideResult:
        for attempt in range(1, self.max_attempts + 1):
            ride = await self.store.get(ride_id)
            if ride is None:
                return RideResult.fail(RIDE_NOT_FOUND)
            outcome = mutation(ride)
            if isinstance(outcome, RideFailure):
                return RideResult.fail(outcome)
            saved = await self.store.compare_and_set(outcome, ride.version)
            if saved is not None:
                return RideResult.ok(saved)
            logger.warning("Ride %s changed concurrently (attempt %s/%s)", ride_id, attempt, self.max_attempts)
        return self._conflict(ride_id)

    def _conflict(self, ride_id: str) -> RideResult:
        logger.error("Giving up on ride %s after %s conflicting attempts", ride_id, self.max_attempts)
        return RideResult.fail(RideFailure(
            RideFailureReason.CONCURRENT_UPDATE,
            "Ride was modified by someone else, please refresh and retry",
        ))

    async def _publish(
        self,
        kind: RideEventKind,
        ride: RideRecord,
        actor: Actor,
        message: str,
        recipients: Iterable[Optional[str]],
    ) -> None:
        targets = [user_id for user_id in dict.fromkeys(recipients) if user_id and user_id != actor.id]
        if not targets:
            return
        try:
            await self.notifier.publish(RideEvent(kind, ride, actor.id, message, targets))
        except Exception:
            logger.exception("Failed to publish %s for ride %s", kind.value, ride.id)
