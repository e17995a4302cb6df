"""
Notification Service.

Handles creation and state management of in-app notifications, and turns
ride events into notifications for the users they concern.
"""

import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import update
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from backend.app.domain.rides.events import RideEvent, RideEventKind, RideNotifier
from backend.app.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)

EVENT_TITLES = {
    RideEventKind.RESERVATION_MADE: "New reservation",
    RideEventKind.RESERVATION_CANCELLED: "Reservation cancelled",
    RideEventKind.REQUEST_ACCEPTED: "Ride request accepted",
    RideEventKind.RIDE_STARTED: "Ride started",
    RideEventKind.RIDE_STATUS_CHANGED: "Ride update",
    RideEventKind.RIDE_COMPLETED: "Ride completed",
    RideEventKind.RIDE_CANCELLED: "Ride cancelled",
    RideEventKind.RIDE_UPDATED: "Ride details changed",
}

RESERVATION_EVENTS = {RideEventKind.RESERVATION_MADE, RideEventKind.RESERVATION_CANCELLED}


class NotificationService:

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        user_id: str,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        ride_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Notification:
        """Create a single notification."""
        notif = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            ride_id=ride_id,
            metadata_payload=metadata
        )
        db.add(notif)
        await db.flush()  # Caller commits
        return notif

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, user_id: str) -> bool:
        """Mark a notification as read."""
        stmt = update(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).values(
            is_read=True,
            read_at=datetime.now(timezone.utc)
        )
        result = await db.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: str) -> int:
        """Mark all notifications for user as read."""
        stmt = update(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).values(
            is_read=True,
            read_at=datetime.now(timezone.utc)
        )
        result = await db.execute(stmt)
        return result.rowcount


class InAppRideNotifier(RideNotifier):
    """Stores one notification per recipient of a ride event."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def publish(self, event: RideEvent) -> None:
        type = NotificationType.RESERVATION if event.kind in RESERVATION_EVENTS else NotificationType.RIDE_UPDATE
        try:
            for user_id in event.recipients:
                await NotificationService.create_notification(
                    self.db,
                    user_id=user_id,
                    title=EVENT_TITLES[event.kind],
                    message=event.message,
                    type=type,
                    ride_id=event.ride.id,
                    metadata={"event": event.kind.value, "status": event.ride.status.value}
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.debug("Notified %s of %s on ride %s", event.recipients, event.kind.value, event.ride.id)
