"""
Notification API Endpoints.

In-app messages produced by ride events.
"""

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from typing import List

from backend.app.db.session import get_db
from backend.app.models.notification import Notification
from backend.app.core.dependencies import get_current_user
from backend.app.services.notification_service import NotificationService
from backend.app.schemas.notification import NotificationResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List current user's notifications, newest first."""
    query = select(Notification).where(Notification.user_id == current_user["user_id"])

    if unread_only:
        query = query.where(Notification.is_read == False)

    query = query.order_by(desc(Notification.created_at), desc(Notification.id)).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


@router.patch("/read-all")
async def mark_all_notifications_read(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark all notifications as read."""
    count = await NotificationService.mark_all_read(db, current_user["user_id"])
    await db.commit()
    return {"status": "success", "count": count}


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int = Path(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark a specific notification as read."""
    success = await NotificationService.mark_read(db, notification_id, current_user["user_id"])
    if not success:
        raise HTTPException(status_code=404, detail="Notification not found")

    await db.commit()
    return {"status": "success"}
