"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import auth, rides, ride_views, notifications

router = APIRouter()

# Authentication endpoints
router.include_router(auth.router)

# Ride lifecycle
router.include_router(rides.router)

# Per-role ride views
router.include_router(ride_views.passenger_router)
router.include_router(ride_views.driver_router)

# In-app notifications
router.include_router(notifications.router)
