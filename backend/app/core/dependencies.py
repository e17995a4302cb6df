"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication
and for wiring the ride engine to the request's database session.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.core.jwt import decode_access_token
from backend.app.core.token_revocation import is_token_revoked
from backend.app.db.session import get_db
from backend.app.domain.rides.records import Actor
from backend.app.domain.rides.ride_service import RideService
from backend.app.domain.rides.store import SQLRideStore
from backend.app.models.user import User
from backend.app.services.identity import IdentityProvider
from backend.app.services.notification_service import InAppRideNotifier

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Security checks:
    1. Validates JWT token signature and expiry
    2. Checks if token has been revoked (logout)
    3. Verifies user still exists and is active in database (real-time check)

    The raw token is kept on `request.state.token` so logout can revoke it.

    Returns:
        Decoded token payload containing user information

    Raises:
        HTTPException: 401 if authentication fails for any reason
    """
    token = credentials.credentials

    # 1. Decode and validate JWT
    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 2. Check if this specific token has been revoked
    if await is_token_revoked(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 3. Real-time database check: Verify user is still active
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    request.state.token = token
    # Role may have changed since the token was issued
    payload["role"] = user.role.value if user.role else None
    return payload


async def get_current_actor(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Actor:
    """The authenticated user as the ride engine sees them."""
    actor = await IdentityProvider(db).get_actor(current_user["user_id"])
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor


def get_ride_service(db: AsyncSession = Depends(get_db)) -> RideService:
    """Ride engine bound to the request's session."""
    return RideService(
        store=SQLRideStore(db),
        users=IdentityProvider(db),
        notifier=InAppRideNotifier(db),
    )
