"""
Redis client initialization.

Redis holds short-lived state: revoked tokens and pending OTP codes.
"""

import redis.asyncio as redis
from backend.app.core.config import settings


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """
    Get Redis client instance.

    This can be used as a FastAPI dependency if needed.
    """
    return redis_client
