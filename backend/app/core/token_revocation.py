"""
Token Revocation System using Redis.

Blacklists JWT tokens on logout so they stop working before they expire.
"""

import logging
from backend.app.core import redis_client as redis_module
from backend.app.core.config import settings

logger = logging.getLogger(__name__)

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"


async def revoke_token(token: str, user_id: str) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        token: The JWT token string to revoke
        user_id: User ID who owns the token

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        # Tokens expire on their own; keep the entry no longer than that
        ttl_seconds = settings.access_token_expire_minutes * 60
        await redis_module.redis_client.setex(f"{TOKEN_BLACKLIST_PREFIX}{token}", ttl_seconds, user_id)
        return True
    except Exception:
        logger.exception("Error revoking token for user %s", user_id)
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    If Redis is unreachable the token is treated as valid (availability over
    strictness); the failure is logged.
    """
    try:
        exists = await redis_module.redis_client.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}")
        return exists > 0
    except Exception:
        logger.exception("Error checking token revocation")
        return False
