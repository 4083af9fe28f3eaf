"""
Token Revocation System using Redis.

Implements token blacklisting so logging out invalidates a JWT immediately
instead of at expiry.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from redis.exceptions import RedisError

import delivery_backend.app.core.redis_client as redis_client_module
from delivery_backend.app.core.config import settings

logger = logging.getLogger("delivery.auth")

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"


def _ttl_seconds(expires_at: Optional[int]) -> int:
    """Keep the blacklist entry only as long as the token could still be used."""
    if expires_at:
        remaining = int(expires_at - datetime.now(timezone.utc).timestamp())
        return max(remaining, 1)
    return settings.access_token_expire_minutes * 60


async def revoke_token(token: str, user_id: str, expires_at: Optional[int] = None) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        token: The JWT token string to revoke
        user_id: User ID who owns the token (stored for audit purposes)
        expires_at: The token's `exp` claim, used as the entry TTL

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        await redis_client_module.redis_client.setex(
            f"{TOKEN_BLACKLIST_PREFIX}{token}",
            _ttl_seconds(expires_at),
            str(user_id),
        )
        return True
    except (RedisError, OSError) as e:
        logger.error("Error revoking token for user %s: %s", user_id, e)
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    Returns:
        True if token is revoked, False otherwise
    """
    try:
        exists = await redis_client_module.redis_client.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}")
        return exists > 0
    except (RedisError, OSError) as e:
        # Fails open: an unreachable Redis does not lock every user out
        logger.error("Error checking token revocation: %s", e)
        return False
