"""
Token Revocation System using Redis.

Access tokens are revoked at logout; all of a user's tokens are revoked
when an admin deactivates the account. Entries expire with the longest
access-token lifetime because a revoked token is useless after that anyway.
"""

from backend.app.core.redis_client import get_redis_client
from backend.app.core.config import settings
from backend.app.core.logging import get_logger

logger = get_logger(__name__)

# Redis key prefixes
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"
USER_TOKENS_PREFIX = "user:tokens:"


def _revocation_ttl() -> int:
    return settings.access_token_expire_minutes * 60


async def revoke_token(token: str, user_id: int) -> bool:
    """
    Revoke a single access token.

    Args:
        token: The JWT token string to revoke
        user_id: User ID who owns the token

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        await get_redis_client().setex(f"{TOKEN_BLACKLIST_PREFIX}{token}", _revocation_ttl(), str(user_id))
        return True
    except Exception as e:
        logger.warning(f"Error revoking token for user {user_id}: {e}")
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    Redis failures fail open: the token is treated as not revoked.
    """
    try:
        return await get_redis_client().exists(f"{TOKEN_BLACKLIST_PREFIX}{token}") > 0
    except Exception as e:
        logger.warning(f"Error checking token revocation: {e}")
        return False


async def revoke_all_user_tokens(user_id: int) -> bool:
    """Mark every outstanding token of a user as revoked (account deactivated)."""
    try:
        await get_redis_client().setex(f"{USER_TOKENS_PREFIX}{user_id}:revoked", _revocation_ttl(), "1")
        return True
    except Exception as e:
        logger.warning(f"Error revoking all tokens for user {user_id}: {e}")
        return False


async def are_user_tokens_revoked(user_id: int) -> bool:
    """Check whether the per-user revocation flag is set."""
    try:
        return await get_redis_client().exists(f"{USER_TOKENS_PREFIX}{user_id}:revoked") > 0
    except Exception as e:
        logger.warning(f"Error checking user token revocation: {e}")
        return False


async def clear_user_token_revocation(user_id: int) -> bool:
    """Clear the per-user revocation flag (account reactivated)."""
    try:
        await get_redis_client().delete(f"{USER_TOKENS_PREFIX}{user_id}:revoked")
        return True
    except Exception as e:
        logger.warning(f"Error clearing token revocation for user {user_id}: {e}")
        return False
