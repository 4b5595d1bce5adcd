"""Read-model cache invalidation.

Invalidation must run after the owning transaction commits; callers invoke it
outside their ``transaction()`` block.
"""

from __future__ import annotations

import logging

from idlecore.config import get_settings

logger = logging.getLogger(__name__)


def profile_cache_key(user_id: int) -> str:
    """Redis key of the cached player profile view."""
    return f"{get_settings().profile_cache_prefix}:{user_id}"


async def invalidate_profile_cache(redis: object, user_id: int) -> None:
    """Drop the cached profile view for a player. Best effort."""
    if redis is None:
        return
    try:
        await redis.delete(profile_cache_key(user_id))  # type: ignore[union-attr]
    except Exception:
        logger.warning("Failed to invalidate profile cache for user %s", user_id, exc_info=True)
