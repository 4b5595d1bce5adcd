"""Redis client for the tap counters and the profile read-model cache.

Redis is best effort for the economy: the tap limiter fails open and cache
invalidation is skipped when the client is missing or unreachable.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

_client: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 50) -> None:
    """Create the shared client. Short socket timeouts keep a slow Redis off the tap path."""
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
        socket_timeout=0.5,
        socket_connect_timeout=0.5,
    )
    try:
        await _client.ping()
    except (RedisError, OSError):
        logger.warning("Redis at %s is not reachable yet; counters will degrade open", url)


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client:
        await _client.aclose()
        _client = None


def get_redis_optional() -> redis.Redis | None:
    """Get the Redis client, or None when it is not initialized."""
    return _client
