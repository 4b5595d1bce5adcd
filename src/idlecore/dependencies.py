"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from fastapi import Header, HTTPException

from idlecore.database import get_session as _get_session
from idlecore.redis_client import get_redis_optional

get_db = _get_session


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """Yield the Redis client (or None when unavailable) as a FastAPI dependency."""
    yield get_redis_optional()


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> int:
    """Resolve the caller from the X-User-Id header set by the upstream auth gateway."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        user_id = int(x_user_id)
    except ValueError as e:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header") from e
    if user_id <= 0:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header")
    return user_id
