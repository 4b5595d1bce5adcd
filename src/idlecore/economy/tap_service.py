"""Tap ingestion with per-second and per-minute Redis counters."""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime, timezone
from typing import Any

from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from idlecore import metrics
from idlecore.cache import invalidate_profile_cache
from idlecore.database import transaction
from idlecore.economy.achievement_service import sync_metric
from idlecore.economy.event_log import log_event
from idlecore.economy.leveling import xp_from_energy
from idlecore.economy.player_state import apply_gain, get_or_create_progress
from idlecore.exceptions import RateLimitError, ValidationError

logger = logging.getLogger(__name__)

MAX_TAP_COUNT_PER_REQUEST = 50
MAX_TAPS_PER_SECOND = 30
MAX_TAPS_PER_MINUTE = 600
SECOND_KEY_TTL = 2
MINUTE_KEY_TTL = 120


def tap_income_per_hit(tap_level: int) -> float:
    """Energy per tap: +0.25 for every tap level above 1."""
    return 1 + (max(1, tap_level or 1) - 1) * 0.25


def validate_tap_count(tap_count: Any) -> int:
    if isinstance(tap_count, bool) or not isinstance(tap_count, int) or tap_count <= 0:
        raise ValidationError("invalid_tap_count", "Tap count must be a positive integer")
    if tap_count > MAX_TAP_COUNT_PER_REQUEST:
        raise ValidationError(
            "tap_count_too_high", f"At most {MAX_TAP_COUNT_PER_REQUEST} taps per request"
        )
    return tap_count


async def enforce_tap_rate_limit(
    db: AsyncSession,
    redis: object,
    user_id: int,
    tap_count: int,
    now: float | None = None,
) -> None:
    """Count the taps against both windows; raise RateLimitError when either overflows.

    Counters are bumped even for rejected requests. When Redis is missing or
    failing the taps are let through and a warning is logged.
    """
    epoch = int(now if now is not None else time.time())
    second_key = f"tap:{user_id}:sec:{epoch}"
    minute_key = f"tap:{user_id}:min:{epoch // 60}"

    if redis is None:
        logger.warning("Tap rate limit degraded for user %s: redis unavailable", user_id)
        metrics.record_tap_rate_limit_degraded()
        return

    try:
        pipe = redis.pipeline()  # type: ignore[union-attr]
        pipe.incrby(second_key, tap_count)
        pipe.expire(second_key, SECOND_KEY_TTL)
        pipe.incrby(minute_key, tap_count)
        pipe.expire(minute_key, MINUTE_KEY_TTL)
        results: list[Any] = await pipe.execute()
        second_total = int(results[0])
        minute_total = int(results[2])
    except (RedisError, RuntimeError, OSError) as e:
        logger.warning("Tap rate limit degraded for user %s: %s", user_id, e)
        metrics.record_tap_rate_limit_degraded()
        return

    if second_total <= MAX_TAPS_PER_SECOND and minute_total <= MAX_TAPS_PER_MINUTE:
        return

    if second_total > MAX_TAPS_PER_SECOND:
        window, retry_after = "second", 1
    else:
        window, retry_after = "minute", 60 - epoch % 60

    payload = {
        "tap_count": tap_count,
        "second_total": second_total,
        "minute_total": minute_total,
        "window": window,
    }
    async with transaction(db):
        await log_event(db, user_id, "tap_rate_limit", payload, suspicious=True)
    logger.warning("Tap rate limit triggered for user %s: %s", user_id, payload)
    metrics.record_tap_rate_limited(window)
    raise RateLimitError("tap_rate_limited", "Too many taps", retry_after=retry_after)


async def process_tap(
    db: AsyncSession,
    redis: object,
    user_id: int,
    tap_count: Any,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Validate, rate-limit and apply a batch of taps."""
    tap_count = validate_tap_count(tap_count)
    now = now or datetime.now(timezone.utc)

    await enforce_tap_rate_limit(db, redis, user_id, tap_count, now=now.timestamp())
    metrics.record_tap_request(tap_count)

    async with transaction(db):
        progress, _ = await get_or_create_progress(db, user_id, lock=True)

        per_hit = tap_income_per_hit(progress.tap_level)
        energy_gained = math.floor(per_hit * tap_count)
        xp_gained = xp_from_energy(energy_gained)

        old_level, level_info = apply_gain(progress, energy_gained, xp_gained)
        progress.total_taps = progress.total_taps + tap_count
        leveled_up = progress.level != old_level

        await log_event(
            db,
            user_id,
            "tap",
            {
                "taps": tap_count,
                "energy_gained": energy_gained,
                "xp_gained": xp_gained,
                "leveled_up": leveled_up,
            },
        )
        await sync_metric(db, user_id, "total_taps", progress.total_taps)
        await sync_metric(db, user_id, "total_energy", progress.total_energy_produced)
        await db.flush()

        result = {
            "energy": progress.energy,
            "energy_gained": energy_gained,
            "xp_gained": xp_gained,
            "level": progress.level,
            "xp_into_level": level_info["xp_into_level"],
            "xp_to_next_level": level_info["xp_to_next_level"],
            "level_up": leveled_up,
            "tap_income": per_hit,
            "total_taps": progress.total_taps,
        }

    await invalidate_profile_cache(redis, user_id)
    return result
