"""Boost claiming and the boost hub read model."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from idlecore import metrics
from idlecore.cache import invalidate_profile_cache
from idlecore.config import get_settings
from idlecore.content.catalog import BoostDefinition, get_catalog
from idlecore.database import transaction
from idlecore.db.models import Boost
from idlecore.economy.event_log import log_event
from idlecore.economy.player_state import get_active_boosts, get_or_create_progress
from idlecore.exceptions import EconomyError, RateLimitError, StateConflictError, ValidationError

logger = logging.getLogger(__name__)


def _boost_dict(boost: Boost, now: datetime) -> dict[str, Any]:
    return {
        "id": boost.id,
        "boost_type": boost.boost_type,
        "multiplier": boost.multiplier,
        "expires_at": boost.expires_at.isoformat(),
        "remaining_seconds": max(0, math.ceil((boost.expires_at - now).total_seconds())),
    }


async def _last_claim_at(db: AsyncSession, user_id: int, boost_type: str) -> datetime | None:
    result = await db.execute(
        select(Boost.created_at)
        .where(Boost.user_id == user_id, Boost.boost_type == boost_type)
        .order_by(Boost.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def _cooldown_remaining(definition: BoostDefinition, last_claim: datetime | None, now: datetime) -> int:
    if last_claim is None:
        return 0
    available_at = last_claim + timedelta(minutes=definition.cooldown_minutes)
    return max(0, math.ceil((available_at - now).total_seconds()))


async def list_active_boosts(db: AsyncSession, user_id: int, now: datetime | None = None) -> list[dict[str, Any]]:
    now = now or datetime.now(timezone.utc)
    return [_boost_dict(b, now) for b in await get_active_boosts(db, user_id, now)]


async def get_boost_hub(db: AsyncSession, user_id: int, now: datetime | None = None) -> dict[str, Any]:
    """Every boost type with its active instance and cooldown."""
    now = now or datetime.now(timezone.utc)
    active = {b.boost_type: b for b in await get_active_boosts(db, user_id, now)}

    entries = []
    for definition in get_catalog().boosts.values():
        last_claim = await _last_claim_at(db, user_id, definition.boost_type)
        boost = active.get(definition.boost_type)
        entries.append({
            "boost_type": definition.boost_type,
            "multiplier": definition.multiplier,
            "duration_minutes": definition.duration_minutes,
            "cooldown_minutes": definition.cooldown_minutes,
            "requires_premium": definition.requires_premium,
            "active": _boost_dict(boost, now) if boost else None,
            "cooldown_remaining_seconds": _cooldown_remaining(definition, last_claim, now),
        })
    return {"server_time": now.isoformat(), "boosts": entries}


async def claim_boost(
    db: AsyncSession,
    redis: object,
    user_id: int,
    boost_type: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Activate a boost if none of that type is running and its cooldown has passed."""
    definition = get_catalog().get_boost(boost_type)
    if definition is None:
        raise ValidationError("unknown_boost_type", f"Unknown boost type: {boost_type}")
    if definition.requires_premium and not get_settings().premium_boosts_enabled:
        raise EconomyError("premium_boost_unavailable", "Premium boosts are disabled", status_code=403)

    now = now or datetime.now(timezone.utc)

    async with transaction(db):
        await get_or_create_progress(db, user_id, lock=True)

        active = [b for b in await get_active_boosts(db, user_id, now) if b.boost_type == boost_type]
        if active:
            raise StateConflictError("boost_already_active", "Boost is already active", status_code=409)

        remaining = _cooldown_remaining(definition, await _last_claim_at(db, user_id, boost_type), now)
        if remaining > 0:
            raise RateLimitError("boost_cooldown", "Boost is cooling down", retry_after=remaining)

        boost = Boost(
            user_id=user_id,
            boost_type=boost_type,
            multiplier=definition.multiplier,
            expires_at=now + timedelta(minutes=definition.duration_minutes),
            created_at=now,
        )
        db.add(boost)
        await log_event(
            db,
            user_id,
            "boost_claim",
            {
                "boost_type": boost_type,
                "multiplier": definition.multiplier,
                "duration_minutes": definition.duration_minutes,
            },
        )
        await db.flush()
        result = _boost_dict(boost, now)

    metrics.record_boost_claimed(boost_type)
    await invalidate_profile_cache(redis, user_id)
    logger.info("User %s claimed %s", user_id, boost_type)
    return result
