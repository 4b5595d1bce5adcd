"""Prestige engine: trade a run's progress for a permanent income multiplier."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from idlecore import metrics
from idlecore.cache import invalidate_profile_cache
from idlecore.config import get_settings
from idlecore.database import transaction
from idlecore.economy.achievement_service import sync_metric
from idlecore.economy.event_log import log_event
from idlecore.economy.player_state import get_or_create_progress, load_player_context, wipe_assets
from idlecore.exceptions import StateConflictError

logger = logging.getLogger(__name__)

PRESTIGE_MILESTONE = 1_000_000_000_000


def compute_prestige_gain(energy_since_snapshot: float) -> int:
    """floor(cbrt(energy / 1e12)); zero below one milestone."""
    if not math.isfinite(energy_since_snapshot) or energy_since_snapshot < PRESTIGE_MILESTONE:
        return 0
    # Thresholds are integers, so flooring a float input does not move any boundary
    energy = math.floor(energy_since_snapshot)
    gain = math.floor((energy / PRESTIGE_MILESTONE) ** (1 / 3))
    # The float root is only a seed; integer cubes settle the exact answer
    while (gain + 1) ** 3 * PRESTIGE_MILESTONE <= energy:
        gain += 1
    while gain > 0 and gain**3 * PRESTIGE_MILESTONE > energy:
        gain -= 1
    return gain


def next_prestige_threshold(energy_since_snapshot: float) -> int:
    """Energy since the last prestige needed for one more point of gain."""
    target = compute_prestige_gain(energy_since_snapshot) + 1
    return PRESTIGE_MILESTONE * target**3


def _energy_since(progress) -> int:
    return max(0, progress.total_energy_produced - progress.prestige_energy_snapshot)


async def get_prestige_status(db: AsyncSession, user_id: int) -> dict[str, Any]:
    """Read-only view of where the player stands toward the next prestige."""
    progress, _ = await get_or_create_progress(db, user_id)
    energy_since = _energy_since(progress)
    gain = compute_prestige_gain(energy_since)
    threshold = next_prestige_threshold(energy_since)
    return {
        "prestige_level": progress.prestige_level,
        "prestige_multiplier": progress.prestige_multiplier,
        "total_energy_produced": progress.total_energy_produced,
        "energy_since_prestige": energy_since,
        "potential_multiplier_gain": gain,
        "potential_multiplier_after_prestige": progress.prestige_multiplier + gain,
        "next_threshold_energy": threshold,
        "energy_to_next_threshold": max(0, threshold - energy_since),
        "can_prestige": gain >= 1 and progress.level >= get_settings().prestige_min_level,
    }


async def perform_prestige(
    db: AsyncSession,
    redis: object,
    user_id: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Reset the run and add the earned gain to the prestige multiplier.

    Both requirements are checked against the locked row inside the
    transaction. A rejected attempt changes nothing.
    """
    now = now or datetime.now(timezone.utc)
    min_level = get_settings().prestige_min_level

    async with transaction(db):
        ctx = await load_player_context(db, user_id, now)
        progress = ctx.progress

        energy_since = _energy_since(progress)
        gain = compute_prestige_gain(energy_since)
        if gain < 1:
            raise StateConflictError("prestige_not_ready", "Not enough energy produced since last prestige")
        if progress.level < min_level:
            raise StateConflictError(
                "prestige_level_requirement_not_met", f"Reach level {min_level} to prestige"
            )

        await wipe_assets(db, user_id)

        previous_level = progress.level
        previous_multiplier = progress.prestige_multiplier
        new_multiplier = previous_multiplier + gain

        progress.level = 1
        progress.xp = 0
        progress.energy = 0
        progress.tap_level = 1
        progress.prestige_level = progress.prestige_level + 1
        progress.prestige_multiplier = new_multiplier
        progress.prestige_energy_snapshot = progress.total_energy_produced
        progress.prestige_last_reset = now

        await sync_metric(db, user_id, "prestige_level", progress.prestige_level)
        await log_event(
            db,
            user_id,
            "prestige_performed",
            {
                "previous_level": previous_level,
                "previous_multiplier": previous_multiplier,
                "new_multiplier": new_multiplier,
                "gain": gain,
                "energy_since_prestige": energy_since,
                "total_energy_produced": progress.total_energy_produced,
                "active_boosts_cleared": len(ctx.boosts),
            },
        )
        await db.flush()
        prestige_level = progress.prestige_level

    metrics.record_prestige(gain, energy_since)
    await invalidate_profile_cache(redis, user_id)
    logger.info("User %s prestiged to %d (gain %d)", user_id, prestige_level, gain)

    return {
        "prestige_level": prestige_level,
        "prestige_multiplier": new_multiplier,
        "gain": gain,
        "energy_since_prestige": energy_since,
        "boosts_cleared": len(ctx.boosts),
    }
