"""Achievement synchronizer: tier unlocking, claiming and the overview read model.

``sync_metric`` runs inside the caller's transaction whenever an engine moves a
tracked metric. Unlocking and claiming are separate: sync only raises
``highest_unlocked_tier``; the player claims tiers one at a time.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from idlecore import metrics
from idlecore.cache import invalidate_profile_cache
from idlecore.database import transaction
from idlecore.db.models import AchievementDefinition, AchievementProgress, UserCosmetic
from idlecore.economy.event_log import log_event
from idlecore.economy.player_state import get_or_create_progress
from idlecore.exceptions import EconomyError, NotFoundError, StateConflictError

logger = logging.getLogger(__name__)

TRACKED_METRICS = ("total_energy", "total_taps", "buildings_owned", "prestige_level")

# (slug, tier) -> cosmetic granted once on claim
COSMETIC_REWARDS: dict[str, dict[int, str]] = {
    "tap_maestro": {2: "spark_effect", 4: "explosion_effect"},
    "builder_guild": {2: "mars_skin", 4: "cyber_planet_skin"},
    "prestige_voyager": {1: "diamond_frame_001"},
}


def compute_highest_unlocked(definition: AchievementDefinition, progress_value: float) -> int:
    """Highest tier whose threshold the value reaches, capped at max_tier."""
    highest = 0
    for tier in definition.tiers or []:
        if progress_value >= tier["threshold"]:
            highest = max(highest, int(tier["tier"]))
    return min(highest, definition.max_tier)


def _tier_lookup(definition: AchievementDefinition) -> dict[int, dict]:
    return {int(t["tier"]): t for t in definition.tiers or []}


def _multiplier_product(definition: AchievementDefinition, low: int, high: int) -> float:
    """Product of reward multipliers for tiers in (low, high]."""
    product = 1.0
    for tier in definition.tiers or []:
        if low < int(tier["tier"]) <= high:
            product *= float(tier["reward_multiplier"])
    return product


async def _progress_rows(db: AsyncSession, user_id: int) -> dict[int, AchievementProgress]:
    result = await db.execute(
        select(AchievementProgress).where(AchievementProgress.user_id == user_id)
    )
    return {row.achievement_id: row for row in result.scalars().all()}


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


async def sync_metric(
    db: AsyncSession,
    user_id: int,
    metric: str,
    value: float,
) -> list[dict[str, Any]]:
    """Record a new metric value and unlock every tier it reaches.

    Negative values are ignored, as are values below the recorded progress of
    a definition. Returns ``[{"slug", "newly_unlocked_tiers"}]`` for each
    definition that unlocked at least one tier.
    """
    if value < 0:
        return []

    result = await db.execute(
        select(AchievementDefinition)
        .where(AchievementDefinition.metric == metric)
        .order_by(AchievementDefinition.sort_order)
    )
    definitions = list(result.scalars().all())
    if not definitions:
        return []

    rows = await _progress_rows(db, user_id)
    results: list[dict[str, Any]] = []

    for definition in definitions:
        row = rows.get(definition.id)
        if row is not None and value < row.progress_value:
            continue

        computed = compute_highest_unlocked(definition, value)
        previous = row.highest_unlocked_tier if row is not None else 0

        if row is None:
            row = AchievementProgress(
                user_id=user_id,
                achievement_id=definition.id,
                progress_value=value,
                highest_unlocked_tier=computed,
                current_tier=0,
            )
            db.add(row)
        else:
            row.progress_value = value
            row.highest_unlocked_tier = max(previous, computed)

        if computed <= previous:
            continue

        unlocked: list[int] = []
        for tier in range(previous + 1, computed + 1):
            unlocked.append(tier)
            await log_event(
                db,
                user_id,
                "achievement_unlocked",
                {
                    "achievement_slug": definition.slug,
                    "tier": tier,
                    "metric": metric,
                    "progress_value": value,
                },
            )
            metrics.record_achievement_unlocked(definition.slug, tier)
        results.append({"slug": definition.slug, "newly_unlocked_tiers": unlocked})

    await db.flush()
    return results


# ---------------------------------------------------------------------------
# Claim
# ---------------------------------------------------------------------------


async def _grant_cosmetic(db: AsyncSession, user_id: int, slug: str, tier: int) -> str | None:
    cosmetic_id = COSMETIC_REWARDS.get(slug, {}).get(tier)
    if cosmetic_id is None:
        return None

    owned = await db.execute(
        select(UserCosmetic).where(
            UserCosmetic.user_id == user_id,
            UserCosmetic.cosmetic_id == cosmetic_id,
        )
    )
    if owned.scalar_one_or_none() is not None:
        return None

    db.add(UserCosmetic(user_id=user_id, cosmetic_id=cosmetic_id, source="reward"))
    await log_event(
        db,
        user_id,
        "achievement_cosmetic_granted",
        {"achievement_slug": slug, "tier": tier, "cosmetic_id": cosmetic_id},
    )
    metrics.record_cosmetic_granted(cosmetic_id, "reward")
    return cosmetic_id


async def claim_next_tier(db: AsyncSession, redis: object, user_id: int, slug: str) -> dict[str, Any]:
    """Claim exactly one tier: ``current_tier + 1``.

    Raises NotFoundError (achievement_not_found) and StateConflictError
    (achievement_maxed, achievement_not_ready).
    """
    async with transaction(db):
        result = await db.execute(select(AchievementDefinition).where(AchievementDefinition.slug == slug))
        definition = result.scalar_one_or_none()
        if definition is None:
            raise NotFoundError("achievement_not_found", f"Unknown achievement: {slug}")

        progress, _ = await get_or_create_progress(db, user_id, lock=True)

        row = (await _progress_rows(db, user_id)).get(definition.id)
        if row is None:
            row = AchievementProgress(user_id=user_id, achievement_id=definition.id)
            db.add(row)
            await db.flush()

        next_tier = row.current_tier + 1
        if next_tier > definition.max_tier:
            raise StateConflictError("achievement_maxed", "All tiers already claimed")

        unlocked = max(row.highest_unlocked_tier, compute_highest_unlocked(definition, row.progress_value))
        if next_tier > unlocked:
            raise StateConflictError("achievement_not_ready", f"Tier {next_tier} is not unlocked yet")

        tier = _tier_lookup(definition).get(next_tier)
        if tier is None:
            raise EconomyError("achievement_tier_missing", status_code=500)

        row.highest_unlocked_tier = unlocked
        row.current_tier = next_tier

        reward = float(tier["reward_multiplier"])
        new_multiplier = round((progress.achievement_multiplier or 1) * reward, 6)
        progress.achievement_multiplier = new_multiplier

        cosmetic_id = await _grant_cosmetic(db, user_id, definition.slug, next_tier)

        await log_event(
            db,
            user_id,
            "achievement_claimed",
            {
                "achievement_slug": definition.slug,
                "tier": next_tier,
                "reward_multiplier": reward,
                "new_achievement_multiplier": new_multiplier,
            },
        )
        await db.flush()

    metrics.record_achievement_claimed(slug, next_tier)
    await invalidate_profile_cache(redis, user_id)
    logger.info("User %s claimed %s tier %d", user_id, slug, next_tier)

    return {
        "slug": slug,
        "tier": next_tier,
        "reward_multiplier": reward,
        "new_achievement_multiplier": new_multiplier,
        "cosmetic_id": cosmetic_id,
    }


# ---------------------------------------------------------------------------
# Read model
# ---------------------------------------------------------------------------


async def get_overview(db: AsyncSession, user_id: int) -> list[dict[str, Any]]:
    """Every achievement with the player's progress, claimable tier and multipliers."""
    result = await db.execute(
        select(AchievementDefinition).order_by(AchievementDefinition.sort_order, AchievementDefinition.id)
    )
    definitions = list(result.scalars().all())
    rows = await _progress_rows(db, user_id)

    overview = []
    for definition in definitions:
        row = rows.get(definition.id)
        progress_value = row.progress_value if row else 0
        current_tier = row.current_tier if row else 0
        highest = max(
            row.highest_unlocked_tier if row else 0,
            compute_highest_unlocked(definition, progress_value),
        )
        claimable_tier = current_tier + 1 if highest > current_tier else None

        next_threshold = None
        if current_tier < definition.max_tier:
            next_entry = _tier_lookup(definition).get(current_tier + 1)
            next_threshold = next_entry["threshold"] if next_entry else None

        if next_threshold:
            progress_ratio = min(progress_value / next_threshold, 1.0)
        elif current_tier >= definition.max_tier:
            progress_ratio = 1.0
        else:
            progress_ratio = 0.0

        overview.append({
            "slug": definition.slug,
            "name": definition.name,
            "description": definition.description,
            "category": definition.category,
            "icon": definition.icon,
            "metric": definition.metric,
            "unit": definition.unit,
            "max_tier": definition.max_tier,
            "current_tier": current_tier,
            "highest_unlocked_tier": highest,
            "progress_value": progress_value,
            "next_threshold": next_threshold,
            "progress_ratio": progress_ratio,
            "claimable_tier": claimable_tier,
            "claimed_multiplier": _multiplier_product(definition, 0, current_tier),
            "pending_multiplier": _multiplier_product(definition, current_tier, highest),
            "tiers": [
                {
                    **tier,
                    "earned": int(tier["tier"]) <= current_tier,
                    "claimable": int(tier["tier"]) == current_tier + 1 and int(tier["tier"]) <= highest,
                }
                for tier in definition.tiers or []
            ],
        })
    return overview
