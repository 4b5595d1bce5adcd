"""Achievement seed data: four tiered achievements, one per tracked metric."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from idlecore.db.models import AchievementDefinition

logger = logging.getLogger(__name__)


def _tiers(thresholds: list[float], multipliers: list[float]) -> list[dict]:
    return [
        {"tier": i + 1, "threshold": threshold, "reward_multiplier": multiplier}
        for i, (threshold, multiplier) in enumerate(zip(thresholds, multipliers, strict=True))
    ]


ACHIEVEMENT_SEED_DATA: list[dict] = [
    {
        "slug": "energy_baron",
        "name": "Energy Baron",
        "description": "Produce energy over your whole career",
        "category": "production",
        "icon": "bolt",
        "metric": "total_energy",
        "unit": "energy",
        "tiers": _tiers(
            [10_000, 1_000_000, 100_000_000, 10_000_000_000, 1_000_000_000_000],
            [1.01, 1.02, 1.03, 1.04, 1.05],
        ),
        "sort_order": 1,
    },
    {
        "slug": "tap_maestro",
        "name": "Tap Maestro",
        "description": "Tap the core again and again",
        "category": "taps",
        "icon": "finger",
        "metric": "total_taps",
        "unit": "taps",
        "tiers": _tiers(
            [100, 1_000, 10_000, 100_000, 1_000_000],
            [1.01, 1.01, 1.02, 1.02, 1.03],
        ),
        "sort_order": 2,
    },
    {
        "slug": "builder_guild",
        "name": "Builder Guild",
        "description": "Own a growing fleet of buildings",
        "category": "buildings",
        "icon": "crane",
        "metric": "buildings_owned",
        "unit": "buildings",
        "tiers": _tiers(
            [5, 25, 75, 150, 300],
            [1.01, 1.02, 1.02, 1.03, 1.05],
        ),
        "sort_order": 3,
    },
    {
        "slug": "prestige_voyager",
        "name": "Prestige Voyager",
        "description": "Reset your world for a permanent edge",
        "category": "prestige",
        "icon": "star",
        "metric": "prestige_level",
        "unit": "prestiges",
        "tiers": _tiers(
            [1, 3, 5, 10, 20],
            [1.05, 1.05, 1.05, 1.1, 1.1],
        ),
        "sort_order": 4,
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    """Upsert all achievement definitions by slug. Returns number seeded."""
    existing = {
        row.slug: row
        for row in (await db.execute(select(AchievementDefinition))).scalars().all()
    }

    seeded = 0
    for data in ACHIEVEMENT_SEED_DATA:
        values = {**data, "max_tier": len(data["tiers"])}
        definition = existing.get(data["slug"])
        if definition is None:
            db.add(AchievementDefinition(**values))
        else:
            for key, value in values.items():
                setattr(definition, key, value)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d achievement definitions", seeded)
    return seeded
