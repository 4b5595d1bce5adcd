"""Passive income composer.

Combines owned buildings with the active boost, prestige and achievement
multipliers into one income rate. Pure: callers load the inputs.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from idlecore.content.catalog import ContentCatalog


@dataclass(frozen=True)
class BuildingIncome:
    building_id: str
    name: str
    count: int
    level: int
    income_per_sec: float


@dataclass(frozen=True)
class PassiveIncomeSnapshot:
    base_income: float
    boost_multiplier: float
    prestige_multiplier: float
    achievement_multiplier: float
    effective_multiplier: float
    effective_income: float


def build_building_details(
    inventory: Iterable,
    player_level: int,
    catalog: ContentCatalog,
) -> list[BuildingIncome]:
    """Resolve inventory rows against the catalog.

    Rows for unknown buildings, buildings above the player's level and
    buildings behind a disabled feature flag contribute nothing and are skipped.
    """
    details: list[BuildingIncome] = []
    for item in inventory:
        building = catalog.get_building(item.building_id)
        if building is None or item.count <= 0:
            continue
        if not catalog.is_building_available(building, player_level):
            continue
        details.append(
            BuildingIncome(
                building_id=building.id,
                name=building.name,
                count=item.count,
                level=item.level,
                income_per_sec=catalog.building_income(building, item.count, item.level),
            )
        )
    return details


def compute_passive_income(
    details: Iterable[BuildingIncome],
    boosts: Iterable,
    prestige_multiplier: float = 1,
    achievement_multiplier: float = 1,
) -> PassiveIncomeSnapshot:
    """Sum building income and apply every active multiplier.

    Boosts multiply together. Prestige and achievement multipliers below 1 are
    treated as 1 so a bad row can never shrink income.
    """
    base_income = float(sum(d.income_per_sec for d in details))

    boost_multiplier = 1.0
    for boost in boosts:
        boost_multiplier *= float(boost.multiplier)

    prestige = max(1.0, float(prestige_multiplier or 1))
    achievement = max(1.0, float(achievement_multiplier or 1))
    effective_multiplier = boost_multiplier * prestige * achievement

    return PassiveIncomeSnapshot(
        base_income=base_income,
        boost_multiplier=boost_multiplier,
        prestige_multiplier=prestige,
        achievement_multiplier=achievement,
        effective_multiplier=effective_multiplier,
        effective_income=base_income * effective_multiplier,
    )
