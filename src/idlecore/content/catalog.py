"""Static game-balance content: buildings, boosts and feature flags.

The economy engines consume this catalog as an external collaborator. The
built-in tables below are the defaults shipped with the service; deployments
may swap in a different catalog via ``set_catalog``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field


@dataclass(frozen=True)
class BuildingDefinition:
    id: str
    name: str
    base_income: float
    base_cost: float
    unlock_level: int = 1
    cost_multiplier: float = 1.15
    upgrade_cost_multiplier: float = 1.5
    upgrade_income_bonus: float = 0.1
    feature_flag: str | None = None


@dataclass(frozen=True)
class BoostDefinition:
    boost_type: str
    multiplier: float
    duration_minutes: int
    cooldown_minutes: int
    requires_premium: bool = False


DEFAULT_BUILDINGS: tuple[BuildingDefinition, ...] = (
    BuildingDefinition("solar_panel", "Solar Panel", base_income=1, base_cost=10, unlock_level=1),
    BuildingDefinition("wind_turbine", "Wind Turbine", base_income=8, base_cost=120, unlock_level=3),
    BuildingDefinition("hydro_dam", "Hydro Dam", base_income=47, base_cost=1_300, unlock_level=8),
    BuildingDefinition("geothermal_plant", "Geothermal Plant", base_income=260, base_cost=14_000, unlock_level=15),
    BuildingDefinition("nuclear_reactor", "Nuclear Reactor", base_income=1_400, base_cost=150_000, unlock_level=25),
    BuildingDefinition("fusion_core", "Fusion Core", base_income=7_800, base_cost=1_650_000, unlock_level=40),
    BuildingDefinition(
        "dyson_swarm",
        "Dyson Swarm",
        base_income=44_000,
        base_cost=18_000_000,
        unlock_level=60,
        feature_flag="dyson_swarm",
    ),
)

DEFAULT_BOOSTS: tuple[BoostDefinition, ...] = (
    BoostDefinition("ad_boost", multiplier=2, duration_minutes=30, cooldown_minutes=60),
    BoostDefinition("daily_boost", multiplier=3, duration_minutes=120, cooldown_minutes=24 * 60),
    BoostDefinition("premium_boost", multiplier=4, duration_minutes=240, cooldown_minutes=24 * 60, requires_premium=True),
)


@dataclass
class ContentCatalog:
    """Building and boost definitions plus the formulas that price them."""

    buildings: dict[str, BuildingDefinition] = field(default_factory=dict)
    boosts: dict[str, BoostDefinition] = field(default_factory=dict)
    feature_flags: dict[str, bool] = field(default_factory=dict)

    @classmethod
    def from_definitions(
        cls,
        buildings: tuple[BuildingDefinition, ...] | list[BuildingDefinition] = DEFAULT_BUILDINGS,
        boosts: tuple[BoostDefinition, ...] | list[BoostDefinition] = DEFAULT_BOOSTS,
        feature_flags: dict[str, bool] | None = None,
    ) -> ContentCatalog:
        return cls(
            buildings={b.id: b for b in buildings},
            boosts={b.boost_type: b for b in boosts},
            feature_flags=dict(feature_flags or {}),
        )

    # ── Buildings ──

    def get_building(self, building_id: str) -> BuildingDefinition | None:
        return self.buildings.get(building_id)

    def is_feature_enabled(self, flag: str) -> bool:
        return bool(self.feature_flags.get(flag, False))

    def is_building_available(self, building: BuildingDefinition, player_level: int) -> bool:
        """A building counts only once unlocked by level and, if flagged, by its feature flag."""
        if building.unlock_level > player_level:
            return False
        if building.feature_flag:
            return self.is_feature_enabled(building.feature_flag)
        return True

    def building_cost(self, building: BuildingDefinition, current_count: int) -> int:
        return math.ceil(building.base_cost * building.cost_multiplier ** current_count)

    def building_upgrade_cost(self, building: BuildingDefinition, current_level: int) -> int:
        return math.ceil(building.base_cost * 5 * building.upgrade_cost_multiplier ** current_level)

    def building_income(self, building: BuildingDefinition, count: int, level: int) -> int:
        """Income per second of ``count`` units at upgrade tier ``level``."""
        return math.floor(building.base_income * count * (1 + level * building.upgrade_income_bonus))

    # ── Boosts ──

    def get_boost(self, boost_type: str) -> BoostDefinition | None:
        return self.boosts.get(boost_type)


_catalog: ContentCatalog | None = None


def get_catalog() -> ContentCatalog:
    """Return the process-wide content catalog."""
    global _catalog  # noqa: PLW0603
    if _catalog is None:
        _catalog = ContentCatalog.from_definitions()
    return _catalog


def set_catalog(catalog: ContentCatalog | None) -> None:
    """Replace the process-wide catalog (None restores the defaults on next access)."""
    global _catalog  # noqa: PLW0603
    _catalog = catalog
