"""Passive income composition tests."""

from types import SimpleNamespace

import pytest

from idlecore.content.catalog import BuildingDefinition, ContentCatalog
from idlecore.economy.passive_income import (
    BuildingIncome,
    build_building_details,
    compute_passive_income,
)


def _detail(income: float) -> BuildingIncome:
    return BuildingIncome(building_id="b", name="B", count=1, level=0, income_per_sec=income)


def _boost(multiplier: float) -> SimpleNamespace:
    return SimpleNamespace(multiplier=multiplier)


class TestComputePassiveIncome:
    def test_empty_inputs(self):
        snapshot = compute_passive_income([], [])
        assert snapshot.base_income == 0
        assert snapshot.boost_multiplier == 1
        assert snapshot.effective_multiplier == 1
        assert snapshot.effective_income == 0

    def test_identity_multipliers_leave_base_untouched(self):
        snapshot = compute_passive_income([_detail(7.5), _detail(3)], [], 1, 1)
        assert snapshot.effective_income == snapshot.base_income == 10.5

    def test_boosts_stack_multiplicatively(self):
        snapshot = compute_passive_income([_detail(10)], [_boost(2), _boost(3)])
        assert snapshot.boost_multiplier == 6
        assert snapshot.effective_income == 60

    def test_full_stack(self):
        snapshot = compute_passive_income([_detail(10)], [_boost(2)], prestige_multiplier=3, achievement_multiplier=1.5)
        assert snapshot.effective_multiplier == pytest.approx(9)
        assert snapshot.effective_income == pytest.approx(90)

    def test_multipliers_below_one_are_ignored(self):
        snapshot = compute_passive_income([_detail(10)], [], prestige_multiplier=0.5, achievement_multiplier=0)
        assert snapshot.prestige_multiplier == 1
        assert snapshot.achievement_multiplier == 1
        assert snapshot.effective_income == 10


class TestBuildBuildingDetails:
    @pytest.fixture
    def catalog(self):
        return ContentCatalog.from_definitions(
            buildings=[
                BuildingDefinition("mill", "Mill", base_income=4, base_cost=10, unlock_level=1),
                BuildingDefinition("forge", "Forge", base_income=50, base_cost=500, unlock_level=10),
                BuildingDefinition("portal", "Portal", base_income=900, base_cost=9_000, feature_flag="portals"),
            ],
        )

    def test_income_includes_count_and_upgrade_level(self, catalog):
        inventory = [SimpleNamespace(building_id="mill", count=3, level=2)]
        details = build_building_details(inventory, 1, catalog)
        assert len(details) == 1
        # 4 * 3 * (1 + 2 * 0.1) = 14.4 -> 14
        assert details[0].income_per_sec == 14

    def test_locked_unknown_and_flagged_buildings_skipped(self, catalog):
        inventory = [
            SimpleNamespace(building_id="forge", count=1, level=0),
            SimpleNamespace(building_id="ghost", count=5, level=0),
            SimpleNamespace(building_id="portal", count=1, level=0),
            SimpleNamespace(building_id="mill", count=0, level=0),
        ]
        assert build_building_details(inventory, 5, catalog) == []

    def test_feature_flag_enables_building(self, catalog):
        catalog.feature_flags["portals"] = True
        inventory = [SimpleNamespace(building_id="portal", count=1, level=0)]
        assert build_building_details(inventory, 1, catalog)[0].income_per_sec == 900
