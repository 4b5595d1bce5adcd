"""Tests for the content catalog formulas, metric emission and cache invalidation."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from idlecore import metrics
from idlecore.cache import invalidate_profile_cache, profile_cache_key
from idlecore.config import get_settings
from idlecore.content.catalog import BuildingDefinition, ContentCatalog, get_catalog, set_catalog


class TestCatalog:
    def test_defaults_loaded_lazily(self):
        catalog = get_catalog()
        assert "solar_panel" in catalog.buildings
        assert set(catalog.boosts) == {"ad_boost", "daily_boost", "premium_boost"}

    def test_set_catalog_replaces_and_resets(self):
        custom = ContentCatalog.from_definitions(buildings=[], boosts=[])
        set_catalog(custom)
        assert get_catalog() is custom
        set_catalog(None)
        assert get_catalog() is not custom

    def test_building_income_scales_with_upgrades(self):
        catalog = get_catalog()
        panel = catalog.get_building("solar_panel")
        assert catalog.building_income(panel, count=3, level=0) == 3
        assert catalog.building_income(panel, count=10, level=2) == 12

    def test_costs_grow_geometrically(self):
        catalog = get_catalog()
        panel = catalog.get_building("solar_panel")
        assert catalog.building_cost(panel, 0) == 10
        assert catalog.building_cost(panel, 1) == 12
        assert catalog.building_upgrade_cost(panel, 0) == 50

    def test_flagged_building_needs_flag_and_level(self):
        flagged = BuildingDefinition("beacon", "Beacon", base_income=5, base_cost=1, unlock_level=2, feature_flag="beacon")
        off = ContentCatalog.from_definitions(buildings=[flagged])
        on = ContentCatalog.from_definitions(buildings=[flagged], feature_flags={"beacon": True})

        assert off.is_building_available(flagged, 10) is False
        assert on.is_building_available(flagged, 1) is False
        assert on.is_building_available(flagged, 2) is True


class TestMetrics:
    def test_emits_structured_event(self):
        with capture_logs() as logs:
            metrics.record_tick_error("invalid_time_delta")

        assert logs == [
            {"event": "metric", "log_level": "info", "metric": "tick_error_total", "reason": "invalid_time_delta"}
        ]

    def test_disabled_by_setting(self, monkeypatch):
        monkeypatch.setenv("IDLE_METRICS_ENABLED", "false")
        get_settings.cache_clear()

        with capture_logs() as logs:
            metrics.record_boost_claimed("ad_boost")
        assert logs == []

    def test_offline_reward_labels_capped(self):
        with capture_logs() as logs:
            metrics.record_offline_reward(energy=10, xp=1, duration_seconds=43_200, capped=True)
        assert logs[0]["capped"] == "capped"


class TestProfileCache:
    def test_key_uses_configured_prefix(self, monkeypatch):
        monkeypatch.setenv("IDLE_PROFILE_CACHE_PREFIX", "pv")
        get_settings.cache_clear()
        assert profile_cache_key(7) == "pv:7"

    @pytest.mark.asyncio
    async def test_deletes_key(self, redis):
        redis.store[profile_cache_key(7)] = "{}"
        await invalidate_profile_cache(redis, 7)
        assert profile_cache_key(7) not in redis.store

    @pytest.mark.asyncio
    async def test_missing_redis_is_ignored(self):
        await invalidate_profile_cache(None, 7)

    @pytest.mark.asyncio
    async def test_failing_redis_is_ignored(self, redis):
        redis.fail = True
        await invalidate_profile_cache(redis, 7)
        assert redis.deleted == []
