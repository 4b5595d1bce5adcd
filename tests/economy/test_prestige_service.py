"""Prestige engine tests: all-or-nothing reset and status read model."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from idlecore.db.models import Boost, InventoryItem, Progress
from idlecore.economy.achievement_service import get_overview
from idlecore.economy.leveling import cumulative_xp_for_level
from idlecore.economy.player_state import upsert_inventory_item
from idlecore.economy.prestige_service import PRESTIGE_MILESTONE, get_prestige_status, perform_prestige
from idlecore.exceptions import StateConflictError

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def rich_player(db, user_id, progress):
    """Level-50 player with 8e12 energy produced, one building and one boost."""
    progress.level = 50
    progress.xp = cumulative_xp_for_level(50)
    progress.energy = 5_000
    progress.total_energy_produced = 8 * PRESTIGE_MILESTONE
    progress.total_taps = 1_234
    progress.tap_level = 4
    await upsert_inventory_item(db, user_id, "solar_panel", count_delta=3, level_delta=1)
    db.add(Boost(user_id=user_id, boost_type="ad_boost", multiplier=2, expires_at=NOW + timedelta(minutes=10)))
    await db.commit()
    return progress


async def _count(db, model, user_id) -> int:
    return await db.scalar(select(func.count()).select_from(model).where(model.user_id == user_id))


class TestPerformPrestige:
    @pytest.mark.asyncio
    async def test_success_resets_run_and_grows_multiplier(self, db, redis, user_id, rich_player):
        result = await perform_prestige(db, redis, user_id, now=NOW)

        assert result["gain"] == 2
        assert result["prestige_level"] == 1
        assert result["prestige_multiplier"] == 3
        assert result["boosts_cleared"] == 1

        row = (await db.execute(select(Progress).where(Progress.user_id == user_id))).scalar_one()
        assert (row.level, row.xp, row.energy, row.tap_level) == (1, 0, 0, 1)
        assert row.prestige_energy_snapshot == 8 * PRESTIGE_MILESTONE
        assert row.prestige_last_reset == NOW
        # lifetime counters survive
        assert row.total_energy_produced == 8 * PRESTIGE_MILESTONE
        assert row.total_taps == 1_234

        assert await _count(db, InventoryItem, user_id) == 0
        assert await _count(db, Boost, user_id) == 0
        assert redis.deleted == [f"profile:{user_id}"]

    @pytest.mark.asyncio
    async def test_second_prestige_needs_new_energy(self, db, redis, user_id, rich_player):
        await perform_prestige(db, redis, user_id, now=NOW)

        with pytest.raises(StateConflictError) as exc_info:
            await perform_prestige(db, redis, user_id, now=NOW)
        assert exc_info.value.reason == "prestige_not_ready"

    @pytest.mark.asyncio
    async def test_level_too_low_changes_nothing(self, db, redis, user_id, rich_player):
        rich_player.level = 49
        await db.commit()

        with pytest.raises(StateConflictError) as exc_info:
            await perform_prestige(db, redis, user_id, now=NOW)
        assert exc_info.value.reason == "prestige_level_requirement_not_met"

        row = (await db.execute(select(Progress).where(Progress.user_id == user_id))).scalar_one()
        await db.refresh(row)
        assert (row.level, row.energy, row.tap_level, row.prestige_level) == (49, 5_000, 4, 0)
        assert row.prestige_multiplier == 1
        assert row.prestige_energy_snapshot == 0
        assert await _count(db, InventoryItem, user_id) == 1
        assert await _count(db, Boost, user_id) == 1
        assert redis.deleted == []

    @pytest.mark.asyncio
    async def test_unlocks_prestige_voyager(self, db, redis, user_id, rich_player):
        await perform_prestige(db, redis, user_id, now=NOW)

        voyager = next(a for a in await get_overview(db, user_id) if a["slug"] == "prestige_voyager")
        assert voyager["highest_unlocked_tier"] == 1
        assert voyager["claimable_tier"] == 1


class TestPrestigeStatus:
    @pytest.mark.asyncio
    async def test_ready(self, db, user_id, rich_player):
        status = await get_prestige_status(db, user_id)
        assert status["can_prestige"] is True
        assert status["potential_multiplier_gain"] == 2
        assert status["potential_multiplier_after_prestige"] == 3
        assert status["next_threshold_energy"] == 27 * PRESTIGE_MILESTONE
        assert status["energy_to_next_threshold"] == 19 * PRESTIGE_MILESTONE

    @pytest.mark.asyncio
    async def test_fresh_player(self, db, user_id, progress):
        status = await get_prestige_status(db, user_id)
        assert status["can_prestige"] is False
        assert status["energy_since_prestige"] == 0
        assert status["next_threshold_energy"] == PRESTIGE_MILESTONE
