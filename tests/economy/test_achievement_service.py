"""Achievement synchronizer tests: unlock monotonicity, one-step claims, cosmetics."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from idlecore.db.models import AchievementDefinition, AchievementProgress, Event, UserCosmetic
from idlecore.economy.achievement_seed import ACHIEVEMENT_SEED_DATA, seed_achievements
from idlecore.economy.achievement_service import claim_next_tier, get_overview, sync_metric
from idlecore.exceptions import NotFoundError, StateConflictError


async def _progress_row(db, user_id, slug) -> AchievementProgress:
    result = await db.execute(
        select(AchievementProgress)
        .join(AchievementDefinition, AchievementDefinition.id == AchievementProgress.achievement_id)
        .where(AchievementProgress.user_id == user_id, AchievementDefinition.slug == slug)
    )
    return result.scalar_one()


class TestSyncMetric:
    @pytest.mark.asyncio
    async def test_unlocks_every_crossed_tier(self, db, user_id):
        results = await sync_metric(db, user_id, "total_taps", 10_000)
        await db.commit()

        assert results == [{"slug": "tap_maestro", "newly_unlocked_tiers": [1, 2, 3]}]
        events = await db.scalar(
            select(func.count()).select_from(Event).where(Event.event_type == "achievement_unlocked")
        )
        assert events == 3
        row = await _progress_row(db, user_id, "tap_maestro")
        assert row.highest_unlocked_tier == 3
        assert row.current_tier == 0

    @pytest.mark.asyncio
    async def test_lower_value_never_lowers_tier(self, db, user_id):
        await sync_metric(db, user_id, "total_taps", 1_000)
        results = await sync_metric(db, user_id, "total_taps", 50)
        await db.commit()

        assert results == []
        row = await _progress_row(db, user_id, "tap_maestro")
        assert row.highest_unlocked_tier == 2
        assert row.progress_value == 1_000

    @pytest.mark.asyncio
    async def test_negative_value_ignored(self, db, user_id):
        assert await sync_metric(db, user_id, "total_taps", -1) == []
        count = await db.scalar(select(func.count()).select_from(AchievementProgress))
        assert count == 0

    @pytest.mark.asyncio
    async def test_records_progress_without_unlock(self, db, user_id):
        assert await sync_metric(db, user_id, "total_taps", 40) == []
        await db.commit()
        row = await _progress_row(db, user_id, "tap_maestro")
        assert row.progress_value == 40
        assert row.highest_unlocked_tier == 0

    @pytest.mark.asyncio
    async def test_unknown_metric(self, db, user_id):
        assert await sync_metric(db, user_id, "quests_done", 10) == []

    @pytest.mark.asyncio
    async def test_repeat_sync_unlocks_nothing_new(self, db, user_id):
        await sync_metric(db, user_id, "buildings_owned", 25)
        assert await sync_metric(db, user_id, "buildings_owned", 25) == []


class TestClaimNextTier:
    @pytest.mark.asyncio
    async def test_claims_one_tier_at_a_time(self, db, redis, user_id, progress):
        await sync_metric(db, user_id, "total_taps", 1_000)
        await db.commit()

        first = await claim_next_tier(db, redis, user_id, "tap_maestro")
        second = await claim_next_tier(db, redis, user_id, "tap_maestro")

        assert (first["tier"], second["tier"]) == (1, 2)
        assert second["new_achievement_multiplier"] == round(1.01 * 1.01, 6)
        await db.refresh(progress)
        assert progress.achievement_multiplier == round(1.01 * 1.01, 6)

        with pytest.raises(StateConflictError) as exc_info:
            await claim_next_tier(db, redis, user_id, "tap_maestro")
        assert exc_info.value.reason == "achievement_not_ready"

    @pytest.mark.asyncio
    async def test_grants_cosmetic_once(self, db, redis, user_id, progress):
        await sync_metric(db, user_id, "total_taps", 1_000)
        await db.commit()

        await claim_next_tier(db, redis, user_id, "tap_maestro")
        result = await claim_next_tier(db, redis, user_id, "tap_maestro")

        assert result["cosmetic_id"] == "spark_effect"
        owned = (await db.execute(select(UserCosmetic.cosmetic_id).where(UserCosmetic.user_id == user_id))).scalars().all()
        assert owned == ["spark_effect"]

    @pytest.mark.asyncio
    async def test_not_ready_without_progress(self, db, redis, user_id, progress):
        with pytest.raises(StateConflictError) as exc_info:
            await claim_next_tier(db, redis, user_id, "energy_baron")
        assert exc_info.value.reason == "achievement_not_ready"

    @pytest.mark.asyncio
    async def test_unknown_slug(self, db, redis, user_id, progress):
        with pytest.raises(NotFoundError) as exc_info:
            await claim_next_tier(db, redis, user_id, "nope")
        assert exc_info.value.reason == "achievement_not_found"
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_maxed(self, db, redis, user_id, progress):
        await sync_metric(db, user_id, "prestige_level", 20)
        await db.commit()
        for _ in range(5):
            await claim_next_tier(db, redis, user_id, "prestige_voyager")

        with pytest.raises(StateConflictError) as exc_info:
            await claim_next_tier(db, redis, user_id, "prestige_voyager")
        assert exc_info.value.reason == "achievement_maxed"


class TestOverview:
    @pytest.mark.asyncio
    async def test_lists_all_definitions(self, db, user_id):
        overview = await get_overview(db, user_id)
        assert [a["slug"] for a in overview] == [d["slug"] for d in ACHIEVEMENT_SEED_DATA]
        assert all(a["current_tier"] == 0 and a["claimable_tier"] is None for a in overview)

    @pytest.mark.asyncio
    async def test_pending_and_claimed_multipliers(self, db, redis, user_id, progress):
        await sync_metric(db, user_id, "buildings_owned", 75)
        await db.commit()
        await claim_next_tier(db, redis, user_id, "builder_guild")

        guild = next(a for a in await get_overview(db, user_id) if a["slug"] == "builder_guild")
        assert guild["current_tier"] == 1
        assert guild["claimable_tier"] == 2
        assert guild["claimed_multiplier"] == pytest.approx(1.01)
        assert guild["pending_multiplier"] == pytest.approx(1.02 * 1.02)
        assert guild["next_threshold"] == 25
        assert guild["progress_ratio"] == 1.0


class TestSeed:
    @pytest.mark.asyncio
    async def test_reseeding_is_idempotent(self, db):
        await seed_achievements(db)
        count = await db.scalar(select(func.count()).select_from(AchievementDefinition))
        assert count == len(ACHIEVEMENT_SEED_DATA)
