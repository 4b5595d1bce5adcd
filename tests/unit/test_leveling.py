"""Leveling curve tests: loop semantics, closed-form lookup, soft-capped thresholds."""

import random

import pytest

from idlecore.economy import leveling
from idlecore.economy.leveling import (
    CHECKPOINT_STRIDE,
    LOOP_LIMIT_XP,
    cumulative_xp_for_level,
    estimate_level,
    level_progress,
    level_progress_loop,
    level_requirement,
    xp_from_energy,
    xp_threshold_for_level,
)


class TestLevelRequirement:
    def test_first_levels(self):
        assert level_requirement(1) == 100
        assert level_requirement(2) == 283
        assert level_requirement(3) == 520
        assert level_requirement(4) == 800

    def test_level_below_one_is_normalized(self):
        assert level_requirement(0) == 100
        assert level_requirement(-5) == 100


class TestLevelProgress:
    def test_zero_xp(self):
        assert level_progress(0) == {
            "level": 1,
            "xp_into_level": 0,
            "xp_for_next_level": 100,
            "xp_to_next_level": 100,
        }

    def test_exactly_one_level(self):
        result = level_progress(100)
        assert result["level"] == 2
        assert result["xp_into_level"] == 0
        assert result["xp_for_next_level"] == 283

    def test_2000_xp(self):
        # 100 + 283 + 520 + 800 = 1703 spent on levels 1-4
        result = level_progress(2000)
        assert result["level"] == 5
        assert result["xp_into_level"] == 297
        assert result["xp_for_next_level"] == 1118
        assert result["xp_to_next_level"] == 821

    def test_150000_xp(self):
        result = level_progress(150_000)
        assert result == level_progress_loop(150_000)
        assert cumulative_xp_for_level(result["level"]) <= 150_000
        assert cumulative_xp_for_level(result["level"] + 1) > 150_000

    def test_one_below_boundary(self):
        assert level_progress(99)["level"] == 1
        assert level_progress(382)["level"] == 2
        assert level_progress(383)["level"] == 3

    def test_negative_and_fractional_xp(self):
        assert level_progress(-50)["level"] == 1
        assert level_progress(99.9)["level"] == 1

    @pytest.mark.parametrize("xp", [0, 1, 99, 100, 2000, 150_000, 999_999, 1_000_000])
    def test_progress_parts_add_up(self, xp):
        result = level_progress(xp)
        assert result["xp_into_level"] + result["xp_to_next_level"] == result["xp_for_next_level"]


class TestLargeTotals:
    """Above the loop limit, results come from the closed-form lookup."""

    @pytest.mark.parametrize("xp", [LOOP_LIMIT_XP + 1, 2_500_000, 10_000_000, 123_456_789, 5_000_000_000])
    def test_matches_loop(self, xp):
        assert level_progress(xp) == level_progress_loop(xp)

    def test_exact_boundaries_match_loop(self):
        for level in (60, 150, 400, 1_000):
            boundary = cumulative_xp_for_level(level)
            assert boundary > LOOP_LIMIT_XP
            for xp in (boundary - 1, boundary, boundary + 1):
                assert level_progress(xp) == level_progress_loop(xp)

    def test_random_totals_match_loop(self):
        rng = random.Random(1234)
        for _ in range(25):
            xp = rng.randint(LOOP_LIMIT_XP, 2_000_000_000)
            assert level_progress(xp) == level_progress_loop(xp)

    def test_progress_parts_add_up(self):
        result = level_progress(10**12)
        assert result["xp_into_level"] + result["xp_to_next_level"] == result["xp_for_next_level"]
        assert cumulative_xp_for_level(result["level"]) <= 10**12 < cumulative_xp_for_level(result["level"] + 1)

    def test_cumulative_matches_direct_sum_across_checkpoints(self):
        for level in (CHECKPOINT_STRIDE, CHECKPOINT_STRIDE + 1, 3 * CHECKPOINT_STRIDE + 7):
            assert cumulative_xp_for_level(level) == sum(level_requirement(k) for k in range(1, level))

    def test_checkpoint_table_stays_sparse(self):
        xp = 10**16
        result = level_progress(xp)
        assert cumulative_xp_for_level(result["level"]) <= xp < cumulative_xp_for_level(result["level"] + 1)
        assert len(leveling._checkpoints) <= result["level"] // CHECKPOINT_STRIDE + 2


class TestEstimateLevel:
    @pytest.mark.parametrize("xp", [1_000, 150_000, 10**7, 10**9, 10**11])
    def test_within_one_level(self, xp):
        assert abs(estimate_level(xp) - level_progress(xp)["level"]) <= 1

    def test_small_totals(self):
        assert estimate_level(0) == 1
        assert estimate_level(50) == 1


class TestXpThresholdForLevel:
    def test_power_curve_up_to_100(self):
        assert xp_threshold_for_level(1) == 100
        assert xp_threshold_for_level(100) == 100_000

    def test_linear_between_soft_caps(self):
        assert xp_threshold_for_level(101) == 110_000
        assert xp_threshold_for_level(1_000) == 100_000 + 10_000 * 900

    def test_steeper_after_1000(self):
        assert xp_threshold_for_level(1_001) == xp_threshold_for_level(1_000) + 50_000

    def test_distinct_from_level_requirement_above_100(self):
        assert xp_threshold_for_level(101) != level_requirement(101)


class TestXpFromEnergy:
    def test_floors(self):
        assert xp_from_energy(0) == 0
        assert xp_from_energy(9) == 0
        assert xp_from_energy(100) == 10
        assert xp_from_energy(109.9) == 10
