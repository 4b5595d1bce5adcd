"""Leveling curve and XP helpers.

Two independent curves live here:

* ``level_requirement`` drives player levels: reaching level ``L + 1`` from
  ``L`` costs ``round(100 * L ** 1.5)`` xp, with no caps.
* ``xp_threshold_for_level`` has soft caps at levels 100 and 1000 and is only
  used to size per-transaction XP caps (see ``transaction_xp``).

``level_progress`` must agree exactly with the subtract-until-short loop.
Totals above ``LOOP_LIMIT_XP`` start from a closed-form estimate of the
cumulative curve and correct it against exact sums. Exact sums are anchored on
sparse checkpoints, one every ``CHECKPOINT_STRIDE`` levels, so a lookup sums at
most one stride plus the few levels the estimate is off by.
"""

from __future__ import annotations

import math

BASE_XP_MULTIPLIER = 100
BASE_EXPONENT = 1.5

MID_SOFT_CAP_LEVEL = 100
HIGH_SOFT_CAP_LEVEL = 1000
MID_INCREMENT = 10_000
HIGH_INCREMENT = 50_000

LOOP_LIMIT_XP = 1_000_000
CHECKPOINT_STRIDE = 1024

# _checkpoints[i] == sum(level_requirement(k) for k in 1..i * CHECKPOINT_STRIDE)
_checkpoints: list[int] = [0]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def level_requirement(level: int) -> int:
    """XP needed to go from ``level`` to ``level + 1``."""
    normalized = max(1, int(level))
    return _round_half_up(BASE_XP_MULTIPLIER * normalized**BASE_EXPONENT)


def xp_from_energy(energy: float) -> int:
    """Every 10 energy produced is worth 1 xp."""
    return max(0, math.floor(energy / 10))


# ---------------------------------------------------------------------------
# Cumulative curve
# ---------------------------------------------------------------------------


def _approx_cumulative(m: float) -> float:
    """Euler-Maclaurin approximation of sum_{k=1..m} 100 * k^1.5."""
    return 40 * m**2.5 + 50 * m**1.5 + 12.5 * m**0.5 - 2.55


def estimate_level(total_xp: float) -> int:
    """Closed-form inverse of the cumulative curve.

    Solves ``_approx_cumulative(m) == total_xp`` with Newton's method and
    returns ``floor(m) + 1``. Accurate to within one level of ``level_progress``;
    used as the starting point of the exact lookup, never as the answer on its own.
    """
    xp = max(0.0, float(total_xp))
    if xp < BASE_XP_MULTIPLIER:
        return 1

    m = (xp / 40) ** 0.4
    for _ in range(8):
        f = _approx_cumulative(m) - xp
        df = 100 * m**1.5 + 75 * m**0.5 + 6.25 * m**-0.5
        step = f / df
        m -= step
        if abs(step) < 1e-9:
            break
    return max(1, math.floor(m) + 1)


def _extend_checkpoints(index: int) -> None:
    while len(_checkpoints) <= index:
        start = (len(_checkpoints) - 1) * CHECKPOINT_STRIDE
        stride_total = sum(level_requirement(k) for k in range(start + 1, start + CHECKPOINT_STRIDE + 1))
        _checkpoints.append(_checkpoints[-1] + stride_total)


def _cumulative_through(levels_completed: int) -> int:
    """sum(level_requirement(k) for k in 1..levels_completed)."""
    index = max(0, levels_completed) // CHECKPOINT_STRIDE
    _extend_checkpoints(index)
    start = index * CHECKPOINT_STRIDE
    return _checkpoints[index] + sum(level_requirement(k) for k in range(start + 1, max(0, levels_completed) + 1))


def cumulative_xp_for_level(level: int) -> int:
    """Total xp needed to reach ``level`` from zero."""
    return _cumulative_through(max(1, int(level)) - 1)


# ---------------------------------------------------------------------------
# Level progress
# ---------------------------------------------------------------------------


def _progress_dict(level: int, xp_into_level: int) -> dict:
    xp_for_next = level_requirement(level)
    return {
        "level": level,
        "xp_into_level": xp_into_level,
        "xp_for_next_level": xp_for_next,
        "xp_to_next_level": max(0, xp_for_next - xp_into_level),
    }


def level_progress_loop(total_xp: float) -> dict:
    """Reference implementation: subtract whole levels while the xp covers them."""
    remaining = max(0, math.floor(total_xp))
    level = 1
    needed = level_requirement(level)
    while remaining >= needed:
        remaining -= needed
        level += 1
        needed = level_requirement(level)
    return _progress_dict(level, remaining)


def level_progress(total_xp: float) -> dict:
    """Compute level info from cumulative xp.

    Returns ``level``, ``xp_into_level``, ``xp_for_next_level`` and
    ``xp_to_next_level``; ``xp_into_level + xp_to_next_level == xp_for_next_level``.
    """
    xp = max(0, math.floor(total_xp))
    if xp <= LOOP_LIMIT_XP:
        return level_progress_loop(xp)

    # Largest m with cumulative(m) <= xp; the player is at level m + 1.
    completed = max(0, estimate_level(xp) - 1)
    reached = _cumulative_through(completed)
    while completed > 0 and reached > xp:
        reached -= level_requirement(completed)
        completed -= 1
    while reached + level_requirement(completed + 1) <= xp:
        completed += 1
        reached += level_requirement(completed)
    return _progress_dict(completed + 1, xp - reached)


# ---------------------------------------------------------------------------
# Transaction-cap curve
# ---------------------------------------------------------------------------

XP_AT_MID_SOFT_CAP = _round_half_up(BASE_XP_MULTIPLIER * MID_SOFT_CAP_LEVEL**BASE_EXPONENT)
XP_AT_HIGH_SOFT_CAP = XP_AT_MID_SOFT_CAP + MID_INCREMENT * (HIGH_SOFT_CAP_LEVEL - MID_SOFT_CAP_LEVEL)


def xp_threshold_for_level(level: int) -> int:
    """Soft-capped per-level threshold: power curve to 100, then linear, steeper past 1000."""
    normalized = max(1, math.floor(level))

    if normalized <= MID_SOFT_CAP_LEVEL:
        return _round_half_up(BASE_XP_MULTIPLIER * normalized**BASE_EXPONENT)

    if normalized <= HIGH_SOFT_CAP_LEVEL:
        return XP_AT_MID_SOFT_CAP + MID_INCREMENT * (normalized - MID_SOFT_CAP_LEVEL)

    return XP_AT_HIGH_SOFT_CAP + HIGH_INCREMENT * (normalized - HIGH_SOFT_CAP_LEVEL)
