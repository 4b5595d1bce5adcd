"""XP awarded for purchases and upgrades, with diminishing returns and a per-level cap."""

from __future__ import annotations

import math
from dataclasses import dataclass

from idlecore.economy.leveling import xp_threshold_for_level

PURCHASE_EXPONENT = 0.75
PURCHASE_SCALE = 2.7011479041326116
UPGRADE_EXPONENT = 0.7
UPGRADE_SCALE = 1.2311688331423734

DIMINISHING_PIVOT_LEVEL = 250
DIMINISHING_EXPONENT = 1.6
CAP_FRACTION = 0.25


@dataclass(frozen=True)
class TransactionXp:
    raw_xp: int
    diminished_xp: int
    applied_xp: int
    cap: int


def _normalize_level(level: float) -> int:
    if not math.isfinite(level):
        return 1
    return max(1, math.floor(level))


def diminishing_multiplier(level: int) -> float:
    """1 / (1 + (level / 250) ^ 1.6)."""
    normalized = _normalize_level(level)
    return 1 / (1 + (normalized / DIMINISHING_PIVOT_LEVEL) ** DIMINISHING_EXPONENT)


def transaction_cap(level: int) -> int:
    """At most a quarter of the level's threshold per transaction."""
    return math.floor(xp_threshold_for_level(_normalize_level(level)) * CAP_FRACTION)


def apply_transaction_cap(raw_xp: float, level: int) -> TransactionXp:
    """Scale raw xp down for high levels and clamp it to the per-transaction cap."""
    cap = transaction_cap(level)
    if not math.isfinite(raw_xp) or raw_xp <= 0:
        return TransactionXp(raw_xp=0, diminished_xp=0, applied_xp=0, cap=cap)

    raw = math.floor(raw_xp)
    diminished = math.floor(raw_xp * diminishing_multiplier(level))
    applied = max(0, min(diminished, cap))
    return TransactionXp(raw_xp=raw, diminished_xp=diminished, applied_xp=applied, cap=cap)


def _scaled(cost: float, exponent: float, scale: float) -> float:
    if not math.isfinite(cost) or cost <= 0:
        return 0.0
    return cost**exponent * scale


def calculate_purchase_xp(cost: float, level: int) -> TransactionXp:
    return apply_transaction_cap(_scaled(cost, PURCHASE_EXPONENT, PURCHASE_SCALE), level)


def calculate_upgrade_xp(cost: float, level: int) -> TransactionXp:
    return apply_transaction_cap(_scaled(cost, UPGRADE_EXPONENT, UPGRADE_SCALE), level)
