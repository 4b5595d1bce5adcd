"""Pydantic request/response models for the economy endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

# --- Requests ---


class TapRequest(BaseModel):
    tap_count: int = 1


class TickRequest(BaseModel):
    time_delta: float | None = None


# --- Tick / Tap ---


class TickResponse(BaseModel):
    energy: int
    energy_gained: int
    xp_gained: int
    level: int
    level_up: bool
    xp_into_level: int
    xp_to_next_level: int
    passive_income_per_sec: float
    passive_income_multiplier: float
    boost_multiplier: float
    prestige_multiplier: float
    achievement_multiplier: float
    duration_sec: float
    carried_seconds: float


class TapResponse(BaseModel):
    energy: int
    energy_gained: int
    xp_gained: int
    level: int
    xp_into_level: int
    xp_to_next_level: int
    level_up: bool
    tap_income: float
    total_taps: int


# --- Session ---


class OfflineGains(BaseModel):
    energy: int
    xp: int
    duration_sec: int
    capped: bool


class SessionStateResponse(BaseModel):
    user: dict[str, Any]
    progress: dict[str, Any]
    inventory: list[dict[str, Any]]
    boosts: list[dict[str, Any]]
    profile: dict[str, Any]
    cosmetics: list[str]
    construction: dict[str, Any]
    offline_gains: OfflineGains
    feature_flags: dict[str, bool]
    server_time: str


class LogoutResponse(BaseModel):
    logged_out_at: str
    session_duration_sec: float | None = None


# --- Prestige ---


class PrestigeStatusResponse(BaseModel):
    prestige_level: int
    prestige_multiplier: float
    total_energy_produced: int
    energy_since_prestige: int
    potential_multiplier_gain: int
    potential_multiplier_after_prestige: float
    next_threshold_energy: int
    energy_to_next_threshold: int
    can_prestige: bool


class PrestigeResultResponse(BaseModel):
    prestige_level: int
    prestige_multiplier: float
    gain: int
    energy_since_prestige: int
    boosts_cleared: int


# --- Achievements ---


class AchievementTierStatus(BaseModel):
    tier: int
    threshold: float
    reward_multiplier: float
    earned: bool
    claimable: bool


class AchievementResponse(BaseModel):
    slug: str
    name: str
    description: str | None = None
    category: str
    icon: str | None = None
    metric: str
    unit: str
    max_tier: int
    current_tier: int
    highest_unlocked_tier: int
    progress_value: float
    next_threshold: float | None = None
    progress_ratio: float
    claimable_tier: int | None = None
    claimed_multiplier: float
    pending_multiplier: float
    tiers: list[AchievementTierStatus]


class AchievementsOverviewResponse(BaseModel):
    achievements: list[AchievementResponse]


class AchievementClaimResponse(BaseModel):
    slug: str
    tier: int
    reward_multiplier: float
    new_achievement_multiplier: float
    cosmetic_id: str | None = None


# --- Boosts ---


class ActiveBoostResponse(BaseModel):
    id: int
    boost_type: str
    multiplier: float
    expires_at: str
    remaining_seconds: int


class BoostHubEntry(BaseModel):
    boost_type: str
    multiplier: float
    duration_minutes: int
    cooldown_minutes: int
    requires_premium: bool
    active: ActiveBoostResponse | None = None
    cooldown_remaining_seconds: int


class BoostHubResponse(BaseModel):
    server_time: str
    boosts: list[BoostHubEntry]
