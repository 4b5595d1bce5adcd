"""Fire-and-forget gameplay metrics.

Each recorder emits one structured ``metric`` event through structlog; the log
pipeline ships them to the metrics backend. Recorders never raise and never
touch economic state, so a missing or broken sink cannot change a balance.
"""

from __future__ import annotations

import structlog

from idlecore.config import get_settings


def _emit(name: str, **fields: object) -> None:
    if not get_settings().metrics_enabled:
        return
    try:
        structlog.get_logger("idlecore.metrics").info("metric", metric=name, **fields)
    except Exception:  # noqa: BLE001
        return


# ── Tick ──


def record_tick_success(accounted_seconds: float, carried_seconds: float, energy_gained: int) -> None:
    _emit(
        "tick_success_total",
        accounted_seconds=accounted_seconds,
        carried_seconds=carried_seconds,
        energy_gained=energy_gained,
    )


def record_tick_error(reason: str) -> None:
    _emit("tick_error_total", reason=reason)


# ── Tap ──


def record_tap_request(tap_count: int) -> None:
    _emit("tap_requests_total", taps=tap_count)


def record_tap_rate_limited(window: str) -> None:
    _emit("tap_rate_limit_total", window=window)


def record_tap_rate_limit_degraded() -> None:
    _emit("tap_rate_limit_degraded_total")


# ── Session ──


def record_session_opened(offline_seconds: int) -> None:
    _emit("sessions_opened_total", offline_seconds=offline_seconds)


def record_session_closed() -> None:
    _emit("sessions_closed_total")


def record_session_duration(duration_seconds: float) -> None:
    _emit("session_duration_seconds", value=duration_seconds)


def record_offline_reward(energy: int, xp: int, duration_seconds: int, capped: bool) -> None:
    _emit(
        "offline_reward_total",
        energy=energy,
        xp=xp,
        duration_seconds=duration_seconds,
        capped="capped" if capped else "uncapped",
    )


def record_building_granted(building_id: str, source: str) -> None:
    _emit("building_grants_total", building_id=building_id, source=source)


# ── Prestige ──


def record_prestige(gain: int, energy_since_prestige: int) -> None:
    _emit("prestige_total", gain=gain, energy_since_prestige=energy_since_prestige)


# ── Achievements / cosmetics / boosts ──


def record_achievement_unlocked(slug: str, tier: int) -> None:
    _emit("achievement_unlocked_total", slug=slug, tier=tier)


def record_achievement_claimed(slug: str, tier: int) -> None:
    _emit("achievement_claimed_total", slug=slug, tier=tier)


def record_cosmetic_granted(cosmetic_id: str, source: str) -> None:
    _emit("cosmetic_granted_total", cosmetic_id=cosmetic_id, source=source)


def record_boost_claimed(boost_type: str) -> None:
    _emit("boost_claimed_total", boost_type=boost_type)
