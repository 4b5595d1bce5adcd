"""Tick engine: turns server-measured elapsed time into passive energy and xp.

Elapsed time is always derived from the server clock against the last
accounted tick. Unused time is carried over in
``PlayerSession.pending_passive_seconds`` so it is deferred, never lost.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from idlecore import metrics
from idlecore.config import get_settings
from idlecore.content.catalog import get_catalog
from idlecore.database import transaction
from idlecore.economy.achievement_service import sync_metric
from idlecore.economy.event_log import log_event
from idlecore.economy.leveling import level_progress, xp_from_energy
from idlecore.economy.passive_income import build_building_details, compute_passive_income
from idlecore.economy.player_state import PlayerContext, apply_gain, load_player_context
from idlecore.exceptions import ValidationError

logger = logging.getLogger(__name__)


def sanitize_client_delta(client_delta_seconds: float | None) -> int:
    """Whole non-negative seconds from a client-reported delta.

    NaN and infinities are rejected; negatives become 0.
    """
    if client_delta_seconds is None:
        return 0
    try:
        value = float(client_delta_seconds)
    except (TypeError, ValueError) as e:
        raise ValidationError("invalid_time_delta", "Time delta must be a number") from e
    if not math.isfinite(value):
        raise ValidationError("invalid_time_delta", "Time delta must be finite")
    return max(0, math.floor(value))


def tick_caps() -> tuple[int, int]:
    """(online cap, offline cap) in seconds."""
    settings = get_settings()
    online_cap = settings.session_timeout_minutes * 60
    offline_cap = max(online_cap, settings.max_offline_hours * 3600)
    return online_cap, offline_cap


def resolve_baseline(ctx: PlayerContext) -> datetime | None:
    """Last accounted instant: last tick, else last logout, else row timestamps.

    A Progress row created in this very request has no history, so its
    timestamps are not a baseline.
    """
    if ctx.session.last_tick_at is not None:
        return ctx.session.last_tick_at
    if ctx.progress.last_logout is not None:
        return ctx.progress.last_logout
    if ctx.progress_created:
        return None
    return ctx.progress.updated_at or ctx.progress.created_at


def split_available_seconds(available: float, cap: int) -> tuple[float, float]:
    """(accounted, carried) for a tick.

    Any positive amount accounts at least one second; the excess over ``cap``
    is carried to the next tick.
    """
    if available <= 0:
        return 0, 0
    accounted = min(max(available, 1), cap)
    return accounted, max(0, available - accounted)


async def apply_tick(
    db: AsyncSession,
    user_id: int,
    client_delta_seconds: float | None = 0,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Account passive income for the time since the previous tick.

    Runs in one transaction with the Progress row locked. Any failure rolls
    back the whole tick, session bookkeeping included.
    """
    now = now or datetime.now(timezone.utc)
    _, offline_cap = tick_caps()

    async with transaction(db):
        ctx = await load_player_context(db, user_id, now)
        progress = ctx.progress

        baseline = resolve_baseline(ctx)
        if baseline is not None:
            derived_elapsed = max(0, math.floor((now - baseline).total_seconds()))
        else:
            derived_elapsed = sanitize_client_delta(client_delta_seconds)

        available = (ctx.session.pending_passive_seconds or 0) + derived_elapsed
        accounted, carried = split_available_seconds(available, offline_cap)

        details = build_building_details(ctx.inventory, progress.level, get_catalog())
        income = compute_passive_income(
            details,
            ctx.boosts,
            prestige_multiplier=progress.prestige_multiplier,
            achievement_multiplier=progress.achievement_multiplier,
        )
        energy_gained = max(0, math.floor(income.effective_income * accounted))
        xp_gained = xp_from_energy(energy_gained)

        old_level = progress.level
        level_info = level_progress(progress.xp)
        if energy_gained > 0 or xp_gained > 0 or level_info["level"] != old_level:
            _, level_info = apply_gain(progress, energy_gained, xp_gained)

        if energy_gained > 0:
            await sync_metric(db, user_id, "total_energy", progress.total_energy_produced)
            await log_event(
                db,
                user_id,
                "tick",
                {
                    "energy_gained": energy_gained,
                    "xp_gained": xp_gained,
                    "accounted_seconds": accounted,
                    "carried_seconds": carried,
                },
            )

        ctx.session.last_tick_at = now
        ctx.session.pending_passive_seconds = carried
        await db.flush()

        snapshot = {
            "energy": progress.energy,
            "energy_gained": energy_gained,
            "xp_gained": xp_gained,
            "level": progress.level,
            "level_up": progress.level > old_level,
            "xp_into_level": level_info["xp_into_level"],
            "xp_to_next_level": level_info["xp_to_next_level"],
            "passive_income_per_sec": income.effective_income,
            "passive_income_multiplier": income.effective_multiplier,
            "boost_multiplier": income.boost_multiplier,
            "prestige_multiplier": income.prestige_multiplier,
            "achievement_multiplier": income.achievement_multiplier,
            "duration_sec": accounted,
            "carried_seconds": carried,
        }

    metrics.record_tick_success(accounted, carried, energy_gained)
    return snapshot
