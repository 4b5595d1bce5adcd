"""Session lifecycle: login catch-up, starter grant and logout bookkeeping."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from idlecore import metrics
from idlecore.cache import invalidate_profile_cache
from idlecore.config import get_settings
from idlecore.content.catalog import get_catalog
from idlecore.content.construction import ConstructionSnapshotProvider, NullConstructionProvider
from idlecore.database import transaction
from idlecore.db.models import Boost, User, UserProfile
from idlecore.economy.achievement_service import sync_metric
from idlecore.economy.event_log import log_event
from idlecore.economy.leveling import level_progress, xp_from_energy
from idlecore.economy.passive_income import BuildingIncome, build_building_details, compute_passive_income
from idlecore.economy.player_state import (
    PlayerContext,
    apply_gain,
    get_or_create_progress,
    list_cosmetic_ids,
    load_player_context,
    upsert_inventory_item,
)
from idlecore.economy.tap_service import tap_income_per_hit

logger = logging.getLogger(__name__)

STALE_SESSION_SECONDS = 24 * 3600


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _building_view(detail: BuildingIncome) -> dict[str, Any]:
    return {
        "building_id": detail.building_id,
        "name": detail.name,
        "count": detail.count,
        "level": detail.level,
        "income_per_sec": detail.income_per_sec,
    }


def _boost_view(boost: Boost) -> dict[str, Any]:
    return {
        "boost_type": boost.boost_type,
        "multiplier": boost.multiplier,
        "expires_at": _iso(boost.expires_at),
    }


def offline_baseline(ctx: PlayerContext) -> datetime | None:
    """Start of the unpaid offline interval.

    Zero offline time without a logout. A tick after the logout has already paid
    up to its own timestamp, so the later of the two is used.
    """
    last_logout = ctx.progress.last_logout
    if last_logout is None:
        return None
    last_tick = ctx.session.last_tick_at
    if last_tick is not None and last_tick > last_logout:
        return last_tick
    return last_logout


def _profile_view(profile: UserProfile | None) -> dict[str, Any]:
    if profile is None:
        return {}
    return {
        "equipped_avatar_frame": profile.equipped_avatar_frame,
        "equipped_planet_skin": profile.equipped_planet_skin,
        "equipped_tap_effect": profile.equipped_tap_effect,
        "equipped_background": profile.equipped_background,
        "bio": profile.bio,
        "is_public": profile.is_public,
    }


async def open_session(
    db: AsyncSession,
    redis: object,
    user_id: int,
    now: datetime | None = None,
    construction: ConstructionSnapshotProvider | None = None,
) -> dict[str, Any]:
    """Open a play session and return the full client state.

    In one transaction:
    1. Grant the starter building to new players who lack it
    2. Credit offline income since the last logout or any later tick (capped, scaled)
    3. Stamp last_login, clear last_logout, restart tick accounting
    4. Resync the energy, prestige and building achievement metrics
    """
    now = now or datetime.now(timezone.utc)
    settings = get_settings()
    catalog = get_catalog()
    construction = construction or NullConstructionProvider()

    async with transaction(db):
        ctx = await load_player_context(db, user_id, now)
        progress = ctx.progress

        starter_id = settings.starter_building_id
        owns_starter = any(item.building_id == starter_id and item.count > 0 for item in ctx.inventory)
        if not owns_starter and progress.level <= settings.starter_grant_max_level:
            granted = await upsert_inventory_item(db, user_id, starter_id, count_delta=1)
            if granted not in ctx.inventory:
                ctx.inventory.append(granted)
            await log_event(
                db,
                user_id,
                "building_purchase",
                {"building_id": starter_id, "cost": 0, "new_count": granted.count, "auto_grant": True},
            )
            metrics.record_building_granted(starter_id, "auto_grant")
            logger.info("Granted starter building %s to user %s", starter_id, user_id)

        details = build_building_details(ctx.inventory, progress.level, catalog)
        income = compute_passive_income(
            details,
            ctx.boosts,
            prestige_multiplier=progress.prestige_multiplier,
            achievement_multiplier=progress.achievement_multiplier,
        )

        raw_offline = 0
        offline_since = offline_baseline(ctx)
        if offline_since is not None:
            raw_offline = max(0, math.floor((now - offline_since).total_seconds()))
        max_offline = settings.max_offline_hours * 3600
        offline_seconds = min(raw_offline, max_offline)
        capped = raw_offline > max_offline

        offline_energy = max(
            0, math.floor(income.effective_income * offline_seconds * settings.offline_income_multiplier)
        )
        offline_xp = xp_from_energy(offline_energy)

        old_level = progress.level
        apply_gain(progress, offline_energy, offline_xp)
        progress.last_login = now
        progress.last_logout = None

        # Offline time is settled here; the next tick starts from now.
        ctx.session.last_tick_at = now
        ctx.session.pending_passive_seconds = 0

        if offline_energy > 0:
            await log_event(
                db,
                user_id,
                "offline_income_grant",
                {
                    "energy": offline_energy,
                    "xp": offline_xp,
                    "duration_sec": offline_seconds,
                    "capped": capped,
                    "leveled_up": progress.level != old_level,
                },
            )

        await sync_metric(db, user_id, "total_energy", progress.total_energy_produced)
        await sync_metric(db, user_id, "prestige_level", progress.prestige_level)
        await sync_metric(db, user_id, "buildings_owned", ctx.buildings_owned)

        await db.flush()

        user = await db.get(User, user_id)
        cosmetics = await list_cosmetic_ids(db, user_id)
        construction_snapshot = await construction.get_snapshot(db, user_id)
        level_info = level_progress(progress.xp)

        state = {
            "user": {
                "id": user_id,
                "external_id": user.external_id if user else None,
                "username": user.username if user else None,
            },
            "progress": {
                "level": progress.level,
                "xp": progress.xp,
                "xp_into_level": level_info["xp_into_level"],
                "xp_to_next_level": level_info["xp_to_next_level"],
                "energy": progress.energy,
                "total_energy_produced": progress.total_energy_produced,
                "passive_income_per_sec": math.floor(income.effective_income),
                "passive_income_multiplier": income.effective_multiplier,
                "boost_multiplier": income.boost_multiplier,
                "prestige_multiplier": income.prestige_multiplier,
                "achievement_multiplier": income.achievement_multiplier,
                "prestige_level": progress.prestige_level,
                "prestige_energy_since_reset": progress.total_energy_produced - progress.prestige_energy_snapshot,
                "prestige_last_reset": _iso(progress.prestige_last_reset),
                "tap_level": progress.tap_level,
                "tap_income": tap_income_per_hit(progress.tap_level),
                "last_login": _iso(progress.last_login),
                "last_logout": _iso(progress.last_logout),
            },
            "inventory": [_building_view(d) for d in details],
            "boosts": [_boost_view(b) for b in ctx.boosts],
            "profile": _profile_view(ctx.profile),
            "cosmetics": cosmetics,
            "construction": construction_snapshot,
            "offline_gains": {
                "energy": offline_energy,
                "xp": offline_xp,
                "duration_sec": offline_seconds,
                "capped": capped,
            },
            "feature_flags": dict(catalog.feature_flags),
            "server_time": now.isoformat(),
        }

    metrics.record_session_opened(offline_seconds)
    if offline_energy > 0:
        metrics.record_offline_reward(offline_energy, offline_xp, offline_seconds, capped)
    await invalidate_profile_cache(redis, user_id)
    return state


async def record_logout(db: AsyncSession, user_id: int, now: datetime | None = None) -> dict[str, Any]:
    """Stamp last_logout. Session length is reported only for sessions under 24h."""
    now = now or datetime.now(timezone.utc)

    async with transaction(db):
        progress, _ = await get_or_create_progress(db, user_id, lock=True)
        last_login = progress.last_login
        progress.last_logout = now
        await log_event(db, user_id, "logout", {})
        await db.flush()

    duration = None
    if last_login is not None:
        duration = (now - last_login).total_seconds()
        if 0 <= duration < STALE_SESSION_SECONDS:
            metrics.record_session_duration(duration)
        else:
            duration = None

    metrics.record_session_closed()
    return {"logged_out_at": now.isoformat(), "session_duration_sec": duration}
