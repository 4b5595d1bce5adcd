"""Economy API endpoints: session, tick, tap, prestige, achievements, boosts."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from idlecore import metrics
from idlecore.dependencies import get_current_user_id, get_db, get_redis_dep
from idlecore.economy import (
    achievement_service,
    boost_service,
    prestige_service,
    session_service,
    tap_service,
    tick_service,
)
from idlecore.economy.schemas import (
    AchievementClaimResponse,
    AchievementsOverviewResponse,
    ActiveBoostResponse,
    BoostHubResponse,
    LogoutResponse,
    PrestigeResultResponse,
    PrestigeStatusResponse,
    SessionStateResponse,
    TapRequest,
    TapResponse,
    TickRequest,
    TickResponse,
)
from idlecore.exceptions import EconomyError

router = APIRouter(prefix="/api/v1", tags=["Economy"])


# ── Session ──


@router.post("/session/open", response_model=SessionStateResponse)
async def open_session(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    """Open a session: starter grant, offline catch-up, full state snapshot."""
    return await session_service.open_session(db, redis, user_id)


@router.post("/session/logout", response_model=LogoutResponse)
async def logout(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await session_service.record_logout(db, user_id)


# ── Tick / Tap ──


@router.post("/tick", response_model=TickResponse)
async def tick(
    body: TickRequest | None = None,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Heartbeat: account passive income since the previous tick."""
    try:
        return await tick_service.apply_tick(db, user_id, body.time_delta if body else None)
    except EconomyError as e:
        metrics.record_tick_error(e.reason)
        raise
    except Exception:
        metrics.record_tick_error("unexpected")
        raise


@router.post("/tap", response_model=TapResponse)
async def tap(
    body: TapRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    return await tap_service.process_tap(db, redis, user_id, body.tap_count)


# ── Prestige ──


@router.get("/prestige", response_model=PrestigeStatusResponse)
async def prestige_status(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await prestige_service.get_prestige_status(db, user_id)


@router.post("/prestige", response_model=PrestigeResultResponse)
async def perform_prestige(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    return await prestige_service.perform_prestige(db, redis, user_id)


# ── Achievements ──


@router.get("/achievements", response_model=AchievementsOverviewResponse)
async def list_achievements(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return AchievementsOverviewResponse(
        achievements=await achievement_service.get_overview(db, user_id),
    )


@router.post("/achievements/{slug}/claim", response_model=AchievementClaimResponse)
async def claim_achievement(
    slug: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    return await achievement_service.claim_next_tier(db, redis, user_id, slug)


# ── Boosts ──


@router.get("/boosts", response_model=BoostHubResponse)
async def boost_hub(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await boost_service.get_boost_hub(db, user_id)


@router.post("/boosts/{boost_type}/claim", response_model=ActiveBoostResponse)
async def claim_boost(
    boost_type: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    return await boost_service.claim_boost(db, redis, user_id, boost_type)
