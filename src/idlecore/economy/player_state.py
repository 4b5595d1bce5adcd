"""Loading and mutating a player's persisted economy rows.

Every helper runs in the caller's session and transaction; none of them
commit. ``load_player_context`` takes the Progress row lock first so that
concurrent requests for the same player serialize on it.

Per-player singleton rows (progress, session, profile) are created with
``INSERT ... ON CONFLICT DO NOTHING`` followed by a select. Two first requests
racing for the same player both succeed: the loser's insert is a no-op and
its locking select waits for the winner's transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from idlecore.db.models import Boost, InventoryItem, PlayerSession, Progress, User, UserCosmetic, UserProfile
from idlecore.economy.leveling import level_progress

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class PlayerContext:
    progress: Progress
    session: PlayerSession
    profile: UserProfile | None = None
    inventory: list[InventoryItem] = field(default_factory=list)
    boosts: list[Boost] = field(default_factory=list)
    progress_created: bool = False

    @property
    def buildings_owned(self) -> int:
        return sum(max(0, item.count) for item in self.inventory)


# ---------------------------------------------------------------------------
# Lazy-initialized rows
# ---------------------------------------------------------------------------


async def insert_if_missing(db: AsyncSession, model: Any, **values: Any) -> bool:
    """Insert one row unless its key already exists. Returns True if inserted."""
    dialect = db.get_bind().dialect.name
    insert = _DIALECT_INSERTS.get(dialect)
    if insert is None:
        msg = f"Unsupported database dialect: {dialect}"
        raise RuntimeError(msg)
    result = await db.execute(insert(model).values(**values).on_conflict_do_nothing())
    return result.rowcount == 1


async def get_or_create_user(db: AsyncSession, external_id: str, username: str | None = None) -> User:
    """Bootstrap helper; user rows are normally created by the auth service."""
    result = await db.execute(select(User).where(User.external_id == external_id))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(external_id=external_id, username=username)
        db.add(user)
        await db.flush()
    return user


async def get_or_create_progress(
    db: AsyncSession, user_id: int, *, lock: bool = False
) -> tuple[Progress, bool]:
    """Return the player's Progress row and whether it was created just now."""
    stmt = select(Progress).where(Progress.user_id == user_id)
    if lock:
        stmt = stmt.with_for_update()
    progress = (await db.execute(stmt)).scalar_one_or_none()
    if progress is not None:
        return progress, False

    created = await insert_if_missing(db, Progress, user_id=user_id)
    progress = (await db.execute(stmt)).scalar_one()
    return progress, created


async def get_or_create_player_session(db: AsyncSession, user_id: int) -> PlayerSession:
    stmt = select(PlayerSession).where(PlayerSession.user_id == user_id)
    session = (await db.execute(stmt)).scalar_one_or_none()
    if session is None:
        await insert_if_missing(db, PlayerSession, user_id=user_id, pending_passive_seconds=0.0)
        session = (await db.execute(stmt)).scalar_one()
    return session


async def get_or_create_profile(db: AsyncSession, user_id: int) -> UserProfile:
    stmt = select(UserProfile).where(UserProfile.user_id == user_id)
    profile = (await db.execute(stmt)).scalar_one_or_none()
    if profile is None:
        await insert_if_missing(db, UserProfile, user_id=user_id)
        profile = (await db.execute(stmt)).scalar_one()
    return profile


# ---------------------------------------------------------------------------
# Inventory and boosts
# ---------------------------------------------------------------------------


async def list_inventory(db: AsyncSession, user_id: int) -> list[InventoryItem]:
    result = await db.execute(
        select(InventoryItem)
        .where(InventoryItem.user_id == user_id)
        .order_by(InventoryItem.id)
    )
    return list(result.scalars().all())


async def get_active_boosts(db: AsyncSession, user_id: int, now: datetime) -> list[Boost]:
    result = await db.execute(
        select(Boost)
        .where(Boost.user_id == user_id, Boost.expires_at > now)
        .order_by(Boost.expires_at)
    )
    return list(result.scalars().all())


async def upsert_inventory_item(
    db: AsyncSession,
    user_id: int,
    building_id: str,
    *,
    count_delta: int = 0,
    level_delta: int = 0,
) -> InventoryItem:
    """Apply count/level deltas to an inventory row, creating it if needed.

    Results are clamped at zero.
    """
    result = await db.execute(
        select(InventoryItem).where(
            InventoryItem.user_id == user_id,
            InventoryItem.building_id == building_id,
        )
    )
    item = result.scalar_one_or_none()
    if item is None:
        item = InventoryItem(
            user_id=user_id,
            building_id=building_id,
            count=max(0, count_delta),
            level=max(0, level_delta),
        )
        db.add(item)
    else:
        item.count = max(0, item.count + count_delta)
        item.level = max(0, item.level + level_delta)
    await db.flush()
    return item


async def wipe_assets(db: AsyncSession, user_id: int) -> None:
    """Hard-delete the player's inventory and every boost row, expired or not."""
    await db.execute(delete(InventoryItem).where(InventoryItem.user_id == user_id))
    await db.execute(delete(Boost).where(Boost.user_id == user_id))


async def list_cosmetic_ids(db: AsyncSession, user_id: int) -> list[str]:
    result = await db.execute(
        select(UserCosmetic.cosmetic_id)
        .where(UserCosmetic.user_id == user_id)
        .order_by(UserCosmetic.granted_at, UserCosmetic.id)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


async def load_player_context(db: AsyncSession, user_id: int, now: datetime) -> PlayerContext:
    """Lock Progress, then load the session and profile rows, inventory and active boosts."""
    progress, created = await get_or_create_progress(db, user_id, lock=True)
    session = await get_or_create_player_session(db, user_id)
    profile = await get_or_create_profile(db, user_id)
    inventory = await list_inventory(db, user_id)
    boosts = await get_active_boosts(db, user_id, now)
    return PlayerContext(
        progress=progress,
        session=session,
        profile=profile,
        inventory=inventory,
        boosts=boosts,
        progress_created=created,
    )


def apply_gain(progress: Progress, energy_gained: int, xp_gained: int) -> tuple[int, dict]:
    """Credit energy and xp, then recompute the level from the new xp total.

    Returns the previous level and the fresh level info.
    """
    old_level = progress.level
    progress.energy = progress.energy + energy_gained
    progress.total_energy_produced = progress.total_energy_produced + energy_gained
    progress.xp = progress.xp + xp_gained
    info = level_progress(progress.xp)
    progress.level = info["level"]
    return old_level, info
