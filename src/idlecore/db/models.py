"""ORM models for the economy ledger.

The schema itself is owned by the Alembic migrations; these models mirror it.
Tests build the same tables from ``Base.metadata``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from idlecore.db.base import Base, BigIntPK, JSONType, UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Player identity. Owned by the auth collaborator; the economy only reads it."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    username: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Progress: the authoritative economic ledger
# ---------------------------------------------------------------------------


class Progress(Base):
    """One row per player. Mutated only inside a transaction holding its row lock."""

    __tablename__ = "progress"
    __table_args__ = (
        CheckConstraint("stars_balance >= 0", name="progress_stars_balance_non_negative"),
        CheckConstraint("energy >= 0", name="progress_energy_non_negative"),
    )

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    xp_overflow: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    energy: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    stars_balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_energy_produced: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_taps: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_buildings_purchased: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    tap_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    prestige_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    prestige_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    prestige_energy_snapshot: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    prestige_last_reset: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    achievement_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    last_login: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_logout: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, default=_utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True, default=_utcnow, onupdate=_utcnow
    )


class PlayerSession(Base):
    """Tick bookkeeping, kept apart from Progress."""

    __tablename__ = "player_sessions"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    last_tick_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    pending_passive_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


class Boost(Base):
    """Timed income multiplier. Active iff expires_at > now; expired rows stay as history."""

    __tablename__ = "boosts"
    __table_args__ = (
        CheckConstraint("multiplier > 1", name="boosts_multiplier_gt_one"),
        Index("idx_boosts_user_expires", "user_id", "expires_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    boost_type: Mapped[str] = mapped_column(String(32), nullable=False)
    multiplier: Mapped[float] = mapped_column(Float, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


class InventoryItem(Base):
    """Owned buildings, unique on (user_id, building_id)."""

    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("user_id", "building_id", name="inventory_user_id_building_id_key"),
        CheckConstraint("count >= 0", name="inventory_count_non_negative"),
        CheckConstraint("level >= 0", name="inventory_level_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    building_id: Mapped[str] = mapped_column(String(64), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


class UserCosmetic(Base):
    """Cosmetics owned by a player, unique on (user_id, cosmetic_id)."""

    __tablename__ = "user_cosmetics"
    __table_args__ = (
        UniqueConstraint("user_id", "cosmetic_id", name="user_cosmetics_user_id_cosmetic_id_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    cosmetic_id: Mapped[str] = mapped_column(String(64), nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="reward")
    granted_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


class UserProfile(Base):
    """Equipped cosmetics and public profile fields. Created lazily on first session."""

    __tablename__ = "user_profile"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    equipped_avatar_frame: Mapped[str | None] = mapped_column(String(64), nullable=True)
    equipped_planet_skin: Mapped[str | None] = mapped_column(String(64), nullable=True)
    equipped_tap_effect: Mapped[str | None] = mapped_column(String(64), nullable=True)
    equipped_background: Mapped[str | None] = mapped_column(String(64), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class AchievementDefinition(Base):
    """Tiered achievement tracking one metric. Seeded on startup."""

    __tablename__ = "achievement_definitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    icon: Mapped[str | None] = mapped_column(String(64), nullable=True)
    metric: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    unit: Mapped[str] = mapped_column(String(32), nullable=False, default="count")
    max_tier: Mapped[int] = mapped_column(Integer, nullable=False)
    # [{"tier": 1, "threshold": 1000, "reward_multiplier": 1.02}, ...]
    tiers: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class AchievementProgress(Base):
    """Per-player achievement state, unique on (user_id, achievement_id)."""

    __tablename__ = "achievement_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="achievement_progress_user_id_achievement_id_key"),
        CheckConstraint("current_tier <= highest_unlocked_tier", name="achievement_progress_claimed_le_unlocked"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievement_definitions.id", ondelete="CASCADE"), nullable=False
    )
    progress_value: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    highest_unlocked_tier: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_tier: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------


class Event(Base):
    """Append-only audit record. Written by the engines, read only by analytics."""

    __tablename__ = "events"
    __table_args__ = (
        Index("idx_events_user_created", "user_id", "created_at"),
        Index("idx_events_type", "event_type"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    event_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    is_suspicious: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
