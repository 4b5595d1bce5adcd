"""Economy core tables.

Creates progress, player_sessions, boosts, inventory, user_cosmetics, user_profile,
achievement_definitions, achievement_progress and events. The users table
is owned by the auth service and only created here when missing.

Revision ID: 001_economy_core
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_economy_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users (auth-owned) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            external_id VARCHAR(64) UNIQUE NOT NULL,
            username VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS progress (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            level INTEGER NOT NULL DEFAULT 1,
            xp BIGINT NOT NULL DEFAULT 0,
            xp_overflow BIGINT NOT NULL DEFAULT 0,
            energy BIGINT NOT NULL DEFAULT 0,
            stars_balance BIGINT NOT NULL DEFAULT 0,
            total_energy_produced BIGINT NOT NULL DEFAULT 0,
            total_taps BIGINT NOT NULL DEFAULT 0,
            total_buildings_purchased BIGINT NOT NULL DEFAULT 0,
            tap_level INTEGER NOT NULL DEFAULT 1,
            prestige_level INTEGER NOT NULL DEFAULT 0,
            prestige_multiplier DOUBLE PRECISION NOT NULL DEFAULT 1,
            prestige_energy_snapshot BIGINT NOT NULL DEFAULT 0,
            prestige_last_reset TIMESTAMPTZ,
            achievement_multiplier DOUBLE PRECISION NOT NULL DEFAULT 1,
            last_login TIMESTAMPTZ,
            last_logout TIMESTAMPTZ,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT progress_stars_balance_non_negative CHECK (stars_balance >= 0),
            CONSTRAINT progress_energy_non_negative CHECK (energy >= 0)
        )
    """)

    # --- Player sessions (tick bookkeeping) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS player_sessions (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            last_tick_at TIMESTAMPTZ,
            pending_passive_seconds DOUBLE PRECISION NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Boosts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS boosts (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            boost_type VARCHAR(32) NOT NULL,
            multiplier DOUBLE PRECISION NOT NULL,
            expires_at TIMESTAMPTZ NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT boosts_multiplier_gt_one CHECK (multiplier > 1)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_boosts_user_expires
        ON boosts(user_id, expires_at)
    """)

    # --- Inventory ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS inventory (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            building_id VARCHAR(64) NOT NULL,
            count INTEGER NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT inventory_user_id_building_id_key UNIQUE (user_id, building_id),
            CONSTRAINT inventory_count_non_negative CHECK (count >= 0),
            CONSTRAINT inventory_level_non_negative CHECK (level >= 0)
        )
    """)

    # --- Cosmetics ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_cosmetics (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            cosmetic_id VARCHAR(64) NOT NULL,
            source VARCHAR(32) NOT NULL DEFAULT 'reward',
            granted_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_cosmetics_user_id_cosmetic_id_key UNIQUE (user_id, cosmetic_id)
        )
    """)

    # --- Profile ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_profile (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            equipped_avatar_frame VARCHAR(64),
            equipped_planet_skin VARCHAR(64),
            equipped_tap_effect VARCHAR(64),
            equipped_background VARCHAR(64),
            bio TEXT,
            is_public BOOLEAN NOT NULL DEFAULT TRUE,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Achievement definitions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievement_definitions (
            id SERIAL PRIMARY KEY,
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT,
            category VARCHAR(32) NOT NULL,
            icon VARCHAR(64),
            metric VARCHAR(32) NOT NULL,
            unit VARCHAR(32) NOT NULL DEFAULT 'count',
            max_tier INTEGER NOT NULL,
            tiers JSONB NOT NULL DEFAULT '[]',
            sort_order INTEGER NOT NULL DEFAULT 0
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_achievement_definitions_metric
        ON achievement_definitions(metric)
    """)

    # --- Achievement progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievement_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id INTEGER NOT NULL REFERENCES achievement_definitions(id) ON DELETE CASCADE,
            progress_value DOUBLE PRECISION NOT NULL DEFAULT 0,
            highest_unlocked_tier INTEGER NOT NULL DEFAULT 0,
            current_tier INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT achievement_progress_user_id_achievement_id_key UNIQUE (user_id, achievement_id),
            CONSTRAINT achievement_progress_claimed_le_unlocked CHECK (current_tier <= highest_unlocked_tier)
        )
    """)

    # --- Events (append-only audit log) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS events (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            event_type VARCHAR(64) NOT NULL,
            event_data JSONB NOT NULL DEFAULT '{}',
            is_suspicious BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_events_user_created
        ON events(user_id, created_at)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_events_type
        ON events(event_type)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS events")
    op.execute("DROP TABLE IF EXISTS achievement_progress")
    op.execute("DROP TABLE IF EXISTS achievement_definitions")
    op.execute("DROP TABLE IF EXISTS user_profile")
    op.execute("DROP TABLE IF EXISTS user_cosmetics")
    op.execute("DROP TABLE IF EXISTS inventory")
    op.execute("DROP TABLE IF EXISTS boosts")
    op.execute("DROP TABLE IF EXISTS player_sessions")
    op.execute("DROP TABLE IF EXISTS progress")
