"""Append-only audit events. The engines write them and never read them back."""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from idlecore.db.models import Event


async def log_event(
    db: AsyncSession,
    user_id: int,
    event_type: str,
    event_data: dict[str, Any] | None = None,
    *,
    suspicious: bool = False,
) -> None:
    """Queue an audit event in the caller's transaction."""
    db.add(
        Event(
            user_id=user_id,
            event_type=event_type,
            event_data=event_data or {},
            is_suspicious=suspicious,
        )
    )
