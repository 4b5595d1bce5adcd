"""Construction scheduler collaborator (builder slots and job queues).

Scheduling itself lives in another service. The session snapshot only needs a
read-only view of a player's builders and jobs, consumed through this protocol.
"""

from __future__ import annotations

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession


class ConstructionSnapshotProvider(Protocol):
    async def get_snapshot(self, db: AsyncSession, user_id: int) -> dict[str, Any]:
        """Return ``{"builders": [...], "jobs": [...]}`` for the player."""
        ...


class NullConstructionProvider:
    """Provider used when no construction service is wired in."""

    async def get_snapshot(self, db: AsyncSession, user_id: int) -> dict[str, Any]:
        return {"builders": [], "jobs": []}
