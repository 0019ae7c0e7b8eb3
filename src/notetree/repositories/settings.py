"""
OwnerSettings Repository

Per-owner preferences with defaults for owners that never saved any.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notetree.models import OwnerSettings
from notetree.repositories.base import BaseRepository


class OwnerSettingsRepository(BaseRepository[OwnerSettings]):
    """Repository for OwnerSettings rows (keyed by owner_id, not id)."""

    def __init__(self) -> None:
        super().__init__(OwnerSettings)

    async def get_for_owner(
        self,
        session: AsyncSession,
        owner_id: int,
    ) -> OwnerSettings | None:
        result = await session.execute(
            select(OwnerSettings).where(OwnerSettings.owner_id == owner_id)
        )
        return result.scalars().first()

    async def upsert_auto_delete_days(
        self,
        session: AsyncSession,
        owner_id: int,
        days: int,
        updated_at: datetime,
    ) -> OwnerSettings:
        """Create the owner's row on first write, update it afterwards."""
        existing = await self.get_for_owner(session, owner_id)
        if existing is None:
            return await self.create(
                session,
                {"owner_id": owner_id, "auto_delete_days": days, "updated_at": updated_at},
            )
        return await self.update(
            session,
            existing,
            {"auto_delete_days": days, "updated_at": updated_at},
        )


settings_repository = OwnerSettingsRepository()
