"""
System log repository.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.system_log import SystemLog
from affiliate_engine.repositories.base import BaseRepository


class SystemLogRepository(BaseRepository[SystemLog]):
    """System log repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize system log repository."""
        super().__init__(SystemLog, session)

    async def get_recent(
        self, source: str | None = None, limit: int = 50
    ) -> list[SystemLog]:
        """
        Get latest entries, optionally for one source.

        Args:
            source: Source filter
            limit: Max entries

        Returns:
            Entries, newest first
        """
        stmt = select(SystemLog).order_by(SystemLog.id.desc()).limit(limit)
        if source:
            stmt = stmt.where(SystemLog.source == source)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
