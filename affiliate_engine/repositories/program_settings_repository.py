"""
Program configuration repository.

Reads the rows that make up a configuration snapshot.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.program_settings import (
    AffiliateFraudRule,
    AffiliateMLMConfig,
    AffiliateProgramSettings,
)
from affiliate_engine.repositories.base import BaseRepository


class ProgramSettingsRepository(BaseRepository[AffiliateProgramSettings]):
    """Program settings repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize program settings repository."""
        super().__init__(AffiliateProgramSettings, session)

    async def get_current(self) -> AffiliateProgramSettings | None:
        """Get the settings row (lowest ID if several exist)."""
        stmt = (
            select(AffiliateProgramSettings)
            .order_by(AffiliateProgramSettings.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_version(self) -> int | None:
        """Get the settings version without loading the row."""
        stmt = (
            select(AffiliateProgramSettings.version)
            .order_by(AffiliateProgramSettings.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_mlm_config(self) -> AffiliateMLMConfig | None:
        """Get multi-level settings (lowest ID if several exist)."""
        stmt = select(AffiliateMLMConfig).order_by(AffiliateMLMConfig.id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_fraud_rules(self) -> list[AffiliateFraudRule]:
        """Get active fraud rules."""
        stmt = (
            select(AffiliateFraudRule)
            .where(AffiliateFraudRule.is_active.is_(True))
            .order_by(AffiliateFraudRule.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
