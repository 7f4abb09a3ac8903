"""
Analytics summary repository.

Additive daily counters keyed by (affiliate_id, date).
"""

from datetime import date
from decimal import Decimal

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.analytics import AffiliateAnalyticsSummary
from affiliate_engine.repositories.base import BaseRepository


class AnalyticsRepository(BaseRepository[AffiliateAnalyticsSummary]):
    """Analytics summary repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize analytics repository."""
        super().__init__(AffiliateAnalyticsSummary, session)

    def _insert(self):
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(AffiliateAnalyticsSummary)
        if dialect == "sqlite":
            return sqlite.insert(AffiliateAnalyticsSummary)
        raise NotImplementedError(f"Analytics upsert not supported on {dialect}")

    async def increment(
        self,
        affiliate_id: int,
        day: date,
        conversions: int,
        revenue: Decimal,
        commission: Decimal,
    ) -> None:
        """
        Add to the affiliate's counters for a day (insert or increment).

        Args:
            affiliate_id: Affiliate ID
            day: Summary date (UTC)
            conversions: Conversions to add
            revenue: Revenue to add
            commission: Commission to add
        """
        table = AffiliateAnalyticsSummary.__table__
        stmt = self._insert().values(
            affiliate_id=affiliate_id,
            date=day,
            conversions=conversions,
            revenue=revenue,
            commission=commission,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.affiliate_id, table.c.date],
            set_={
                "conversions": table.c.conversions + stmt.excluded.conversions,
                "revenue": table.c.revenue + stmt.excluded.revenue,
                "commission": table.c.commission + stmt.excluded.commission,
            },
        )
        await self.session.execute(stmt)

    async def get_for_day(
        self, affiliate_id: int, day: date
    ) -> AffiliateAnalyticsSummary | None:
        """Get the summary row of an affiliate for a day."""
        return await self.get_by(affiliate_id=affiliate_id, date=day)
