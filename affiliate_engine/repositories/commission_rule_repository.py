"""
Commission rule repositories.

Dynamic rules and product rate overrides.
"""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.commission_rule import (
    CommissionRule,
    ProductCommissionRate,
)
from affiliate_engine.repositories.base import BaseRepository


class CommissionRuleRepository(BaseRepository[CommissionRule]):
    """Dynamic commission rule repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize commission rule repository."""
        super().__init__(CommissionRule, session)

    async def get_active_ordered(self) -> list[CommissionRule]:
        """Get active rules by ascending priority (ties by ID)."""
        stmt = (
            select(CommissionRule)
            .where(CommissionRule.is_active.is_(True))
            .order_by(CommissionRule.priority, CommissionRule.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class ProductRateRepository(BaseRepository[ProductCommissionRate]):
    """Product rate override repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize product rate repository."""
        super().__init__(ProductCommissionRate, session)

    async def get_for_products(
        self,
        product_ids: list[int],
        affiliate_id: int,
        group_id: int | None,
    ) -> list[ProductCommissionRate]:
        """
        Get overrides relevant to an affiliate for a set of products.

        Args:
            product_ids: Products on the order
            affiliate_id: Affiliate ID
            group_id: Affiliate's group ID (if any)

        Returns:
            Affiliate-scoped and group-scoped overrides
        """
        if not product_ids:
            return []

        scope = [ProductCommissionRate.affiliate_id == affiliate_id]
        if group_id is not None:
            scope.append(ProductCommissionRate.group_id == group_id)

        stmt = (
            select(ProductCommissionRate)
            .where(
                ProductCommissionRate.product_id.in_(product_ids),
                or_(*scope),
            )
            .order_by(ProductCommissionRate.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
