"""
Affiliate repositories.

Data access for affiliate accounts, tiers and tracked clicks.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import distinct, select
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.affiliate import (
    AffiliateAccount,
    AffiliateClick,
    AffiliateTier,
)
from affiliate_engine.models.enums import AffiliateStatus
from affiliate_engine.repositories.base import BaseRepository


class AffiliateRepository(BaseRepository[AffiliateAccount]):
    """Affiliate account repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize affiliate repository."""
        super().__init__(AffiliateAccount, session)

    async def get_active(self, affiliate_id: int) -> AffiliateAccount | None:
        """
        Get affiliate if it is ACTIVE and not soft-deleted.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            Affiliate or None
        """
        stmt = select(AffiliateAccount).where(
            AffiliateAccount.id == affiliate_id,
            AffiliateAccount.deleted_at.is_(None),
            AffiliateAccount.status == AffiliateStatus.ACTIVE.value,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def lock_for_balance(
        self, affiliate_id: int
    ) -> AffiliateAccount | None:
        """
        Lock a non-deleted affiliate row before a balance mutation.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            Locked affiliate, or None if missing or soft-deleted
        """
        affiliate = await self.get_for_update(affiliate_id)
        if affiliate is None or affiliate.deleted_at is not None:
            return None
        return affiliate

    async def apply_balance_change(
        self,
        affiliate: AffiliateAccount,
        amount: Decimal,
        count_as_earnings: bool,
    ) -> tuple[Decimal, Decimal]:
        """
        Apply a signed amount to a locked affiliate's balance.

        Caller must hold the row lock (see ``lock_for_balance``).

        Args:
            affiliate: Locked affiliate
            amount: Signed amount
            count_as_earnings: Also add the amount to lifetime earnings

        Returns:
            Tuple of (balance_before, balance_after)
        """
        balance_before = affiliate.balance or Decimal("0")
        balance_after = balance_before + amount

        affiliate.balance = balance_after
        if count_as_earnings:
            affiliate.total_earnings = (
                affiliate.total_earnings or Decimal("0")
            ) + amount

        await self.session.flush()
        return balance_before, balance_after

    async def find_tier_candidates(
        self, tier: AffiliateTier
    ) -> list[AffiliateAccount]:
        """
        Get active affiliates eligible by earnings for a tier.

        Args:
            tier: Target tier

        Returns:
            Active, non-deleted affiliates not already at the tier whose
            lifetime earnings reach the tier threshold
        """
        stmt = (
            select(AffiliateAccount)
            .where(
                AffiliateAccount.deleted_at.is_(None),
                AffiliateAccount.status == AffiliateStatus.ACTIVE.value,
                (AffiliateAccount.tier_id.is_(None))
                | (AffiliateAccount.tier_id != tier.id),
                AffiliateAccount.total_earnings >= tier.min_sales_amount,
            )
            .order_by(AffiliateAccount.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class AffiliateTierRepository(BaseRepository[AffiliateTier]):
    """Affiliate tier repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize tier repository."""
        super().__init__(AffiliateTier, session)

    async def get_ranked(self) -> list[AffiliateTier]:
        """Get tiers ordered by min_sales_amount, highest first."""
        stmt = select(AffiliateTier).order_by(
            AffiliateTier.min_sales_amount.desc(), AffiliateTier.id
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class AffiliateClickRepository(BaseRepository[AffiliateClick]):
    """Tracked click repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize click repository."""
        super().__init__(AffiliateClick, session)

    async def has_ip_since(
        self, affiliate_id: int, ip_address: str, since: datetime
    ) -> bool:
        """
        Check whether a click from an IP was recorded for an affiliate.

        Args:
            affiliate_id: Affiliate ID
            ip_address: IP address to match exactly
            since: Only clicks created at or after this moment

        Returns:
            True if at least one click matches
        """
        stmt = (
            select(AffiliateClick.id)
            .where(
                AffiliateClick.affiliate_id == affiliate_id,
                AffiliateClick.ip_address == ip_address,
                AffiliateClick.created_at >= since,
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def count_for_affiliate(self, affiliate_id: int) -> int:
        """Count all clicks of an affiliate."""
        return await self.count(affiliate_id=affiliate_id)

    async def get_active_affiliate_ids(self, since: datetime) -> list[int]:
        """
        Get IDs of affiliates with clicks since a moment.

        Args:
            since: Window start

        Returns:
            Distinct affiliate IDs, ascending
        """
        stmt = (
            select(distinct(AffiliateClick.affiliate_id))
            .where(AffiliateClick.created_at >= since)
            .order_by(AffiliateClick.affiliate_id)
        )
        result = await self.session.execute(stmt)
        return [row[0] for row in result.all()]

