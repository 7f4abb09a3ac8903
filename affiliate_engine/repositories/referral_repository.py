"""
Referral repository.

Data access layer for Referral model.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.enums import ReferralStatus
from affiliate_engine.models.referral import Referral
from affiliate_engine.repositories.base import BaseRepository


class ReferralRepository(BaseRepository[Referral]):
    """Referral repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral repository."""
        super().__init__(Referral, session)

    async def exists_for_order(self, order_id: int) -> bool:
        """
        Check whether any referral exists for an order.

        Args:
            order_id: Order ID

        Returns:
            True if the order has already been processed
        """
        stmt = select(Referral.id).where(Referral.order_id == order_id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_direct_for_order(
        self, order_id: int, for_update: bool = False
    ) -> Referral | None:
        """
        Get the direct (non-MLM) referral of an order.

        Args:
            order_id: Order ID
            for_update: Lock the row

        Returns:
            Direct referral or None
        """
        stmt = (
            select(Referral)
            .where(
                Referral.order_id == order_id,
                Referral.is_mlm_reward.is_(False),
            )
            .order_by(Referral.id)
            .limit(1)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(
                populate_existing=True
            )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_pending_since(
        self, affiliate_id: int, since: datetime
    ) -> int:
        """
        Count PENDING referrals of an affiliate created since a moment.

        Args:
            affiliate_id: Affiliate ID
            since: Window start

        Returns:
            Number of pending referrals in the window
        """
        stmt = select(func.count(Referral.id)).where(
            Referral.affiliate_id == affiliate_id,
            Referral.status == ReferralStatus.PENDING.value,
            Referral.created_at >= since,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_due_ids(self, now: datetime, limit: int) -> list[int]:
        """
        Get IDs of PENDING referrals whose holding period has elapsed.

        Args:
            now: Reference time
            limit: Max number of IDs

        Returns:
            Referral IDs, oldest first
        """
        stmt = (
            select(Referral.id)
            .where(
                Referral.status == ReferralStatus.PENDING.value,
                Referral.available_at <= now,
            )
            .order_by(Referral.created_at, Referral.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_for_affiliate(
        self,
        affiliate_id: int,
        statuses: list[str] | None = None,
        flagged_only: bool = False,
    ) -> int:
        """
        Count referrals of an affiliate.

        Args:
            affiliate_id: Affiliate ID
            statuses: Optional status filter
            flagged_only: Only count flagged referrals

        Returns:
            Count of matching referrals
        """
        stmt = select(func.count(Referral.id)).where(
            Referral.affiliate_id == affiliate_id
        )
        if statuses:
            stmt = stmt.where(Referral.status.in_(statuses))
        if flagged_only:
            stmt = stmt.where(Referral.is_flagged.is_(True))

        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_recent_created_at(
        self, affiliate_id: int, limit: int
    ) -> list[datetime]:
        """
        Get creation times of an affiliate's latest referrals.

        Args:
            affiliate_id: Affiliate ID
            limit: Number of referrals

        Returns:
            Creation times, newest first
        """
        stmt = (
            select(Referral.created_at)
            .where(Referral.affiliate_id == affiliate_id)
            .order_by(Referral.created_at.desc(), Referral.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
