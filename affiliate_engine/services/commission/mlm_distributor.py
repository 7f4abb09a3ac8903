"""
MLM distributor.

Creates upline (sponsor chain) rewards for an order inside the caller's
transaction.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.enums import CommissionType, MLMBasis, ReferralStatus
from affiliate_engine.models.referral import Referral
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository
from affiliate_engine.repositories.referral_repository import ReferralRepository
from affiliate_engine.services.base_service import BaseService
from affiliate_engine.services.config_provider import MLMConfig
from affiliate_engine.utils.decimal_math import (
    ZERO,
    lte,
    percent,
    quantize_money,
    to_decimal,
)


class MLMDistributor(BaseService):
    """
    Upline reward distributor.

    Level 1 is the direct affiliate's sponsor, level 2 the sponsor's
    sponsor, and so on up to ``max_levels``. The walk stops at the first
    missing, inactive or deleted sponsor and on a cycle.
    """

    def __init__(self, session: AsyncSession, config: MLMConfig) -> None:
        super().__init__(session)
        self.config = config
        self.affiliate_repo = AffiliateRepository(session)
        self.referral_repo = ReferralRepository(session)

    def base_amount(
        self,
        sales_amount: Decimal,
        profit_amount: Decimal,
        cv_amount: Decimal,
    ) -> Decimal:
        """Amount the level rates apply to, per commission basis."""
        if self.config.commission_basis == MLMBasis.PROFIT:
            return to_decimal(profit_amount)
        if self.config.commission_basis == MLMBasis.CV:
            return to_decimal(cv_amount)
        return to_decimal(sales_amount)

    async def distribute(
        self,
        order_id: int,
        direct_affiliate_id: int,
        sales_amount: Decimal,
        profit_amount: Decimal,
        cv_amount: Decimal,
        available_at: datetime,
    ) -> list[Referral]:
        """
        Create PENDING upline rewards for an order.

        Args:
            order_id: Source order
            direct_affiliate_id: Affiliate credited with the sale
            sales_amount: Order sales amount (SALES basis)
            profit_amount: Order profit (PROFIT basis)
            cv_amount: Order commission value (CV basis)
            available_at: Release time of the direct referral

        Returns:
            Created upline referrals (possibly empty)
        """
        if not self.config.is_enabled:
            return []

        base = self.base_amount(sales_amount, profit_amount, cv_amount)
        if lte(base, ZERO):
            return []

        current = await self.affiliate_repo.get_by_id(direct_affiliate_id)
        if current is None:
            return []

        visited = {direct_affiliate_id}
        created: list[Referral] = []

        for level in range(1, self.config.max_levels + 1):
            sponsor_id = current.parent_id
            if sponsor_id is None:
                break

            if sponsor_id in visited:
                self.logger.warning(
                    f"Sponsor cycle detected at affiliate {sponsor_id}",
                    extra={
                        "order_id": order_id,
                        "direct_affiliate_id": direct_affiliate_id,
                        "level": level,
                    },
                )
                break
            visited.add(sponsor_id)

            sponsor = await self.affiliate_repo.get_by_id(sponsor_id)
            if sponsor is None or not sponsor.is_active:
                self.logger.debug(
                    f"Upline stops at level {level}: sponsor {sponsor_id} unavailable",
                    extra={"order_id": order_id},
                )
                break

            current = sponsor
            rate = self.config.rate_for(level)
            if lte(rate, ZERO):
                continue

            amount = quantize_money(percent(base, rate))
            if lte(amount, ZERO):
                continue

            referral = await self.referral_repo.create(
                affiliate_id=sponsor.id,
                order_id=order_id,
                total_order_amount=to_decimal(sales_amount),
                net_order_amount=base,
                commission_amount=amount,
                commission_rate=rate,
                commission_type=CommissionType.PERCENTAGE.value,
                status=ReferralStatus.PENDING.value,
                available_at=available_at,
                is_mlm_reward=True,
                mlm_level=level,
                from_downline_id=direct_affiliate_id,
                calculation_log={
                    "type": "MLM_COMMISSION",
                    "level": level,
                    "upline_affiliate_id": sponsor.id,
                    "source_affiliate_id": direct_affiliate_id,
                    "basis": self.config.commission_basis.value,
                    "base": str(base),
                    "rate": str(rate),
                },
            )
            created.append(referral)

        if created:
            self.logger.info(
                f"Distributed {len(created)} upline rewards for order {order_id}",
                extra={"order_id": order_id, "direct_affiliate_id": direct_affiliate_id},
            )
        return created
