"""
Tier upgrade service.

Promotes affiliates whose lifetime earnings and settled sales count reach
a higher tier's thresholds.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from affiliate_engine.config.constants import TEMPLATE_TIER_UPGRADED
from affiliate_engine.models.affiliate import AffiliateTier
from affiliate_engine.models.enums import ReferralStatus
from affiliate_engine.repositories.affiliate_repository import (
    AffiliateRepository,
    AffiliateTierRepository,
)
from affiliate_engine.repositories.notification_repository import (
    NotificationQueueRepository,
)
from affiliate_engine.repositories.referral_repository import ReferralRepository
from affiliate_engine.utils.decimal_math import gte, to_decimal

SETTLED_STATUSES = [ReferralStatus.APPROVED.value, ReferralStatus.PAID.value]


@dataclass
class TierUpgradeResult:
    """Tier evaluation summary."""

    evaluated: int = 0
    promoted: int = 0
    failures: list[dict] = field(default_factory=list)


@dataclass(frozen=True)
class _TierInfo:
    id: int
    name: str
    min_sales_amount: Decimal
    min_sales_count: int

    @classmethod
    def from_model(cls, tier: AffiliateTier) -> "_TierInfo":
        return cls(
            id=tier.id,
            name=tier.name,
            min_sales_amount=to_decimal(tier.min_sales_amount),
            min_sales_count=tier.min_sales_count,
        )


class TierUpgradeService:
    """Tier upgrade evaluator."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker
        self.logger = logger.bind(service=self.__class__.__name__)

    async def run(self) -> TierUpgradeResult:
        """
        Evaluate every tier, highest threshold first.

        Each promotion commits on its own; a failing affiliate is logged
        and skipped.

        Returns:
            Evaluation summary
        """
        result = TierUpgradeResult()

        async with self.session_maker() as session:
            tier_repo = AffiliateTierRepository(session)
            affiliate_repo = AffiliateRepository(session)
            tiers = await tier_repo.get_ranked()
            ranks = {tier.id: to_decimal(tier.min_sales_amount) for tier in tiers}
            candidates_by_tier = [
                (
                    _TierInfo.from_model(tier),
                    [a.id for a in await affiliate_repo.find_tier_candidates(tier)],
                )
                for tier in tiers
            ]

        for tier, candidate_ids in candidates_by_tier:
            for affiliate_id in candidate_ids:
                result.evaluated += 1
                try:
                    promoted = await self.evaluate(affiliate_id, tier, ranks)
                except Exception as e:
                    self.logger.exception(
                        f"Tier evaluation failed for affiliate {affiliate_id}",
                        extra={"affiliate_id": affiliate_id, "tier_id": tier.id},
                    )
                    result.failures.append(
                        {"affiliate_id": affiliate_id, "reason": str(e)}
                    )
                    continue
                if promoted:
                    result.promoted += 1

        self.logger.info(
            f"Tier upgrades complete: {result.promoted} promoted of "
            f"{result.evaluated} evaluated, {len(result.failures)} failed"
        )
        return result

    async def evaluate(
        self,
        affiliate_id: int,
        tier: _TierInfo,
        ranks: dict[int, Decimal],
    ) -> bool:
        """
        Promote one affiliate to a tier if still eligible.

        Args:
            affiliate_id: Affiliate ID
            tier: Target tier
            ranks: min_sales_amount by tier ID

        Returns:
            True if promoted
        """
        async with self.session_maker() as session:
            async with session.begin():
                affiliate = await AffiliateRepository(session).get_for_update(
                    affiliate_id
                )
                if affiliate is None or not affiliate.is_active:
                    return False
                if affiliate.tier_id == tier.id:
                    return False

                # Never demote: the current tier must rank strictly lower
                if affiliate.tier_id is not None:
                    current_rank = ranks.get(affiliate.tier_id)
                    if current_rank is not None and gte(current_rank, tier.min_sales_amount):
                        return False

                if not gte(affiliate.total_earnings, tier.min_sales_amount):
                    return False

                settled = await ReferralRepository(session).count_for_affiliate(
                    affiliate_id, statuses=SETTLED_STATUSES
                )
                if settled < tier.min_sales_count:
                    return False

                affiliate.tier_id = tier.id

                owner = affiliate.user
                if owner is not None and owner.email:
                    await NotificationQueueRepository(session).enqueue(
                        recipient=owner.email,
                        template_slug=TEMPLATE_TIER_UPGRADED,
                        user_id=affiliate.user_id,
                        payload={"tier_name": tier.name},
                    )

        self.logger.info(
            "Affiliate {} promoted to tier {}",
            affiliate_id,
            tier.name,
            extra={"affiliate_id": affiliate_id, "tier_id": tier.id},
        )
        return True
