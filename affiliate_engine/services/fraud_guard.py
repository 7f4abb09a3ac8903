"""
Fraud guard.

Read-only checks used at order time (self-referral, velocity) and the
risk score recomputation run nightly.
"""

from dataclasses import dataclass, field
from datetime import timedelta

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from affiliate_engine.config.constants import (
    AUDIT_SOURCE_FRAUD,
    AUDIT_SOURCE_FRAUD_DETECTOR,
    RISK_CONVERSION_MIN_CLICKS,
    RISK_CONVERSION_RULE_POINTS,
    RISK_FLAGGED_REFERRAL_POINTS,
    RISK_RAPID_TRANSACTIONS_COUNT,
    RISK_RAPID_TRANSACTIONS_POINTS,
    RISK_RAPID_TRANSACTIONS_WINDOW_MINUTES,
    RISK_SCORE_MAX,
)
from affiliate_engine.config.settings import settings
from affiliate_engine.models.enums import (
    AffiliateStatus,
    FraudRuleType,
    SystemLogLevel,
)
from affiliate_engine.repositories.affiliate_repository import (
    AffiliateClickRepository,
    AffiliateRepository,
)
from affiliate_engine.repositories.referral_repository import ReferralRepository
from affiliate_engine.services.audit_service import AuditService
from affiliate_engine.services.base_service import BaseService
from affiliate_engine.services.config_provider import ConfigProvider
from affiliate_engine.utils.datetime_utils import utc_now
from affiliate_engine.utils.decimal_math import HUNDRED, ZERO, div, gt, mul


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


class FraudGuard(BaseService):
    """
    Fraud checks for one session.

    ``detect_self_referral`` and ``check_velocity`` never write.
    ``update_risk_score`` writes to the session; the caller commits.
    """

    def __init__(
        self,
        session: AsyncSession,
        config_provider: ConfigProvider | None = None,
    ) -> None:
        super().__init__(session)
        self.config_provider = config_provider or ConfigProvider()
        self.affiliate_repo = AffiliateRepository(session)
        self.click_repo = AffiliateClickRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.audit = AuditService(session)

    async def detect_self_referral(
        self,
        affiliate_id: int,
        buyer_email: str | None,
        buyer_ip: str | None,
    ) -> bool:
        """
        Check whether the buyer looks like the affiliate.

        Matches on the affiliate owner's email (trimmed, case-insensitive)
        or on an affiliate click from the buyer IP within the configured
        window.

        Args:
            affiliate_id: Affiliate ID
            buyer_email: Buyer email
            buyer_ip: Buyer IP at checkout

        Returns:
            True if the order looks like a self-referral
        """
        affiliate = await self.affiliate_repo.get_by_id(affiliate_id)
        if affiliate is None:
            return False

        owner_email = normalize_email(affiliate.user.email if affiliate.user else None)
        if owner_email and owner_email == normalize_email(buyer_email):
            return True

        if not buyer_ip:
            return False

        since = utc_now() - timedelta(days=settings.self_referral_ip_window_days)
        return await self.click_repo.has_ip_since(affiliate_id, buyer_ip, since)

    async def check_velocity(self, affiliate_id: int) -> bool:
        """
        Check whether the affiliate converts suspiciously fast.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            True if the PENDING referrals created inside the velocity
            window reach the configured maximum
        """
        since = utc_now() - timedelta(minutes=settings.velocity_window_minutes)
        recent = await self.referral_repo.count_pending_since(affiliate_id, since)
        return recent >= settings.velocity_max_conversions

    async def _alert(self, affiliate_id: int, alert: str, details: str) -> None:
        await self.audit.system_log(
            SystemLogLevel.WARN,
            AUDIT_SOURCE_FRAUD_DETECTOR,
            f"Risk Alert: {alert}",
            {"affiliate_id": affiliate_id, "details": details},
        )

    async def update_risk_score(self, affiliate_id: int) -> int:
        """
        Recompute and persist an affiliate's risk score.

        Score components:
            - 30 per active CONVERSION_RATE_LIMIT rule exceeded (only
              once the affiliate has more than 50 clicks)
            - 15 per flagged referral
            - 40 if the 5 latest referrals were created within 5 minutes
        The score is capped at 100. Reaching the auto-suspend threshold
        suspends the account.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            New risk score
        """
        snapshot = await self.config_provider.get_snapshot(self.session)
        score = 0

        referral_count = await self.referral_repo.count_for_affiliate(affiliate_id)
        click_count = await self.click_repo.count_for_affiliate(affiliate_id)
        flagged_count = await self.referral_repo.count_for_affiliate(
            affiliate_id, flagged_only=True
        )

        conversion_rate = (
            mul(div(referral_count, click_count), HUNDRED) if click_count > 0 else ZERO
        )

        if click_count > RISK_CONVERSION_MIN_CLICKS:
            for rule in snapshot.fraud_rules_of(FraudRuleType.CONVERSION_RATE_LIMIT):
                if gt(conversion_rate, rule.value):
                    score += RISK_CONVERSION_RULE_POINTS
                    await self._alert(
                        affiliate_id,
                        "SUSPICIOUS_CONVERSION",
                        f"Rate {conversion_rate:.2f}% > {rule.value}%",
                    )

        score += flagged_count * RISK_FLAGGED_REFERRAL_POINTS

        recent = await self.referral_repo.get_recent_created_at(
            affiliate_id, RISK_RAPID_TRANSACTIONS_COUNT
        )
        if len(recent) == RISK_RAPID_TRANSACTIONS_COUNT:
            span = recent[0] - recent[-1]
            if span < timedelta(minutes=RISK_RAPID_TRANSACTIONS_WINDOW_MINUTES):
                score += RISK_RAPID_TRANSACTIONS_POINTS
                await self._alert(
                    affiliate_id,
                    "RAPID_TRANSACTIONS",
                    f"{RISK_RAPID_TRANSACTIONS_COUNT} orders in < "
                    f"{RISK_RAPID_TRANSACTIONS_WINDOW_MINUTES} mins",
                )

        score = min(score, RISK_SCORE_MAX)
        affiliate = await self.affiliate_repo.get_by_id(affiliate_id)
        if affiliate is None:
            return score

        affiliate.risk_score = score

        if score >= settings.risk_auto_suspend_score and affiliate.status not in (
            AffiliateStatus.SUSPENDED.value,
            AffiliateStatus.BANNED.value,
        ):
            affiliate.status = AffiliateStatus.SUSPENDED.value
            await self.audit.system_log(
                SystemLogLevel.WARN,
                AUDIT_SOURCE_FRAUD,
                f"Auto-suspended affiliate {affiliate_id}",
                {"score": score},
            )

        await self.session.flush()
        return score


@dataclass
class RiskAnalysisResult:
    """Outcome of a risk analysis run."""

    evaluated: int = 0
    suspended: int = 0
    failures: list[dict] = field(default_factory=list)


async def run_risk_analysis(
    session_maker: async_sessionmaker[AsyncSession],
    config_provider: ConfigProvider | None = None,
) -> RiskAnalysisResult:
    """
    Recompute risk scores of affiliates with recent click activity.

    Each affiliate is scored in its own transaction; a failure is logged
    and the loop continues.

    Args:
        session_maker: Session factory
        config_provider: Shared configuration provider

    Returns:
        Run summary
    """
    config_provider = config_provider or ConfigProvider()
    result = RiskAnalysisResult()
    since = utc_now() - timedelta(hours=settings.risk_activity_window_hours)

    async with session_maker() as session:
        affiliate_ids = await AffiliateClickRepository(
            session
        ).get_active_affiliate_ids(since)

    for affiliate_id in affiliate_ids:
        try:
            async with session_maker() as session:
                async with session.begin():
                    score = await FraudGuard(
                        session, config_provider
                    ).update_risk_score(affiliate_id)
        except Exception as e:
            logger.exception(
                f"Risk analysis failed for affiliate {affiliate_id}",
                extra={"affiliate_id": affiliate_id},
            )
            result.failures.append({"affiliate_id": affiliate_id, "reason": str(e)})
            continue

        result.evaluated += 1
        if score >= settings.risk_auto_suspend_score:
            result.suspended += 1

    logger.info(
        f"Risk analysis complete: {result.evaluated} evaluated, "
        f"{result.suspended} at or above suspend score, "
        f"{len(result.failures)} failed"
    )
    return result
