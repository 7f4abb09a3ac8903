"""
Settlement service.

Releases referrals whose holding period has elapsed into affiliate
balances. Every referral is settled in its own session and transaction;
one failure never blocks or rolls back the others.
"""

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from affiliate_engine.config.constants import (
    AUDIT_SOURCE_SETTLEMENT,
    SETTLEMENT_FAILURE_SAMPLE_SIZE,
    TEMPLATE_COMMISSION_APPROVED,
)
from affiliate_engine.config.settings import settings
from affiliate_engine.models.enums import (
    LedgerEntryType,
    ReferralStatus,
    SystemLogLevel,
)
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository
from affiliate_engine.repositories.ledger_repository import (
    AffiliateLedgerRepository,
)
from affiliate_engine.repositories.notification_repository import (
    NotificationQueueRepository,
)
from affiliate_engine.repositories.order_repository import OrderRepository
from affiliate_engine.repositories.referral_repository import ReferralRepository
from affiliate_engine.services.audit_service import AuditService
from affiliate_engine.utils.datetime_utils import utc_now
from affiliate_engine.utils.decimal_math import to_decimal


class SettlementOutcome(StrEnum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"


@dataclass
class SettlementResult:
    """
    Settlement batch summary.

    Attributes:
        processed: Referrals picked up by the batch
        approved: Released into balances
        rejected: Rejected (affiliate missing or deleted)
        skipped: No longer pending when locked
        failures: ``{"referral_id", "reason"}`` for each failed referral
    """

    processed: int = 0
    approved: int = 0
    rejected: int = 0
    skipped: int = 0
    failures: list[dict] = field(default_factory=list)


class SettlementService:
    """
    Settlement batch runner.

    Owns a session factory rather than a session: each referral gets a
    fresh session so a failed transaction cannot poison the others.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        batch_size: int | None = None,
        concurrency: int | None = None,
    ) -> None:
        self.session_maker = session_maker
        self.batch_size = batch_size or settings.settlement_batch_size
        self.concurrency = concurrency or settings.settlement_concurrency
        self.logger = logger.bind(service=self.__class__.__name__)

    async def run(self) -> SettlementResult:
        """
        Settle one batch of due referrals.

        Never raises for per-referral failures; they are collected in the
        result and summarized in an ERROR system log entry.

        Returns:
            Settlement summary
        """
        now = utc_now()
        async with self.session_maker() as session:
            referral_ids = await ReferralRepository(session).get_due_ids(
                now, self.batch_size
            )

        result = SettlementResult(processed=len(referral_ids))
        if not referral_ids:
            self.logger.info("No referrals due for settlement")
            return result

        semaphore = asyncio.Semaphore(self.concurrency)

        async def settle_bounded(referral_id: int) -> SettlementOutcome:
            async with semaphore:
                return await self.settle_referral(referral_id)

        outcomes = await asyncio.gather(
            *(settle_bounded(referral_id) for referral_id in referral_ids),
            return_exceptions=True,
        )

        for referral_id, outcome in zip(referral_ids, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                reason = str(outcome) or type(outcome).__name__
                self.logger.error(
                    f"Failed to settle referral {referral_id}",
                    extra={"referral_id": referral_id, "error": reason},
                )
                result.failures.append({"referral_id": referral_id, "reason": reason})
            elif outcome == SettlementOutcome.APPROVED:
                result.approved += 1
            elif outcome == SettlementOutcome.REJECTED:
                result.rejected += 1
            else:
                result.skipped += 1

        if result.failures:
            await self._report_failures(result)

        self.logger.info(
            f"Settlement complete: {result.approved} approved, "
            f"{result.rejected} rejected, {result.skipped} skipped, "
            f"{len(result.failures)} failed"
        )
        return result

    async def settle_referral(self, referral_id: int) -> SettlementOutcome:
        """
        Settle one referral in its own transaction.

        The referral row is locked first; a referral that is no longer
        PENDING is left alone. The affiliate row is then locked before
        the balance is touched.

        Args:
            referral_id: Referral ID

        Returns:
            Outcome for this referral
        """
        async with self.session_maker() as session:
            async with session.begin():
                referral_repo = ReferralRepository(session)
                affiliate_repo = AffiliateRepository(session)

                referral = await referral_repo.get_for_update(referral_id)
                if referral is None or referral.status != ReferralStatus.PENDING.value:
                    return SettlementOutcome.SKIPPED

                affiliate = await affiliate_repo.lock_for_balance(referral.affiliate_id)
                if affiliate is None:
                    referral.status = ReferralStatus.REJECTED.value
                    referral.note = (
                        f"Affiliate {referral.affiliate_id} deleted before settlement"
                    )
                    self.logger.warning(
                        f"Referral {referral_id} rejected: affiliate "
                        f"{referral.affiliate_id} missing or deleted",
                        extra={"referral_id": referral_id},
                    )
                    return SettlementOutcome.REJECTED

                amount = to_decimal(referral.commission_amount)
                balance_before, balance_after = await affiliate_repo.apply_balance_change(
                    affiliate, amount, count_as_earnings=True
                )

                referral.status = ReferralStatus.APPROVED.value
                referral.paid_at = utc_now()

                description = (
                    f"MLM Reward Released: #{referral.order_id}"
                    if referral.is_mlm_reward
                    else f"Commission Released: #{referral.order_id}"
                )
                await AffiliateLedgerRepository(session).create(
                    affiliate_id=affiliate.id,
                    type=LedgerEntryType.COMMISSION.value,
                    amount=amount,
                    balance_before=balance_before,
                    balance_after=balance_after,
                    description=description,
                    reference_id=f"REL-{referral.id}",
                )

                owner = affiliate.user
                if owner is not None and owner.email:
                    order = await OrderRepository(session).get_by_id(referral.order_id)
                    await NotificationQueueRepository(session).enqueue(
                        recipient=owner.email,
                        template_slug=TEMPLATE_COMMISSION_APPROVED,
                        user_id=affiliate.user_id,
                        payload={
                            "amount": f"{amount:.2f}",
                            "order_id": referral.order_id,
                            "order_number": order.order_number if order else None,
                            "referral_id": referral.id,
                        },
                    )

        self.logger.debug(
            f"Referral {referral_id} approved",
            extra={"referral_id": referral_id, "amount": str(amount)},
        )
        return SettlementOutcome.APPROVED

    async def _report_failures(self, result: SettlementResult) -> None:
        sample = result.failures[:SETTLEMENT_FAILURE_SAMPLE_SIZE]
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    await AuditService(session).system_log(
                        SystemLogLevel.ERROR,
                        AUDIT_SOURCE_SETTLEMENT,
                        f"Failed to release {len(result.failures)} referrals",
                        {
                            "errors": [f["reason"] for f in sample],
                            "referral_ids": [f["referral_id"] for f in result.failures],
                        },
                    )
        except Exception:
            # The batch result still carries the failures
            self.logger.exception("Could not write settlement failure summary")
