"""
Refund processor.

Claws back the commission of refunded order lines from the direct
referral. Pending commissions are reduced; commissions already released
are taken back from the affiliate balance through an ADJUSTMENT ledger
entry.
"""

import copy
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.enums import LedgerEntryType, ReferralStatus
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository
from affiliate_engine.repositories.ledger_repository import (
    AffiliateLedgerRepository,
)
from affiliate_engine.repositories.referral_repository import ReferralRepository
from affiliate_engine.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)
from affiliate_engine.utils.decimal_math import (
    ZERO,
    add,
    is_zero,
    lte,
    quantize_money,
    sub,
    to_decimal,
)


class RefundOutcome(StrEnum):
    NO_REFERRAL_FOUND = "NO_REFERRAL_FOUND"
    ALREADY_REJECTED = "ALREADY_REJECTED"
    NO_COMMISSION_TO_REFUND = "NO_COMMISSION_TO_REFUND"


@dataclass
class RefundResult:
    """Result of a refund clawback."""

    success: bool
    deduction: Decimal = ZERO
    error: str | None = None
    message: str | None = None


class RefundProcessor(BaseService):
    """Commission clawback for refunded order lines."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.referral_repo = ReferralRepository(session)
        self.affiliate_repo = AffiliateRepository(session)
        self.ledger_repo = AffiliateLedgerRepository(session)

    @log_operation
    @transaction
    async def process_refund(
        self, order_id: int, refunded_item_ids: list[int]
    ) -> RefundResult:
        """
        Claw back commission for refunded lines of an order.

        Lines already marked refunded are ignored, so repeating a refund
        is harmless.

        Args:
            order_id: Order ID
            refunded_item_ids: Refunded order item IDs

        Returns:
            Refund result with the deducted amount
        """
        referral = await self.referral_repo.get_direct_for_order(
            order_id, for_update=True
        )
        if referral is None:
            return RefundResult(
                success=False, error=RefundOutcome.NO_REFERRAL_FOUND.value
            )
        if referral.status == ReferralStatus.REJECTED.value:
            return RefundResult(
                success=True, message=RefundOutcome.ALREADY_REJECTED.value
            )

        log = copy.deepcopy(referral.calculation_log or {})
        refunded = set(refunded_item_ids)
        deduction = ZERO
        for entry in log.get("items_breakdown", []):
            if entry.get("order_item_id") in refunded and not entry.get("is_refunded"):
                deduction = add(deduction, to_decimal(entry.get("commission")))
                entry["is_refunded"] = True
        deduction = quantize_money(deduction)

        if is_zero(deduction):
            return RefundResult(
                success=True, message=RefundOutcome.NO_COMMISSION_TO_REFUND.value
            )

        if referral.status == ReferralStatus.PENDING.value:
            remaining = sub(referral.commission_amount, deduction)
            if lte(remaining, ZERO):
                referral.status = ReferralStatus.REJECTED.value
                referral.note = f"All commissionable lines of order {order_id} refunded"
            else:
                referral.commission_amount = remaining
        else:
            await self._claw_back(referral.affiliate_id, order_id, deduction, log)

        referral.calculation_log = log
        await self.session.flush()

        self.logger.info(
            f"Refund processed for order {order_id}",
            extra={
                "order_id": order_id,
                "referral_id": referral.id,
                "deduction": str(deduction),
                "status": referral.status,
            },
        )
        return RefundResult(success=True, deduction=deduction)

    async def _claw_back(
        self,
        affiliate_id: int,
        order_id: int,
        deduction: Decimal,
        log: dict,
    ) -> None:
        affiliate = await self.affiliate_repo.lock_for_balance(affiliate_id)
        if affiliate is None:
            self.logger.warning(
                f"Clawback skipped: affiliate {affiliate_id} missing",
                extra={"order_id": order_id, "deduction": str(deduction)},
            )
            log["uncollected_clawback"] = str(deduction)
            return

        # Balance never goes negative; the shortfall is recorded on the referral
        collectable = min(deduction, to_decimal(affiliate.balance))
        if collectable < deduction:
            log["uncollected_clawback"] = str(deduction - collectable)
            self.logger.warning(
                f"Clawback for order {order_id} exceeds balance",
                extra={
                    "affiliate_id": affiliate_id,
                    "deduction": str(deduction),
                    "collected": str(collectable),
                },
            )
        if is_zero(collectable):
            return

        balance_before, balance_after = await self.affiliate_repo.apply_balance_change(
            affiliate, -collectable, count_as_earnings=False
        )
        await self.ledger_repo.create(
            affiliate_id=affiliate_id,
            type=LedgerEntryType.ADJUSTMENT.value,
            amount=-collectable,
            balance_before=balance_before,
            balance_after=balance_after,
            description=f"Clawback for Refunded Items: Order #{order_id}",
            reference_id=f"REFUND-{order_id}",
        )
