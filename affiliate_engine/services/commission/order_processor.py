"""
Order processor.

Turns one completed order into a pending commission: idempotency and
eligibility gates, fraud gate, per-line resolution, then one atomic unit
of work (direct referral, lifetime link, upline rewards, analytics,
notification).
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.config.constants import (
    AUDIT_SOURCE_ENGINE,
    TEMPLATE_REFERRAL_PENDING,
)
from affiliate_engine.models.affiliate import AffiliateAccount
from affiliate_engine.models.enums import (
    AttributionSource,
    CommissionType,
    CustomerType,
    ReferralStatus,
    SystemLogLevel,
)
from affiliate_engine.models.order import Order
from affiliate_engine.models.referral import Referral
from affiliate_engine.repositories.affiliate_repository import AffiliateRepository
from affiliate_engine.repositories.analytics_repository import AnalyticsRepository
from affiliate_engine.repositories.commission_rule_repository import (
    ProductRateRepository,
)
from affiliate_engine.repositories.notification_repository import (
    NotificationQueueRepository,
)
from affiliate_engine.repositories.order_repository import (
    CustomerRepository,
    OrderRepository,
)
from affiliate_engine.repositories.referral_repository import ReferralRepository
from affiliate_engine.services.audit_service import AuditService
from affiliate_engine.services.base_service import BaseService, transaction
from affiliate_engine.services.commission.mlm_distributor import MLMDistributor
from affiliate_engine.services.commission.resolver import (
    AffiliateRates,
    CommissionBreakdown,
    CommissionResolver,
    LineInput,
    RateOverride,
)
from affiliate_engine.services.config_provider import ConfigProvider, ConfigSnapshot
from affiliate_engine.services.fraud_guard import FraudGuard
from affiliate_engine.utils.datetime_utils import add_days, utc_now, utc_today
from affiliate_engine.utils.decimal_math import ZERO, add, is_zero, to_decimal


class ProcessError(StrEnum):
    """Terminal outcomes of order processing."""

    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    NO_AFFILIATE = "NO_AFFILIATE"
    AFFILIATE_INACTIVE = "AFFILIATE_INACTIVE"
    PROGRAM_DISABLED = "PROGRAM_DISABLED"
    SELF_REFERRAL_BLOCKED = "SELF_REFERRAL_BLOCKED"
    VELOCITY_BLOCKED = "VELOCITY_BLOCKED"


ZERO_COMMISSION_IGNORED = "ZERO_COMMISSION_IGNORED"


@dataclass
class ProcessResult:
    """
    Result of processing one order.

    Attributes:
        success: True when a referral was created or the order was
            skipped as an informational no-op
        commission: Direct commission (cents)
        error: ProcessError code on failure
        message: Informational code (ZERO_COMMISSION_IGNORED)
        referral_id: Created direct referral
        mlm_rewards: Number of upline rewards created
    """

    success: bool
    commission: Decimal | None = None
    error: str | None = None
    message: str | None = None
    referral_id: int | None = None
    mlm_rewards: int = 0

    @classmethod
    def failed(cls, error: ProcessError) -> "ProcessResult":
        return cls(success=False, error=error.value)


class OrderProcessor(BaseService):
    """Creates pending commissions for completed orders."""

    def __init__(
        self,
        session: AsyncSession,
        config_provider: ConfigProvider | None = None,
    ) -> None:
        super().__init__(session)
        self.config_provider = config_provider or ConfigProvider()
        self.order_repo = OrderRepository(session)
        self.customer_repo = CustomerRepository(session)
        self.affiliate_repo = AffiliateRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.product_rate_repo = ProductRateRepository(session)
        self.analytics_repo = AnalyticsRepository(session)
        self.notification_repo = NotificationQueueRepository(session)
        self.fraud_guard = FraudGuard(session, self.config_provider)
        self.audit = AuditService(session)

    async def process_order(self, order_id: int) -> ProcessResult:
        """
        Process a completed order.

        Policy no-ops and fraud rejections are returned as results;
        infrastructure errors propagate.

        Args:
            order_id: Order ID

        Returns:
            Process result
        """
        order = await self.order_repo.get_with_items(order_id)
        if order is None:
            self.logger.debug(f"Order {order_id} not found")
            return ProcessResult.failed(ProcessError.ORDER_NOT_FOUND)

        if await self.referral_repo.exists_for_order(order_id):
            self.logger.info(f"Order {order_id} already processed")
            return ProcessResult.failed(ProcessError.ALREADY_PROCESSED)

        affiliate_id, attribution = self.resolve_attribution(order)
        if affiliate_id is None:
            return ProcessResult.failed(ProcessError.NO_AFFILIATE)

        affiliate = await self.affiliate_repo.get_active(affiliate_id)
        if affiliate is None:
            self.logger.info(
                f"Affiliate {affiliate_id} inactive, order {order_id} ignored",
                extra={"order_id": order_id, "affiliate_id": affiliate_id},
            )
            return ProcessResult.failed(ProcessError.AFFILIATE_INACTIVE)

        snapshot = await self.config_provider.get_snapshot(self.session)
        if not snapshot.program.is_active:
            return ProcessResult.failed(ProcessError.PROGRAM_DISABLED)

        rejection = await self._fraud_gate(order, affiliate, snapshot)
        if rejection is not None:
            return ProcessResult.failed(rejection)

        breakdown = await self.calculate(order, affiliate, snapshot)

        if is_zero(breakdown.total) and not snapshot.program.zero_value_referrals:
            self.logger.debug(
                f"Zero commission for order {order_id}, skipped",
                extra={"order_id": order_id, "affiliate_id": affiliate.id},
            )
            return ProcessResult(success=True, message=ZERO_COMMISSION_IGNORED)

        try:
            referral, mlm_rewards = await self._persist(
                order, affiliate, attribution, breakdown, snapshot
            )
        except IntegrityError:
            if await self.referral_repo.exists_for_order(order_id):
                self.logger.info(
                    f"Order {order_id} processed concurrently",
                    extra={"order_id": order_id},
                )
                return ProcessResult.failed(ProcessError.ALREADY_PROCESSED)
            raise

        self.logger.info(
            "Referral created for order {}",
            order.order_number,
            extra={
                "order_id": order_id,
                "affiliate_id": affiliate.id,
                "commission": str(breakdown.total),
                "attribution": attribution.value,
            },
        )
        return ProcessResult(
            success=True,
            commission=breakdown.total,
            referral_id=referral.id,
            mlm_rewards=mlm_rewards,
        )

    def resolve_attribution(
        self, order: Order
    ) -> tuple[int | None, AttributionSource]:
        """
        Pick the affiliate credited with an order.

        Coupon ownership wins over the tracking cookie, which wins over
        the buyer's lifetime link.

        Args:
            order: Order with buyer loaded

        Returns:
            Tuple of (affiliate_id or None, attribution source)
        """
        if order.coupon_affiliate_id is not None:
            return order.coupon_affiliate_id, AttributionSource.COUPON
        if order.affiliate_id is not None:
            return order.affiliate_id, AttributionSource.COOKIE

        buyer = order.user
        if buyer is not None and buyer.deleted_at is None:
            if buyer.referred_by_affiliate_id is not None:
                return buyer.referred_by_affiliate_id, AttributionSource.LIFETIME

        return None, AttributionSource.COOKIE

    async def classify_customer(self, order: Order) -> CustomerType:
        """
        NEW when the buyer has no earlier orders; guests are NEW.

        Earlier orders are the buyer's non-deleted orders created strictly
        before this one.
        """
        if order.user_id is None:
            return CustomerType.NEW

        prior = await self.order_repo.count_prior_orders(
            order.user_id, order.id, order.created_at
        )
        return CustomerType.NEW if prior == 0 else CustomerType.RETURNING

    async def _fraud_gate(
        self,
        order: Order,
        affiliate: AffiliateAccount,
        snapshot: ConfigSnapshot,
    ) -> ProcessError | None:
        buyer_email = order.buyer_email
        if not buyer_email:
            return None

        is_self = await self.fraud_guard.detect_self_referral(
            affiliate.id, buyer_email, order.ip_address
        )
        is_high_velocity = await self.fraud_guard.check_velocity(affiliate.id)

        if is_high_velocity:
            reason = ProcessError.VELOCITY_BLOCKED
        elif is_self and not snapshot.program.allow_self_referral:
            reason = ProcessError.SELF_REFERRAL_BLOCKED
        else:
            return None

        await self.audit.system_log(
            SystemLogLevel.WARN,
            AUDIT_SOURCE_ENGINE,
            "Commission Blocked: Fraud Rules",
            {
                "order": order.order_number,
                "order_id": order.id,
                "affiliate_id": affiliate.id,
                "reason": reason.value,
            },
        )
        await self.session.commit()
        return reason

    async def calculate(
        self,
        order: Order,
        affiliate: AffiliateAccount,
        snapshot: ConfigSnapshot,
    ) -> CommissionBreakdown:
        """
        Compute the commission breakdown of an order for an affiliate.

        Args:
            order: Order with items loaded
            affiliate: Credited affiliate (group and tier loaded)
            snapshot: Configuration snapshot

        Returns:
            Commission breakdown
        """
        lines = [LineInput.from_item(item) for item in order.items]
        product_ids = sorted(
            {line.product_id for line in lines if line.product_id is not None}
        )

        user_overrides: dict[int, RateOverride] = {}
        group_overrides: dict[int, RateOverride] = {}
        for row in await self.product_rate_repo.get_for_products(
            product_ids, affiliate.id, affiliate.group_id
        ):
            if row.affiliate_id == affiliate.id:
                user_overrides.setdefault(row.product_id, RateOverride.from_model(row))
            elif row.group_id is not None:
                group_overrides.setdefault(row.product_id, RateOverride.from_model(row))

        customer_type = await self.classify_customer(order)

        return CommissionResolver(snapshot).calculate(
            lines,
            AffiliateRates.from_account(affiliate),
            order_total=to_decimal(order.total),
            customer_type=customer_type,
            user_overrides=user_overrides,
            group_overrides=group_overrides,
        )

    @staticmethod
    def _uniform_rate(
        breakdown: CommissionBreakdown,
    ) -> tuple[Decimal, CommissionType]:
        resolutions = {
            (line.resolution.rate, line.resolution.type)
            for line in breakdown.lines
            if not line.resolution.excluded
        }
        if len(resolutions) == 1:
            return resolutions.pop()
        return ZERO, CommissionType.PERCENTAGE

    @staticmethod
    def _cv_amount(breakdown: CommissionBreakdown) -> Decimal:
        total = ZERO
        for line in breakdown.lines:
            points = line.line.cv_points
            total = add(total, points if points is not None else line.line.total)
        return total

    @transaction
    async def _persist(
        self,
        order: Order,
        affiliate: AffiliateAccount,
        attribution: AttributionSource,
        breakdown: CommissionBreakdown,
        snapshot: ConfigSnapshot,
    ) -> tuple[Referral, int]:
        program = snapshot.program
        available_at: datetime = add_days(utc_now(), program.holding_period_days)
        rate, rate_type = self._uniform_rate(breakdown)

        referral = await self.referral_repo.create(
            affiliate_id=affiliate.id,
            order_id=order.id,
            total_order_amount=to_decimal(order.total),
            net_order_amount=to_decimal(order.subtotal),
            commission_amount=breakdown.total,
            commission_rate=rate,
            commission_type=rate_type.value,
            commission_rule_id=breakdown.rule_id,
            status=ReferralStatus.PENDING.value,
            available_at=available_at,
            calculation_log={
                "items_breakdown": breakdown.to_log(),
                "attribution": attribution.value,
                "total_profit": str(breakdown.total_profit),
                "config_version": snapshot.version,
            },
        )

        buyer = order.user
        if (
            program.lifetime_link_on_purchase
            and buyer is not None
            and buyer.referred_by_affiliate_id is None
            and buyer.id != affiliate.user_id
        ):
            await self.customer_repo.link_referrer_if_absent(buyer.id, affiliate.id)

        upline = await MLMDistributor(self.session, snapshot.mlm).distribute(
            order_id=order.id,
            direct_affiliate_id=affiliate.id,
            sales_amount=to_decimal(order.subtotal),
            profit_amount=breakdown.total_profit,
            cv_amount=self._cv_amount(breakdown),
            available_at=available_at,
        )

        await self.analytics_repo.increment(
            affiliate_id=affiliate.id,
            day=utc_today(),
            conversions=1,
            revenue=to_decimal(order.total),
            commission=breakdown.total,
        )

        owner = affiliate.user
        if owner is not None and owner.email:
            await self.notification_repo.enqueue(
                recipient=owner.email,
                template_slug=TEMPLATE_REFERRAL_PENDING,
                user_id=affiliate.user_id,
                payload={
                    "commission_amount": f"{breakdown.total:.2f}",
                    "order_number": order.order_number,
                    "holding_period": str(program.holding_period_days),
                },
            )

        return referral, len(upline)
