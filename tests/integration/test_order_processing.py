"""
Integration tests for order processing.

Runs OrderProcessor against a SQLite database: attribution, eligibility
gates, fraud gate, commission resolution and the upline rewards written
in the same unit of work.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from affiliate_engine.models import (
    Customer,
    NotificationQueue,
    Referral,
)
from affiliate_engine.models.enums import AffiliateStatus, ReferralStatus
from affiliate_engine.repositories.analytics_repository import AnalyticsRepository
from affiliate_engine.repositories.system_log_repository import SystemLogRepository
from affiliate_engine.services.commission.order_processor import (
    ZERO_COMMISSION_IGNORED,
    OrderProcessor,
    ProcessError,
)
from affiliate_engine.utils.datetime_utils import as_utc, utc_now, utc_today
from jobs.tasks.order_commission import process_order_commission_async

TAXED_LINE = {
    "product_id": 1,
    "total": Decimal("115"),
    "tax": Decimal("10"),
    "shipping": Decimal("5"),
}


async def process(session_maker, config_provider, order_id):
    async with session_maker() as session:
        return await OrderProcessor(session, config_provider).process_order(order_id)


async def referrals_for(session, order_id):
    result = await session.execute(
        select(Referral).where(Referral.order_id == order_id).order_by(Referral.id)
    )
    return list(result.scalars().all())


class TestReferralCreation:
    """Test the happy path."""

    @pytest.mark.asyncio
    async def test_creates_pending_referral(
        self, session, session_maker, factory, config_provider
    ):
        """$115 line ($10 tax, $5 shipping) at 15% pays $15.00."""
        await factory.program_settings(commission_rate=Decimal("15"))
        affiliate = await factory.affiliate(email="owner@example.com")
        buyer = await factory.customer()
        order = await factory.order(
            items=[TAXED_LINE], user_id=buyer.id, affiliate_id=affiliate.id
        )
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.success is True
        assert result.commission == Decimal("15.00")

        (referral,) = await referrals_for(session, order.id)
        assert referral.id == result.referral_id
        assert referral.affiliate_id == affiliate.id
        assert referral.status == ReferralStatus.PENDING.value
        assert referral.commission_amount == Decimal("15")
        assert referral.commission_rate == Decimal("15")
        assert referral.is_mlm_reward is False

        holding = as_utc(referral.available_at) - utc_now()
        assert timedelta(days=13, hours=23) < holding <= timedelta(days=14)

        log = referral.calculation_log
        assert log["attribution"] == "COOKIE"
        assert log["config_version"] == 1
        assert log["items_breakdown"][0]["source"] == "GLOBAL_DEFAULT"
        assert Decimal(log["items_breakdown"][0]["base"]) == Decimal("100")

    @pytest.mark.asyncio
    async def test_notification_and_analytics(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        affiliate = await factory.affiliate(email="owner@example.com")
        first = await factory.order(affiliate_id=affiliate.id)
        second = await factory.order(affiliate_id=affiliate.id)
        await session.commit()

        await process(session_maker, config_provider, first.id)
        await process(session_maker, config_provider, second.id)

        notifications = (
            await session.execute(
                select(NotificationQueue).where(
                    NotificationQueue.template_slug == "REFERRAL_PENDING"
                )
            )
        ).scalars().all()
        assert len(notifications) == 2
        assert notifications[0].recipient == "owner@example.com"
        assert notifications[0].payload["commission_amount"] == "10.00"
        assert notifications[0].payload["holding_period"] == "14"

        summary = await AnalyticsRepository(session).get_for_day(
            affiliate.id, utc_today()
        )
        assert summary.conversions == 2
        assert summary.revenue == Decimal("200")
        assert summary.commission == Decimal("20")

    @pytest.mark.asyncio
    async def test_product_override_for_affiliate(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        affiliate = await factory.affiliate()
        await factory.product_rate(
            product_id=1, affiliate_id=affiliate.id, rate=Decimal("30")
        )
        order = await factory.order(affiliate_id=affiliate.id)
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.commission == Decimal("30.00")

    @pytest.mark.asyncio
    async def test_returning_customer_rule(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        rule = await factory.rule(
            conditions=[{"kind": "CUSTOMER_TYPE", "customer_type": "RETURNING"}],
            action_value=Decimal("25"),
        )
        affiliate = await factory.affiliate()
        buyer = await factory.customer()
        await factory.order(user_id=buyer.id, created_at=utc_now() - timedelta(days=10))
        order = await factory.order(user_id=buyer.id, affiliate_id=affiliate.id)
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.commission == Decimal("25.00")
        (referral,) = await referrals_for(session, order.id)
        assert referral.commission_rule_id == rule.id

    @pytest.mark.asyncio
    async def test_new_customer_rule_ignores_current_order(
        self, session, session_maker, factory, config_provider
    ):
        """A registered buyer whose only order is this one is NEW."""
        await factory.program_settings()
        rule = await factory.rule(
            conditions=[{"kind": "CUSTOMER_TYPE", "customer_type": "NEW"}],
            action_value=Decimal("25"),
        )
        affiliate = await factory.affiliate()
        buyer = await factory.customer()
        order = await factory.order(user_id=buyer.id, affiliate_id=affiliate.id)
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.commission == Decimal("25.00")
        (referral,) = await referrals_for(session, order.id)
        assert referral.commission_rule_id == rule.id

    @pytest.mark.asyncio
    async def test_order_number_with_braces(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        affiliate = await factory.affiliate()
        order = await factory.order(order_number="WEB-{2026}", affiliate_id=affiliate.id)
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.success is True
        assert result.commission == Decimal("10.00")
        assert len(await referrals_for(session, order.id)) == 1

    @pytest.mark.asyncio
    async def test_runs_through_worker_task(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        affiliate = await factory.affiliate()
        order = await factory.order(affiliate_id=affiliate.id)
        await session.commit()

        result = await process_order_commission_async(
            order.id, session_maker=session_maker, config_provider=config_provider
        )

        assert result.success is True
        assert result.commission == Decimal("10.00")


class TestIdempotency:
    """Test that an order is commissioned once."""

    @pytest.mark.asyncio
    async def test_second_run_is_already_processed(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        affiliate = await factory.affiliate()
        order = await factory.order(affiliate_id=affiliate.id)
        await session.commit()

        first = await process(session_maker, config_provider, order.id)
        second = await process(session_maker, config_provider, order.id)

        assert first.success is True
        assert second.success is False
        assert second.error == ProcessError.ALREADY_PROCESSED.value
        assert len(await referrals_for(session, order.id)) == 1


class TestAttribution:
    """Test coupon, cookie and lifetime attribution."""

    @pytest.mark.asyncio
    async def test_coupon_beats_cookie(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        cookie_affiliate = await factory.affiliate()
        coupon_affiliate = await factory.affiliate()
        order = await factory.order(
            affiliate_id=cookie_affiliate.id, coupon_affiliate_id=coupon_affiliate.id
        )
        await session.commit()

        await process(session_maker, config_provider, order.id)

        (referral,) = await referrals_for(session, order.id)
        assert referral.affiliate_id == coupon_affiliate.id
        assert referral.calculation_log["attribution"] == "COUPON"

    @pytest.mark.asyncio
    async def test_lifetime_link_attribution(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        affiliate = await factory.affiliate()
        buyer = await factory.customer(referred_by_affiliate_id=affiliate.id)
        order = await factory.order(user_id=buyer.id)
        await session.commit()

        await process(session_maker, config_provider, order.id)

        (referral,) = await referrals_for(session, order.id)
        assert referral.affiliate_id == affiliate.id
        assert referral.calculation_log["attribution"] == "LIFETIME"

    @pytest.mark.asyncio
    async def test_purchase_creates_lifetime_link(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings(lifetime_link_on_purchase=True)
        affiliate = await factory.affiliate()
        buyer = await factory.customer()
        order = await factory.order(user_id=buyer.id, affiliate_id=affiliate.id)
        await session.commit()

        await process(session_maker, config_provider, order.id)

        buyer = await session.get(Customer, buyer.id, populate_existing=True)
        assert buyer.referred_by_affiliate_id == affiliate.id


class TestEligibility:
    """Test policy no-ops."""

    @pytest.mark.asyncio
    async def test_order_not_found(self, session_maker, config_provider):
        result = await process(session_maker, config_provider, 999)

        assert result.error == ProcessError.ORDER_NOT_FOUND.value

    @pytest.mark.asyncio
    async def test_no_affiliate(self, session, session_maker, factory, config_provider):
        await factory.program_settings()
        order = await factory.order()
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.error == ProcessError.NO_AFFILIATE.value

    @pytest.mark.asyncio
    async def test_suspended_affiliate(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        affiliate = await factory.affiliate(status=AffiliateStatus.SUSPENDED.value)
        order = await factory.order(affiliate_id=affiliate.id)
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.error == ProcessError.AFFILIATE_INACTIVE.value

    @pytest.mark.asyncio
    async def test_program_disabled_without_settings(
        self, session, session_maker, factory, config_provider
    ):
        affiliate = await factory.affiliate()
        order = await factory.order(affiliate_id=affiliate.id)
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.error == ProcessError.PROGRAM_DISABLED.value


class TestFraudGate:
    """Test self-referral and velocity blocks."""

    @pytest.mark.asyncio
    async def test_self_referral_blocked(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        affiliate = await factory.affiliate(email="owner@example.com")
        order = await factory.order(
            affiliate_id=affiliate.id, guest_email=" OWNER@example.com"
        )
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.success is False
        assert result.error == ProcessError.SELF_REFERRAL_BLOCKED.value
        assert await referrals_for(session, order.id) == []

        logs = await SystemLogRepository(session).get_recent(source="AFFILIATE_ENGINE")
        assert logs[0].message == "Commission Blocked: Fraud Rules"
        assert logs[0].context["reason"] == "SELF_REFERRAL_BLOCKED"

    @pytest.mark.asyncio
    async def test_self_referral_allowed_by_settings(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings(allow_self_referral=True)
        affiliate = await factory.affiliate(email="owner@example.com")
        order = await factory.order(
            affiliate_id=affiliate.id, guest_email="owner@example.com"
        )
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.success is True

    @pytest.mark.asyncio
    async def test_velocity_blocked(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        affiliate = await factory.affiliate()
        for _ in range(10):
            await factory.referral(affiliate, "1")
        order = await factory.order(
            affiliate_id=affiliate.id, guest_email="buyer@example.com"
        )
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.error == ProcessError.VELOCITY_BLOCKED.value
        assert await referrals_for(session, order.id) == []


class TestZeroCommission:
    """Test zero-value handling."""

    @pytest.mark.asyncio
    async def test_zero_commission_ignored(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings(commission_rate=Decimal("0"))
        affiliate = await factory.affiliate()
        order = await factory.order(affiliate_id=affiliate.id)
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.success is True
        assert result.message == ZERO_COMMISSION_IGNORED
        assert await referrals_for(session, order.id) == []

    @pytest.mark.asyncio
    async def test_zero_value_referral_recorded(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings(
            commission_rate=Decimal("0"), zero_value_referrals=True
        )
        affiliate = await factory.affiliate()
        order = await factory.order(affiliate_id=affiliate.id)
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.success is True
        (referral,) = await referrals_for(session, order.id)
        assert referral.commission_amount == Decimal("0")


class TestUplineRewards:
    """Test multi-level distribution."""

    @pytest.mark.asyncio
    async def test_level_one_sponsor_reward(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        await factory.mlm_config(level_rates={"1": 5})
        sponsor = await factory.affiliate()
        affiliate = await factory.affiliate(parent_id=sponsor.id)
        order = await factory.order(affiliate_id=affiliate.id)
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.mlm_rewards == 1
        direct, reward = await referrals_for(session, order.id)
        assert reward.affiliate_id == sponsor.id
        assert reward.is_mlm_reward is True
        assert reward.mlm_level == 1
        assert reward.from_downline_id == affiliate.id
        assert reward.commission_amount == Decimal("5")
        assert reward.available_at == direct.available_at
        assert reward.calculation_log["type"] == "MLM_COMMISSION"

    @pytest.mark.asyncio
    async def test_two_levels(self, session, session_maker, factory, config_provider):
        await factory.program_settings()
        await factory.mlm_config(level_rates={"1": 5, "2": 2})
        grand_sponsor = await factory.affiliate()
        sponsor = await factory.affiliate(parent_id=grand_sponsor.id)
        affiliate = await factory.affiliate(parent_id=sponsor.id)
        order = await factory.order(affiliate_id=affiliate.id)
        await session.commit()

        await process(session_maker, config_provider, order.id)

        rewards = [r for r in await referrals_for(session, order.id) if r.is_mlm_reward]
        assert [(r.affiliate_id, r.mlm_level) for r in rewards] == [
            (sponsor.id, 1),
            (grand_sponsor.id, 2),
        ]
        assert rewards[1].commission_amount == Decimal("2")

    @pytest.mark.asyncio
    async def test_walk_stops_at_inactive_sponsor(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        await factory.mlm_config(level_rates={"1": 5, "2": 2})
        grand_sponsor = await factory.affiliate()
        sponsor = await factory.affiliate(
            parent_id=grand_sponsor.id, status=AffiliateStatus.BANNED.value
        )
        affiliate = await factory.affiliate(parent_id=sponsor.id)
        order = await factory.order(affiliate_id=affiliate.id)
        await session.commit()

        result = await process(session_maker, config_provider, order.id)

        assert result.mlm_rewards == 0
        count = await session.scalar(
            select(func.count(Referral.id)).where(Referral.is_mlm_reward.is_(True))
        )
        assert count == 0
