"""Integration tests for the nightly risk score recomputation."""

from datetime import timedelta
from decimal import Decimal

import pytest

from affiliate_engine.models import AffiliateAccount
from affiliate_engine.models.enums import AffiliateStatus
from affiliate_engine.repositories.system_log_repository import SystemLogRepository
from affiliate_engine.utils.datetime_utils import utc_now
from jobs.tasks.fraud_analysis import run_fraud_analysis_async


async def analyze(session_maker, config_provider):
    return await run_fraud_analysis_async(session_maker, config_provider)


async def high_risk_affiliate(factory, **overrides):
    """51 clicks, 5 rapid referrals (one flagged) and a 5% conversion limit."""
    await factory.fraud_rule(
        type="CONVERSION_RATE_LIMIT", value=Decimal("5"), action="FLAG"
    )
    affiliate = await factory.affiliate(**overrides)
    for _ in range(51):
        await factory.click(affiliate, ip_address="10.0.0.1")
    for index in range(5):
        await factory.referral(affiliate, "10", is_flagged=index == 0)
    return affiliate


class TestRiskAnalysis:
    """Test risk scoring and auto-suspension."""

    @pytest.mark.asyncio
    async def test_flagged_referrals_scored(
        self, session, session_maker, factory, config_provider
    ):
        affiliate = await factory.affiliate()
        await factory.click(affiliate)
        await factory.referral(affiliate, "10", is_flagged=True)
        await factory.referral(affiliate, "10", is_flagged=True)
        await session.commit()

        result = await analyze(session_maker, config_provider)

        assert result.evaluated == 1
        assert result.suspended == 0
        account = await session.get(AffiliateAccount, affiliate.id, populate_existing=True)
        assert account.risk_score == 30
        assert account.status == AffiliateStatus.ACTIVE.value

    @pytest.mark.asyncio
    async def test_high_risk_suspended(
        self, session, session_maker, factory, config_provider
    ):
        affiliate = await high_risk_affiliate(factory)
        await session.commit()

        result = await analyze(session_maker, config_provider)

        assert result.suspended == 1
        account = await session.get(AffiliateAccount, affiliate.id, populate_existing=True)
        assert account.risk_score == 85
        assert account.status == AffiliateStatus.SUSPENDED.value

        logs = SystemLogRepository(session)
        alerts = {log.message for log in await logs.get_recent(source="FRAUD_DETECTOR")}
        assert alerts == {
            "Risk Alert: SUSPICIOUS_CONVERSION",
            "Risk Alert: RAPID_TRANSACTIONS",
        }
        (suspension,) = await logs.get_recent(source="FRAUD_SHIELD")
        assert suspension.message == f"Auto-suspended affiliate {affiliate.id}"
        assert suspension.context["score"] == 85

    @pytest.mark.asyncio
    async def test_banned_stays_banned(
        self, session, session_maker, factory, config_provider
    ):
        affiliate = await high_risk_affiliate(
            factory, status=AffiliateStatus.BANNED.value
        )
        await session.commit()

        await analyze(session_maker, config_provider)

        account = await session.get(AffiliateAccount, affiliate.id, populate_existing=True)
        assert account.risk_score == 85
        assert account.status == AffiliateStatus.BANNED.value
        assert await SystemLogRepository(session).get_recent(source="FRAUD_SHIELD") == []

    @pytest.mark.asyncio
    async def test_stale_click_activity_ignored(
        self, session, session_maker, factory, config_provider
    ):
        affiliate = await factory.affiliate()
        await factory.click(affiliate, created_at=utc_now() - timedelta(days=3))
        await factory.referral(affiliate, "10", is_flagged=True)
        await session.commit()

        result = await analyze(session_maker, config_provider)

        assert result.evaluated == 0
        account = await session.get(AffiliateAccount, affiliate.id, populate_existing=True)
        assert account.risk_score == 0
