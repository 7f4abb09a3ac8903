"""Integration tests for the configuration snapshot provider."""

from decimal import Decimal

import pytest

from affiliate_engine.models import AffiliateProgramSettings
from affiliate_engine.models.enums import FraudRuleType
from affiliate_engine.services.config_provider import ConfigProvider


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cached_provider(clock):
    return ConfigProvider(ttl_seconds=60, clock=clock)


async def snapshot_of(session_maker, provider):
    async with session_maker() as session:
        return await provider.get_snapshot(session)


async def change_settings(session_maker, settings_id, **values):
    async with session_maker() as session:
        row = await session.get(AffiliateProgramSettings, settings_id)
        for key, value in values.items():
            setattr(row, key, value)
        await session.commit()


class TestSnapshotLoading:
    """Test snapshot contents."""

    @pytest.mark.asyncio
    async def test_missing_settings_disable_program(self, session_maker, config_provider):
        snapshot = await snapshot_of(session_maker, config_provider)

        assert snapshot.program.is_active is False
        assert snapshot.version == 0
        assert snapshot.rules == ()

    @pytest.mark.asyncio
    async def test_invalid_rules_skipped(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        valid = await factory.rule(
            conditions=[{"kind": "CATEGORY", "category_ids": [7]}]
        )
        await factory.rule(conditions=[{"kind": "BOGUS"}])
        await factory.rule(action_type="DOUBLE")
        await session.commit()

        snapshot = await snapshot_of(session_maker, config_provider)

        assert [rule.id for rule in snapshot.rules] == [valid.id]

    @pytest.mark.asyncio
    async def test_level_rates_parsed(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        await factory.mlm_config(level_rates={"1": 5, "2": "2.5", "x": 1, "99": 3})
        await session.commit()

        snapshot = await snapshot_of(session_maker, config_provider)

        assert snapshot.mlm.level_rates == {1: Decimal("5"), 2: Decimal("2.5")}
        assert snapshot.mlm.rate_for(3) == Decimal("0")

    @pytest.mark.asyncio
    async def test_invalid_fraud_rule_skipped(
        self, session, session_maker, factory, config_provider
    ):
        await factory.program_settings()
        await factory.fraud_rule(
            type="CONVERSION_RATE_LIMIT", value=Decimal("5"), action="FLAG"
        )
        await factory.fraud_rule(type="GEO_LIMIT", value=Decimal("1"), action="FLAG")
        await session.commit()

        snapshot = await snapshot_of(session_maker, config_provider)

        assert len(snapshot.fraud_rules) == 1
        assert snapshot.fraud_rules[0].type == FraudRuleType.CONVERSION_RATE_LIMIT


class TestSnapshotCaching:
    """Test TTL and version based reuse."""

    @pytest.mark.asyncio
    async def test_reused_within_ttl(self, session, session_maker, factory, cached_provider):
        await factory.program_settings()
        await session.commit()

        first = await snapshot_of(session_maker, cached_provider)
        second = await snapshot_of(session_maker, cached_provider)

        assert second is first

    @pytest.mark.asyncio
    async def test_version_bump_reloads(
        self, session, session_maker, factory, cached_provider
    ):
        row = await factory.program_settings()
        await session.commit()
        first = await snapshot_of(session_maker, cached_provider)

        await change_settings(
            session_maker, row.id, commission_rate=Decimal("12"), version=2
        )
        second = await snapshot_of(session_maker, cached_provider)

        assert second is not first
        assert second.version == 2
        assert second.program.commission_rate == Decimal("12")

    @pytest.mark.asyncio
    async def test_ttl_expiry_reloads(
        self, session, session_maker, factory, cached_provider, clock
    ):
        row = await factory.program_settings()
        await session.commit()
        await snapshot_of(session_maker, cached_provider)

        # Same version: the stale snapshot is served until the TTL passes
        await change_settings(session_maker, row.id, commission_rate=Decimal("12"))
        stale = await snapshot_of(session_maker, cached_provider)
        clock.now = 61
        fresh = await snapshot_of(session_maker, cached_provider)

        assert stale.program.commission_rate == Decimal("10")
        assert fresh.program.commission_rate == Decimal("12")

    @pytest.mark.asyncio
    async def test_invalidate(self, session, session_maker, factory, cached_provider):
        await factory.program_settings()
        await session.commit()
        first = await snapshot_of(session_maker, cached_provider)

        cached_provider.invalidate()

        assert await snapshot_of(session_maker, cached_provider) is not first
