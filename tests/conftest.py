"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for settings validation
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("ENVIRONMENT", "test")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Actors must bind to an in-memory broker, never to Redis
import dramatiq  # noqa: E402
from dramatiq.brokers.stub import StubBroker  # noqa: E402

dramatiq.set_broker(StubBroker())

import itertools  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from affiliate_engine.models import (  # noqa: E402
    AffiliateAccount,
    AffiliateClick,
    AffiliateFraudRule,
    AffiliateGroup,
    AffiliateMLMConfig,
    AffiliateProgramSettings,
    AffiliateTier,
    Base,
    CommissionRule,
    Customer,
    Order,
    OrderItem,
    ProductCommissionRate,
    Referral,
)
from affiliate_engine.models.enums import ReferralStatus  # noqa: E402
from affiliate_engine.services.config_provider import ConfigProvider  # noqa: E402


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File backed SQLite engine with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'affiliate.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    """Session factory configured like the worker's."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_maker):
    """Session used by a test to arrange data and inspect results."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def config_provider():
    """Provider that reloads the snapshot on every call."""
    return ConfigProvider(ttl_seconds=0)


class Factory:
    """
    Builds persisted test data.

    Every method flushes; tests commit once their data is arranged.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._seq = itertools.count(1)

    async def _save(self, entity: Any) -> Any:
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def program_settings(self, **overrides: Any) -> AffiliateProgramSettings:
        data: dict[str, Any] = {
            "is_active": True,
            "holding_period_days": 14,
            "commission_rate": Decimal("10"),
        }
        data.update(overrides)
        return await self._save(AffiliateProgramSettings(**data))

    async def mlm_config(self, **overrides: Any) -> AffiliateMLMConfig:
        data: dict[str, Any] = {
            "is_enabled": True,
            "max_levels": 3,
            "commission_basis": "SALES",
            "level_rates": {"1": 5, "2": 2},
        }
        data.update(overrides)
        return await self._save(AffiliateMLMConfig(**data))

    async def customer(self, email: str | None = None, **overrides: Any) -> Customer:
        n = next(self._seq)
        return await self._save(
            Customer(email=email or f"customer{n}@example.com", **overrides)
        )

    async def group(self, **overrides: Any) -> AffiliateGroup:
        data: dict[str, Any] = {"name": f"group-{next(self._seq)}"}
        data.update(overrides)
        return await self._save(AffiliateGroup(**data))

    async def tier(self, **overrides: Any) -> AffiliateTier:
        data: dict[str, Any] = {"name": f"tier-{next(self._seq)}"}
        data.update(overrides)
        return await self._save(AffiliateTier(**data))

    async def affiliate(
        self, email: str | None = None, **overrides: Any
    ) -> AffiliateAccount:
        owner = await self.customer(email=email)
        data: dict[str, Any] = {"user_id": owner.id, "slug": f"aff-{next(self._seq)}"}
        data.update(overrides)
        return await self._save(AffiliateAccount(**data))

    async def order(
        self,
        items: list[dict[str, Any]] | None = None,
        **overrides: Any,
    ) -> Order:
        """
        Create an order with lines.

        ``subtotal`` and ``total`` default to the sum of line totals.
        """
        lines = items if items is not None else [{"product_id": 1, "total": Decimal("100")}]
        subtotal = sum(
            (Decimal(str(line.get("total", 0))) for line in lines), Decimal("0")
        )

        data: dict[str, Any] = {
            "order_number": f"ORD-{next(self._seq):05d}",
            "subtotal": subtotal,
            "total": subtotal,
        }
        data.update(overrides)
        order = await self._save(Order(**data))

        for line in lines:
            line_data: dict[str, Any] = {"quantity": 1, "price": line.get("total", 0)}
            line_data.update(line)
            await self._save(OrderItem(order_id=order.id, **line_data))
        return order

    async def referral(
        self,
        affiliate: AffiliateAccount,
        amount: Decimal | str,
        available_at: datetime | None = None,
        **overrides: Any,
    ) -> Referral:
        order = await self.order()
        data: dict[str, Any] = {
            "affiliate_id": affiliate.id,
            "order_id": order.id,
            "total_order_amount": Decimal("100"),
            "net_order_amount": Decimal("100"),
            "commission_amount": Decimal(str(amount)),
            "commission_rate": Decimal("10"),
            "status": ReferralStatus.PENDING.value,
            "available_at": available_at or datetime.now(UTC) - timedelta(days=1),
            "calculation_log": {},
        }
        data.update(overrides)
        return await self._save(Referral(**data))

    async def click(self, affiliate: AffiliateAccount, **overrides: Any) -> AffiliateClick:
        return await self._save(AffiliateClick(affiliate_id=affiliate.id, **overrides))

    async def rule(self, **overrides: Any) -> CommissionRule:
        data: dict[str, Any] = {
            "name": f"rule-{next(self._seq)}",
            "conditions": [],
            "action_value": Decimal("20"),
        }
        data.update(overrides)
        return await self._save(CommissionRule(**data))

    async def product_rate(self, **overrides: Any) -> ProductCommissionRate:
        return await self._save(ProductCommissionRate(**overrides))

    async def fraud_rule(self, **overrides: Any) -> AffiliateFraudRule:
        return await self._save(AffiliateFraudRule(**overrides))


@pytest.fixture
def factory(session):
    """Persisted test data builder bound to the test session."""
    return Factory(session)
