"""
Affiliate program configuration models.

Single-row program settings, multi-level settings and fraud rules. Read
through ConfigProvider as an immutable snapshot.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_engine.config.constants import (
    DEFAULT_COMMISSION_RATE,
    DEFAULT_HOLDING_PERIOD_DAYS,
)
from affiliate_engine.models.base import Base
from affiliate_engine.models.enums import CommissionType, MLMBasis
from affiliate_engine.models.types import JSONType, MoneyType, RatePercentType


class AffiliateProgramSettings(Base):
    """
    Program-wide affiliate settings.

    Exactly one row is expected. ``version`` must be bumped by whoever
    edits the row so cached snapshots are refreshed.
    """

    __tablename__ = "affiliate_program_settings"
    __table_args__ = (
        CheckConstraint("holding_period_days >= 0", name="holding_non_negative"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    holding_period_days: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_HOLDING_PERIOD_DAYS, nullable=False
    )
    allow_self_referral: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    zero_value_referrals: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    lifetime_link_on_purchase: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    exclude_tax: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    exclude_shipping: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    commission_rate: Mapped[Decimal] = mapped_column(
        RatePercentType, default=DEFAULT_COMMISSION_RATE, nullable=False
    )
    commission_type: Mapped[str] = mapped_column(
        String(20), default=CommissionType.PERCENTAGE.value, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )


class AffiliateMLMConfig(Base):
    """
    Multi-level distribution settings.

    ``level_rates`` maps level number (as string) to percent, e.g.
    ``{"1": 5, "2": 2}``.
    """

    __tablename__ = "affiliate_mlm_config"
    __table_args__ = (
        CheckConstraint(
            "max_levels >= 1 AND max_levels <= 10", name="max_levels_range"
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    is_enabled: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    max_levels: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    commission_basis: Mapped[str] = mapped_column(
        String(20), default=MLMBasis.SALES.value, nullable=False
    )
    level_rates: Mapped[dict[str, float]] = mapped_column(
        JSONType, default=dict, nullable=False
    )


class AffiliateFraudRule(Base):
    """
    Configurable fraud rule.

    ``value`` meaning depends on ``type``: percent for
    CONVERSION_RATE_LIMIT, count for IP_CLICK_LIMIT, amount for
    ORDER_VALUE_LIMIT.
    """

    __tablename__ = "affiliate_fraud_rules"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    value: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
