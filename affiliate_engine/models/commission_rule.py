"""
Commission rule models.

Dynamic commission rules (conditionally matched, ordered by priority)
and per-product rate overrides.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_engine.models.base import Base
from affiliate_engine.models.enums import CommissionType
from affiliate_engine.models.types import JSONType, RatePercentType


class CommissionRule(Base):
    """
    Dynamic commission rule.

    ``conditions`` is a list of tagged condition documents, e.g.::

        [
            {"kind": "ORDER_AMOUNT", "min_amount": "100"},
            {"kind": "CATEGORY", "category_ids": [3, 7]},
            {"kind": "CUSTOMER_TYPE", "customer_type": "NEW"},
        ]

    Conditions are validated when the configuration snapshot is loaded.
    """

    __tablename__ = "affiliate_commission_rules"
    __table_args__ = (
        Index("idx_commission_rules_active_priority", "is_active", "priority"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    conditions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, default=list, nullable=False
    )
    action_type: Mapped[str] = mapped_column(
        String(20), default=CommissionType.PERCENTAGE.value, nullable=False
    )
    action_value: Mapped[Decimal] = mapped_column(
        RatePercentType, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )


class ProductCommissionRate(Base):
    """
    Product rate override.

    Scoped either to one affiliate or to one group, never both.
    ``is_disabled`` removes the product from commission entirely.
    """

    __tablename__ = "affiliate_product_rates"
    __table_args__ = (
        CheckConstraint(
            "(affiliate_id IS NULL) <> (group_id IS NULL)",
            name="single_scope",
        ),
        Index("idx_product_rates_product_affiliate", "product_id", "affiliate_id"),
        Index("idx_product_rates_product_group", "product_id", "group_id"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    affiliate_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliate_accounts.id", ondelete="CASCADE"),
        nullable=True,
    )
    group_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliate_groups.id", ondelete="CASCADE"),
        nullable=True,
    )
    rate: Mapped[Decimal] = mapped_column(
        RatePercentType, default=Decimal("0"), nullable=False
    )
    type: Mapped[str] = mapped_column(
        String(20), default=CommissionType.PERCENTAGE.value, nullable=False
    )
    is_disabled: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
