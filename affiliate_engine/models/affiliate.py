"""
Affiliate account, group and tier models.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from affiliate_engine.models.base import Base
from affiliate_engine.models.enums import AffiliateStatus, CommissionType
from affiliate_engine.models.types import MoneyType, RatePercentType

if TYPE_CHECKING:
    from affiliate_engine.models.customer import Customer


class AffiliateGroup(Base):
    """Commission group with an optional default rate."""

    __tablename__ = "affiliate_groups"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    commission_rate: Mapped[Decimal | None] = mapped_column(
        RatePercentType, nullable=True
    )
    commission_type: Mapped[str] = mapped_column(
        String(20), default=CommissionType.PERCENTAGE.value, nullable=False
    )


class AffiliateTier(Base):
    """
    Affiliate rank.

    Grants a default commission rate; earned by crossing the sales
    thresholds.
    """

    __tablename__ = "affiliate_tiers"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    commission_rate: Mapped[Decimal | None] = mapped_column(
        RatePercentType, nullable=True
    )
    commission_type: Mapped[str] = mapped_column(
        String(20), default=CommissionType.PERCENTAGE.value, nullable=False
    )
    min_sales_amount: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    min_sales_count: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )


class AffiliateAccount(Base):
    """
    Affiliate account.

    Balances are mutated only by settlement (and manual ledger flows);
    order processing never touches them.

    Attributes:
        id: Primary key
        user_id: Store customer owning the account
        slug: Public referral slug
        status: ACTIVE / PENDING / SUSPENDED / BANNED
        group_id: Optional commission group
        tier_id: Optional tier
        balance: Withdrawable balance
        total_earnings: Lifetime earnings (never decreases)
        parent_id: Sponsor for multi-level distribution
        risk_score: 0-100 fraud risk
        deleted_at: Soft delete marker
    """

    __tablename__ = "affiliate_accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="balance_non_negative"),
        CheckConstraint("total_earnings >= 0", name="total_earnings_non_negative"),
        CheckConstraint(
            "risk_score >= 0 AND risk_score <= 100", name="risk_score_range"
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    slug: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=AffiliateStatus.ACTIVE.value,
        nullable=False,
        index=True,
    )

    group_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliate_groups.id", ondelete="SET NULL"),
        nullable=True,
    )
    tier_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliate_tiers.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Balances
    balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Sponsor (MLM upline)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliate_accounts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    risk_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    user: Mapped["Customer"] = relationship(
        "Customer", foreign_keys=[user_id], lazy="selectin"
    )
    group: Mapped["AffiliateGroup | None"] = relationship(
        "AffiliateGroup", lazy="selectin"
    )
    tier: Mapped["AffiliateTier | None"] = relationship(
        "AffiliateTier", lazy="selectin"
    )

    @property
    def is_active(self) -> bool:
        """True for non-deleted ACTIVE accounts."""
        return (
            self.deleted_at is None
            and self.status == AffiliateStatus.ACTIVE.value
        )

    def __repr__(self) -> str:
        return (
            f"<AffiliateAccount(id={self.id}, slug={self.slug!r}, "
            f"status={self.status})>"
        )


class AffiliateClick(Base):
    """Tracked click on an affiliate link."""

    __tablename__ = "affiliate_clicks"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliate_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    device_fingerprint: Mapped[str | None] = mapped_column(
        String(128), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )
