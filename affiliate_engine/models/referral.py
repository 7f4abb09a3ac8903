"""
Referral model.

One commission grant tied to one order and one affiliate. Direct
commissions and upline (MLM) rewards share the table.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from affiliate_engine.models.base import Base
from affiliate_engine.models.enums import CommissionType, ReferralStatus
from affiliate_engine.models.types import JSONType, MoneyType, RatePercentType

if TYPE_CHECKING:
    from affiliate_engine.models.affiliate import AffiliateAccount


class Referral(Base):
    """
    Referral entity.

    Lifecycle: PENDING -> APPROVED (settlement) or REJECTED; APPROVED -> PAID
    happens in the payout flow.

    Attributes:
        id: Primary key
        affiliate_id: Affiliate receiving the commission
        order_id: Source order
        total_order_amount: Gross order amount
        net_order_amount: Net amount (subtotal, or MLM base)
        commission_amount: Commission granted
        commission_rate: Rate (0 when lines used different rates)
        commission_type: PERCENTAGE / FIXED
        commission_rule_id: Last dynamic rule matched (if any)
        status: PENDING / APPROVED / REJECTED / PAID
        available_at: End of holding period
        paid_at: When released into the affiliate balance
        is_mlm_reward: True for upline rewards
        mlm_level: Upline level (1 = direct sponsor)
        from_downline_id: Affiliate whose sale produced the upline reward
        is_flagged: Flagged for manual fraud review
        note: Explanation for rejections
        calculation_log: Per-line audit trail
    """

    __tablename__ = "affiliate_referrals"
    __table_args__ = (
        UniqueConstraint("order_id", "affiliate_id", name="uq_referral_order_affiliate"),
        Index("idx_referrals_status_available", "status", "available_at"),
        Index("idx_referrals_affiliate_created", "affiliate_id", "created_at"),
        CheckConstraint("commission_amount >= 0", name="commission_non_negative"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliate_accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    total_order_amount: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    net_order_amount: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    commission_amount: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    commission_rate: Mapped[Decimal] = mapped_column(
        RatePercentType, default=Decimal("0"), nullable=False
    )
    commission_type: Mapped[str] = mapped_column(
        String(20), default=CommissionType.PERCENTAGE.value, nullable=False
    )
    commission_rule_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliate_commission_rules.id", ondelete="SET NULL"),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=ReferralStatus.PENDING.value,
        nullable=False,
    )
    available_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Multi-level rewards
    is_mlm_reward: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    mlm_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    from_downline_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliate_accounts.id", ondelete="SET NULL"),
        nullable=True,
    )

    is_flagged: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    calculation_log: Mapped[dict[str, Any]] = mapped_column(
        JSONType, default=dict, nullable=False
    )

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

    affiliate: Mapped["AffiliateAccount"] = relationship(
        "AffiliateAccount", foreign_keys=[affiliate_id]
    )

    def __repr__(self) -> str:
        return (
            f"<Referral(id={self.id}, order_id={self.order_id}, "
            f"affiliate_id={self.affiliate_id}, status={self.status}, "
            f"amount={self.commission_amount})>"
        )
