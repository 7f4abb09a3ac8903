"""
Affiliate analytics summary model.

Per-affiliate per-day aggregate, incremented additively.
"""

from datetime import date as calendar_date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_engine.models.base import Base
from affiliate_engine.models.types import MoneyType


class AffiliateAnalyticsSummary(Base):
    """Daily conversions, revenue and commission for one affiliate."""

    __tablename__ = "affiliate_analytics_summary"
    __table_args__ = (
        UniqueConstraint("affiliate_id", "date", name="uq_analytics_affiliate_date"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliate_accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    date: Mapped[calendar_date] = mapped_column(Date, nullable=False)
    conversions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    revenue: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    commission: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
