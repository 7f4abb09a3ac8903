"""
Affiliate ledger model.

Append-only record of every change to an affiliate balance.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from affiliate_engine.models.base import Base
from affiliate_engine.models.types import MoneyType


class AffiliateLedger(Base):
    """
    Ledger entry.

    ``amount`` is signed. For every entry
    ``balance_before + amount == balance_after``; replaying entries in
    creation order reproduces the account balance.
    """

    __tablename__ = "affiliate_ledger"
    __table_args__ = (
        Index("idx_ledger_affiliate_created", "affiliate_id", "created_at", "id"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliate_accounts.id", ondelete="RESTRICT"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<AffiliateLedger(id={self.id}, affiliate_id={self.affiliate_id}, "
            f"type={self.type}, amount={self.amount})>"
        )
