"""
Customer model.

Store customer snapshot read by the engine (owned by the storefront).
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from affiliate_engine.models.base import Base

if TYPE_CHECKING:
    from affiliate_engine.models.order import Order


class Customer(Base):
    """Store customer (buyer or affiliate owner)."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    email: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Lifetime attribution ("referred-by" link)
    referred_by_affiliate_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliate_accounts.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    orders: Mapped[list["Order"]] = relationship(
        "Order", back_populates="user", foreign_keys="Order.user_id"
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, email={self.email!r})>"
