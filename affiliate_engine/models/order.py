"""
Order snapshot models.

Orders and order lines as captured by the storefront. The engine only
reads them.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from affiliate_engine.models.base import Base
from affiliate_engine.models.types import MoneyType

if TYPE_CHECKING:
    from affiliate_engine.models.customer import Customer


class Order(Base):
    """
    Completed order.

    Attributes:
        id: Primary key
        order_number: Human readable order number
        user_id: Buyer customer (None for guest checkout)
        guest_email: Buyer email for guest checkout
        ip_address: Buyer IP at checkout
        affiliate_id: Cookie attribution
        coupon_affiliate_id: Affiliate owning the coupon used (if any)
        subtotal: Sum of line totals
        shipping_total: Shipping charged
        tax_total: Tax charged
        total: Grand total
    """

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    order_number: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True
    )

    # Buyer identity
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    guest_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Attribution
    affiliate_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliate_accounts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    coupon_affiliate_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliate_accounts.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Amounts
    subtotal: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    shipping_total: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    tax_total: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user: Mapped["Customer | None"] = relationship(
        "Customer", back_populates="orders", foreign_keys=[user_id]
    )
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    @property
    def buyer_email(self) -> str | None:
        """Email of the buyer (guest email wins, as captured at checkout)."""
        if self.guest_email:
            return self.guest_email
        return self.user.email if self.user else None

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, number={self.order_number!r})>"


class OrderItem(Base):
    """Order line."""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    price: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    tax: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    # Shipping attributed to this line
    shipping: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    unit_cost: Mapped[Decimal | None] = mapped_column(MoneyType, nullable=True)
    # Commission value points for CV based MLM
    cv_points: Mapped[Decimal | None] = mapped_column(MoneyType, nullable=True)

    order: Mapped["Order"] = relationship("Order", back_populates="items")
