"""
Order and customer repositories.

Read access to the storefront snapshot plus the lifetime-link write.
"""

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from affiliate_engine.models.customer import Customer
from affiliate_engine.models.order import Order
from affiliate_engine.repositories.base import BaseRepository


class OrderRepository(BaseRepository[Order]):
    """Order repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize order repository."""
        super().__init__(Order, session)

    async def get_with_items(self, order_id: int) -> Order | None:
        """
        Get a non-deleted order with its lines and buyer loaded.

        Args:
            order_id: Order ID

        Returns:
            Order or None if missing or soft-deleted
        """
        stmt = (
            select(Order)
            .where(Order.id == order_id, Order.deleted_at.is_(None))
            .options(selectinload(Order.items), selectinload(Order.user))
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_prior_orders(
        self, user_id: int, order_id: int, before: datetime
    ) -> int:
        """
        Count a customer's earlier orders.

        Args:
            user_id: Customer ID
            order_id: Current order (excluded)
            before: Current order creation time

        Returns:
            Number of non-deleted orders created strictly before ``before``
        """
        stmt = select(func.count(Order.id)).where(
            Order.user_id == user_id,
            Order.id != order_id,
            Order.deleted_at.is_(None),
            Order.created_at < before,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0


class CustomerRepository(BaseRepository[Customer]):
    """Customer repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize customer repository."""
        super().__init__(Customer, session)

    async def link_referrer_if_absent(
        self, customer_id: int, affiliate_id: int
    ) -> bool:
        """
        Set the customer's lifetime affiliate unless one is already set.

        Args:
            customer_id: Customer ID
            affiliate_id: Affiliate to link

        Returns:
            True if the link was written
        """
        stmt = (
            update(Customer)
            .where(
                Customer.id == customer_id,
                Customer.referred_by_affiliate_id.is_(None),
            )
            .values(referred_by_affiliate_id=affiliate_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
