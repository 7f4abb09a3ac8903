"""
Affiliate ledger repository.

Append-only: entries can be created and read, never changed.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.ledger import AffiliateLedger
from affiliate_engine.repositories.base import BaseRepository
from affiliate_engine.utils.exceptions import LedgerImmutableError


class AffiliateLedgerRepository(BaseRepository[AffiliateLedger]):
    """Ledger repository refusing updates and deletes."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ledger repository."""
        super().__init__(AffiliateLedger, session)

    async def update(
        self, id: int, for_update: bool = False, **data: Any
    ) -> AffiliateLedger | None:
        raise LedgerImmutableError(f"Ledger entry {id} cannot be updated")

    async def delete(self, id: int) -> bool:
        raise LedgerImmutableError(f"Ledger entry {id} cannot be deleted")

    async def get_history(self, affiliate_id: int) -> list[AffiliateLedger]:
        """
        Get all entries of an affiliate in creation order.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            Ledger entries, oldest first
        """
        stmt = (
            select(AffiliateLedger)
            .where(AffiliateLedger.affiliate_id == affiliate_id)
            .order_by(AffiliateLedger.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
