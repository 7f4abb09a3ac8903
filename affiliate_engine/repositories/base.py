"""
Base repository.

Generic data access shared by the engine's repositories. Repositories
flush but never commit; the calling service owns the transaction.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository for one mapped model.

    Example:
        class ReferralRepository(BaseRepository[Referral]):
            def __init__(self, session: AsyncSession) -> None:
                super().__init__(Referral, session)
    """

    def __init__(self, model: type[ModelType], session: AsyncSession) -> None:
        self.model = model
        self.session = session

    async def get_by_id(self, id: int) -> ModelType | None:
        """Get a row by primary key (identity map first)."""
        return await self.session.get(self.model, id)

    async def get_for_update(self, id: int) -> ModelType | None:
        """
        Get a row by primary key and lock it until the transaction ends.

        The instance is refreshed from the locked row even when it is
        already in the identity map, so callers see committed values.

        Args:
            id: Primary key

        Returns:
            Locked row or None
        """
        stmt = (
            select(self.model)
            .where(self.model.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by(self, **filters: Any) -> ModelType | None:
        """Get the single row matching column equality filters."""
        stmt = select(self.model).filter_by(**filters)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, **data: Any) -> ModelType:
        """
        Insert a row and flush it so generated columns are populated.

        Args:
            **data: Column values

        Returns:
            Persisted row
        """
        entity = self.model(**data)
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def update(
        self, id: int, for_update: bool = False, **data: Any
    ) -> ModelType | None:
        """
        Set columns on a row.

        Args:
            id: Primary key
            for_update: Lock the row first
            **data: Column values

        Returns:
            Updated row or None if missing
        """
        entity = await (self.get_for_update(id) if for_update else self.get_by_id(id))
        if entity is None:
            return None

        for key, value in data.items():
            setattr(entity, key, value)
        await self.session.flush()
        return entity

    async def delete(self, id: int) -> bool:
        """Delete a row by primary key; True if a row was removed."""
        result = await self.session.execute(
            delete(self.model).where(self.model.id == id)
        )
        await self.session.flush()
        return result.rowcount > 0

    async def count(self, **filters: Any) -> int:
        """Count rows matching column equality filters."""
        stmt = select(func.count()).select_from(self.model).filter_by(**filters)
        result = await self.session.execute(stmt)
        return result.scalar() or 0
