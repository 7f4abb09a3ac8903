"""Database setup shared by background tasks."""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from affiliate_engine.config.settings import settings


def create_task_engine():
    """
    Create an engine for task use.

    NullPool: connections never outlive one asyncio.run() of an actor.
    """
    return create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        poolclass=NullPool,
    )


def create_task_session_maker(engine=None):
    """Create a session maker for tasks."""
    if engine is None:
        engine = create_task_engine()
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


task_session_maker = create_task_session_maker()
