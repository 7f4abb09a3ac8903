"""
Base service class.

Session-scoped services share a bound logger and two decorators:
``transaction`` (commit or roll back the whole call) and
``log_operation`` (entry/exit logging with timing).
"""

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseService:
    """
    Service bound to one async session.

    The caller owns the session; services only commit through
    ``transaction``.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize base service.

        Args:
            session: Async database session
        """
        self.session = session
        self.logger = logger.bind(service=self.__class__.__name__)


def transaction(func: Callable[..., T]) -> Callable[..., T]:
    """
    Run a service method as one unit of work.

    The session is committed when the method returns and rolled back
    when it raises; the exception is re-raised.

    Args:
        func: Async service method

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        try:
            result = await func(self, *args, **kwargs)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            self.logger.error(
                f"Rolled back {func.__name__}",
                extra={"operation": func.__name__, "error": str(e)},
            )
            raise
        return result

    return wrapper


def log_operation(func: Callable[..., T]) -> Callable[..., T]:
    """
    Log entry and exit of a service method with its duration.

    Positional arguments are logged as-is (IDs and small lists in this
    codebase).

    Args:
        func: Async service method

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        started = time.perf_counter()
        self.logger.debug(
            f"{func.__name__} started",
            extra={"operation": func.__name__, "args": [str(a) for a in args]},
        )

        try:
            result = await func(self, *args, **kwargs)
        except Exception as e:
            self.logger.error(
                f"{func.__name__} failed",
                extra={
                    "operation": func.__name__,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                    "error": str(e),
                },
            )
            raise

        self.logger.info(
            f"{func.__name__} completed",
            extra={
                "operation": func.__name__,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return result

    return wrapper
