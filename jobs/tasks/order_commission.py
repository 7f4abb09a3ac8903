"""
Order commission task.

Processes one completed order off the checkout path. Enqueued by the
storefront after payment capture; retried on infrastructure errors, which
is safe because a processed order is detected and skipped.
"""

import asyncio

import dramatiq
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from affiliate_engine.services.commission.order_processor import (
    OrderProcessor,
    ProcessResult,
)
from affiliate_engine.services.config_provider import ConfigProvider
from affiliate_engine.utils.exceptions import is_transient
from jobs.middleware import MAX_TRANSIENT_RETRIES, transient_retries

# One provider per worker process; snapshots are reused across messages
_config_provider = ConfigProvider()


@dramatiq.actor(
    retry_when=transient_retries(MAX_TRANSIENT_RETRIES),
    time_limit=60_000,  # 1 min
)
def process_order_commission(order_id: int) -> None:
    """
    Create the pending commission for a completed order.

    Transient database errors are re-raised so dramatiq retries the
    message; anything else is logged and dropped.

    Args:
        order_id: Order ID
    """
    try:
        result = asyncio.run(process_order_commission_async(order_id))
    except Exception as e:
        if is_transient(e):
            logger.warning(
                f"Order {order_id} commission deferred: {type(e).__name__}"
            )
            raise
        logger.exception(f"Order {order_id} commission failed")
        return

    if result.success:
        logger.info(
            f"Order {order_id} commission processed: "
            f"{result.commission if result.commission is not None else result.message}"
        )
    else:
        logger.info(f"Order {order_id} not commissioned: {result.error}")


async def process_order_commission_async(
    order_id: int,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    config_provider: ConfigProvider | None = None,
) -> ProcessResult:
    """
    Async implementation of order commission processing.

    Args:
        order_id: Order ID
        session_maker: Session factory (task session maker by default)
        config_provider: Config provider (worker-wide by default)

    Returns:
        Process result
    """
    if session_maker is None:
        from jobs.utils.database import task_session_maker

        session_maker = task_session_maker

    async with session_maker() as session:
        processor = OrderProcessor(session, config_provider or _config_provider)
        return await processor.process_order(order_id)
