"""
Referral settlement task.

Releases referrals whose holding period has elapsed into affiliate
balances. Scheduled daily; safe to re-run at any time because only
PENDING referrals are picked up.
"""

import asyncio

import dramatiq
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from affiliate_engine.services.settlement_service import (
    SettlementResult,
    SettlementService,
)


@dramatiq.actor(max_retries=0, time_limit=600_000)  # 10 min
def settle_referrals() -> None:
    """Settle one batch of due referrals."""
    logger.info("Starting referral settlement...")

    try:
        result = asyncio.run(settle_referrals_async())
    except Exception as e:
        logger.exception(f"Referral settlement failed: {e}")
        return

    if result.failures:
        logger.warning(
            f"Referral settlement finished with {len(result.failures)} failures"
        )


async def settle_referrals_async(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> SettlementResult:
    """
    Async implementation of referral settlement.

    Args:
        session_maker: Session factory (task session maker by default)

    Returns:
        Settlement summary
    """
    if session_maker is None:
        from jobs.utils.database import task_session_maker

        session_maker = task_session_maker

    result = await SettlementService(session_maker).run()
    logger.info(
        f"Referral settlement complete: {result.processed} processed, "
        f"{result.approved} approved, {result.rejected} rejected, "
        f"{result.skipped} skipped"
    )
    return result
