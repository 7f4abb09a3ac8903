"""
Tier upgrade task.

Promotes affiliates whose earnings and settled sales reach a higher
tier. Scheduled daily after settlement.
"""

import asyncio

import dramatiq
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from affiliate_engine.services.tier_service import (
    TierUpgradeResult,
    TierUpgradeService,
)


@dramatiq.actor(max_retries=0, time_limit=600_000)  # 10 min
def run_tier_upgrades() -> None:
    """Evaluate tier promotions for all affiliates."""
    logger.info("Starting tier upgrade evaluation...")

    try:
        asyncio.run(run_tier_upgrades_async())
    except Exception as e:
        logger.exception(f"Tier upgrade evaluation failed: {e}")


async def run_tier_upgrades_async(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> TierUpgradeResult:
    """Async implementation of tier upgrade evaluation."""
    if session_maker is None:
        from jobs.utils.database import task_session_maker

        session_maker = task_session_maker

    return await TierUpgradeService(session_maker).run()
