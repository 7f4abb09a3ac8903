"""
Fraud analysis task.

Recomputes risk scores for affiliates with click activity in the last
day and auto-suspends high-risk accounts.
"""

import asyncio

import dramatiq
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from affiliate_engine.services.config_provider import ConfigProvider
from affiliate_engine.services.fraud_guard import RiskAnalysisResult, run_risk_analysis


@dramatiq.actor(max_retries=0, time_limit=900_000)  # 15 min
def run_fraud_analysis() -> None:
    """Recompute affiliate risk scores."""
    logger.info("Starting fraud analysis...")

    try:
        asyncio.run(run_fraud_analysis_async())
    except Exception as e:
        logger.exception(f"Fraud analysis failed: {e}")


async def run_fraud_analysis_async(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    config_provider: ConfigProvider | None = None,
) -> RiskAnalysisResult:
    """Async implementation of fraud analysis."""
    if session_maker is None:
        from jobs.utils.database import task_session_maker

        session_maker = task_session_maker

    return await run_risk_analysis(session_maker, config_provider)
