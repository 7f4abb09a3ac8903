"""
Job scheduler.

Enqueues the nightly affiliate jobs (settlement, tier upgrades, fraud
analysis) on the dramatiq broker and serves the health check endpoints.

Run with: python -m jobs.scheduler
"""

import asyncio
import signal

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

import jobs.broker  # noqa: F401  (sets the dramatiq broker and logging)
from affiliate_engine.config.settings import settings
from jobs.health import set_scheduler, start_health_server, stop_health_server
from jobs.tasks.fraud_analysis import run_fraud_analysis
from jobs.tasks.referral_settlement import settle_referrals
from jobs.tasks.tier_upgrades import run_tier_upgrades

job_defaults = {
    "coalesce": True,
    "max_instances": 1,
    "misfire_grace_time": 300,
}

scheduler_instance: AsyncIOScheduler | None = None


def create_scheduler() -> AsyncIOScheduler:
    """
    Build the scheduler with all affiliate jobs registered.

    Returns:
        Configured (not started) scheduler
    """
    scheduler = AsyncIOScheduler(
        jobstores={"default": MemoryJobStore()},
        executors={"default": AsyncIOExecutor()},
        job_defaults=job_defaults,
        timezone="UTC",
    )

    scheduler.add_job(
        settle_referrals.send,
        "cron",
        hour=settings.settlement_cron_hour,
        minute=0,
        id="settle_referrals",
        name="Release matured referral commissions",
        replace_existing=True,
    )
    scheduler.add_job(
        run_tier_upgrades.send,
        "cron",
        hour=settings.tier_upgrade_cron_hour,
        minute=0,
        id="run_tier_upgrades",
        name="Promote affiliates to higher tiers",
        replace_existing=True,
    )
    scheduler.add_job(
        run_fraud_analysis.send,
        "cron",
        hour=settings.fraud_analysis_cron_hour,
        minute=0,
        id="run_fraud_analysis",
        name="Recompute affiliate risk scores",
        replace_existing=True,
    )

    return scheduler


async def main() -> None:
    """Start the scheduler and health server, run until signalled."""
    global scheduler_instance

    scheduler_instance = create_scheduler()
    scheduler_instance.start()
    set_scheduler(scheduler_instance)
    logger.info(
        f"Scheduler started with {len(scheduler_instance.get_jobs())} jobs"
    )

    runner, _ = await start_health_server(port=settings.health_check_port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down scheduler...")
        scheduler_instance.shutdown(wait=False)
        await stop_health_server(runner)


if __name__ == "__main__":
    asyncio.run(main())
