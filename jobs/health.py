"""
Health check server for the affiliate job scheduler.

Exposes /health, /readiness and /liveness for the container orchestrator.
Readiness additionally requires the database to answer.
"""

import asyncio
from collections.abc import Awaitable, Callable

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger
from sqlalchemy import text

# Scheduler monitored by the handlers
_scheduler: AsyncIOScheduler | None = None

DatabaseProbe = Callable[[], Awaitable[bool]]

DATABASE_PROBE_KEY = web.AppKey("database_probe", DatabaseProbe)


def set_scheduler(scheduler: AsyncIOScheduler) -> None:
    """
    Register the scheduler instance for health checks.

    Args:
        scheduler: AsyncIOScheduler instance to monitor
    """
    global _scheduler
    _scheduler = scheduler
    logger.info("Scheduler registered for health checks")


async def ping_database() -> bool:
    """Run ``SELECT 1`` against the task engine."""
    from jobs.utils.database import task_session_maker

    try:
        async with task_session_maker() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database ping failed: {type(e).__name__}")
        return False


def _job_summary(scheduler: AsyncIOScheduler) -> list[dict]:
    return [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in scheduler.get_jobs()
    ]


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Reports whether the scheduler is running and when each affiliate job
    fires next.

    Returns:
        JSON response with scheduler status
    """
    if _scheduler is None:
        return web.json_response(
            {"status": "unhealthy", "error": "Scheduler not initialized"},
            status=503,
        )

    jobs = _job_summary(_scheduler)
    return web.json_response(
        {
            "status": "healthy" if _scheduler.running else "stopped",
            "scheduler_running": _scheduler.running,
            "jobs_count": len(jobs),
            "jobs": jobs,
        }
    )


async def readiness_handler(request: web.Request) -> web.Response:
    """Ready when the scheduler runs and the database answers."""
    probe: DatabaseProbe = request.app[DATABASE_PROBE_KEY]
    scheduler_ready = _scheduler is not None and _scheduler.running
    database_ready = await probe() if scheduler_ready else False

    ready = scheduler_ready and database_ready
    return web.json_response(
        {
            "status": "ready" if ready else "not_ready",
            "ready": ready,
            "scheduler": scheduler_ready,
            "database": database_ready,
        },
        status=200 if ready else 503,
    )


async def liveness_handler(request: web.Request) -> web.Response:
    """Process is alive."""
    return web.json_response({"status": "alive", "alive": True})


def create_health_app(database_probe: DatabaseProbe = ping_database) -> web.Application:
    """
    Build the health check application.

    Args:
        database_probe: Coroutine function returning database availability

    Returns:
        aiohttp application
    """
    app = web.Application()
    app[DATABASE_PROBE_KEY] = database_probe
    app.router.add_get("/health", health_handler)
    app.router.add_get("/readiness", readiness_handler)
    app.router.add_get("/liveness", liveness_handler)
    return app


async def start_health_server(
    host: str = "0.0.0.0",
    port: int = 8081,
) -> tuple[web.AppRunner, web.TCPSite]:
    """
    Start health check server.

    Args:
        host: Host to bind to
        port: Port to bind to

    Returns:
        Tuple of (AppRunner, TCPSite) for cleanup
    """
    runner = web.AppRunner(create_health_app())
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Health check server started on {host}:{port}")
    return runner, site


async def stop_health_server(
    runner: web.AppRunner,
    timeout: int = 5,
) -> None:
    """
    Stop health check server gracefully.

    Args:
        runner: AppRunner to cleanup
        timeout: Maximum time to wait for cleanup in seconds
    """
    logger.info("Stopping health check server...")
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
    except TimeoutError:
        logger.warning(f"Health check server cleanup timed out after {timeout}s")
