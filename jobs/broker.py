"""
Dramatiq broker configuration.

Redis broker shared by the worker processes and the scheduler. Workers
load it with the actor modules:

    dramatiq jobs.broker jobs.tasks.order_commission \
        jobs.tasks.referral_settlement jobs.tasks.tier_upgrades \
        jobs.tasks.fraud_analysis
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from loguru import logger

from affiliate_engine.config.logging import setup_logging
from affiliate_engine.config.settings import settings
from jobs.middleware import build_middleware

setup_logging()

# Defaults include ShutdownNotifications so long settlement batches stop
# cleanly; Retries backs off from 1 second up to 1 minute
redis_broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password if settings.redis_password else None,
    db=settings.redis_db,
    middleware=build_middleware(min_backoff=1000, max_backoff=60000),
)

dramatiq.set_broker(redis_broker)

broker = redis_broker

logger.info(
    f"Dramatiq broker initialized: "
    f"redis://{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
)
