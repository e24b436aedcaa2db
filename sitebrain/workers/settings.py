"""Arq worker settings for background maintenance."""

from arq import cron
from arq.connections import RedisSettings

from sitebrain.config import get_settings
from sitebrain.core.logging import get_logger, setup_logging
from sitebrain.database import async_session_maker
from sitebrain.services.store import SqlBrainStore
from sitebrain.workers.maintenance_tasks import purge_expired_memory_task

settings = get_settings()
logger = get_logger(__name__)

redis_settings = RedisSettings.from_dsn(settings.redis_url)


def maintenance_hours(interval_hours: int) -> set[int]:
    """Hours of the day at which the purge cron fires."""
    interval = max(1, min(interval_hours, 24))
    return set(range(0, 24, interval))


async def startup(ctx: dict) -> None:
    setup_logging()
    ctx["store"] = SqlBrainStore(async_session_maker)
    logger.info("maintenance_worker_started")


async def shutdown(ctx: dict) -> None:
    logger.info("maintenance_worker_stopped")


class WorkerSettings:
    functions = [purge_expired_memory_task]
    cron_jobs = [
        cron(
            purge_expired_memory_task,
            hour=maintenance_hours(settings.maintenance_interval_hours),
            minute=0,
            run_at_startup=True,
        ),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = redis_settings
