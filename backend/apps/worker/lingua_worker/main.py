"""
arq worker settings.

Two worker pools share one Redis:

    arq lingua_worker.main.CoordinatorWorkerSettings
    arq lingua_worker.main.TranslationWorkerSettings

Coordinators spend most of their time blocked on a completion signal, so
they run on their own queue and never take translation slots.
"""

from typing import Any

from arq.connections import RedisSettings

from lingua_core import get_logger, init_logging
from lingua_core.config import TranslationSettings, get_settings
from lingua_core.redis_keys import RedisKeys
from lingua_core.services.translation_providers import create_template_translator
from lingua_database.session import close_database, init_database

from .tasks.coordinator import await_translation_task, coordinate_translation_task
from .tasks.translation import translate_language_task

logger = get_logger(__name__)

settings = get_settings()

# Headroom over the wait so arq never cancels a coordinator mid-finalize
COORDINATOR_JOB_TIMEOUT_MARGIN = 120


async def startup(ctx: dict[str, Any]) -> None:
    """Initialize logging, the database, and the translator for a worker process."""
    worker_settings: TranslationSettings = get_settings()
    init_logging(worker_settings.log_level, worker_settings.log_format)
    init_database(worker_settings.database_url, pool_pre_ping=True)
    ctx["settings"] = worker_settings
    ctx["translator"] = create_template_translator(worker_settings)
    logger.info("Worker started")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Release the database engine."""
    await close_database()
    logger.info("Worker stopped")


class CoordinatorWorkerSettings:
    """Settings for the coordinator pool."""

    functions = [coordinate_translation_task, await_translation_task]
    queue_name = RedisKeys.COORDINATOR_QUEUE
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    max_jobs = settings.coordinator_max_jobs
    max_tries = settings.coordinator_max_tries
    job_timeout = settings.coordinator_timeout_seconds + COORDINATOR_JOB_TIMEOUT_MARGIN
    on_startup = startup
    on_shutdown = shutdown


class TranslationWorkerSettings:
    """Settings for the per-language translation pool."""

    functions = [translate_language_task]
    queue_name = RedisKeys.TRANSLATION_QUEUE
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    max_jobs = settings.worker_max_jobs
    max_tries = settings.worker_max_tries
    job_timeout = int(settings.openai_timeout_seconds) * 2 + 60
    on_startup = startup
    on_shutdown = shutdown
