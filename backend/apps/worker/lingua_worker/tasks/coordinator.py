"""
Coordinator tasks.

One coordinator job per translation task fans out a translation job per
target language, then blocks on the task's completion signal and records
the final task status. ``await_translation_task`` runs only the wait and
finalize half, for tasks reopened by a retranslation.
"""

from typing import Any

from lingua_core import get_logger
from lingua_core.config import TranslationSettings
from lingua_core.exceptions import TranslationTimeoutError
from lingua_core.redis_keys import RedisKeys
from lingua_core.services.job_store import JobStore
from lingua_core.signals import wait_for_completion_signal
from lingua_database.models import TERMINAL_TASK_STATUSES, TaskStatus
from lingua_database.session import get_session_context

logger = get_logger(__name__)

_TERMINAL_TASK_VALUES = {status.value for status in TERMINAL_TASK_STATUSES}


def timeout_message(timeout_seconds: float) -> str:
    minutes = int(timeout_seconds // 60)
    if minutes >= 1 and timeout_seconds % 60 == 0:
        return f"Translation job timed out after {minutes} minutes"
    return f"Translation job timed out after {int(timeout_seconds)} seconds"


async def finalize_task(ctx: dict[str, Any], task_id: str) -> dict[str, Any]:
    """
    Wait for the task's completion signal and record the outcome.

    The outcome is written only while the round it belongs to is current. A
    signal that was already queued when a retranslation reopened the task
    is dropped, and the waiter for the new round finalizes it instead.

    Returns:
        Result dictionary with the final status.

    Raises:
        TranslationTimeoutError: If no signal arrived before the deadline.
            The task is marked failed first.
    """
    settings: TranslationSettings = ctx["settings"]
    timeout = settings.coordinator_timeout_seconds

    signal = await wait_for_completion_signal(
        ctx["redis"],
        task_id,
        timeout_seconds=timeout,
        poll_seconds=settings.signal_poll_seconds,
    )

    async with get_session_context() as session:
        store = JobStore(session)

        if signal is None:
            message = timeout_message(timeout)
            if not await store.finalize_task_status(
                task_id, TaskStatus.FAILED, message, require_claim=False
            ):
                # Another waiter already finalized this task
                return {"status": "superseded", "task_id": task_id}
            logger.error("Translation task timed out", extra={"task_id": task_id})
            raise TranslationTimeoutError(message)

        if signal.success:
            status, error = TaskStatus.COMPLETED, None
        else:
            status, error = TaskStatus.FAILED, signal.error or "Translation failed"

        if not await store.finalize_task_status(task_id, status, error):
            logger.info(
                "Ignoring completion signal from a reopened round",
                extra={"task_id": task_id},
            )
            return {"status": "superseded", "task_id": task_id}

    if signal.success:
        logger.info(
            "Translation task completed",
            extra={"task_id": task_id, "completed_languages": signal.completed_languages},
        )
        return {"status": "completed", "task_id": task_id}

    logger.warning(
        "Translation task finished with failures",
        extra={
            "task_id": task_id,
            "completed_languages": signal.completed_languages,
            "failed_languages": signal.failed_languages,
        },
    )
    return {"status": "failed", "task_id": task_id, "error": error}


async def coordinate_translation_task(
    ctx: dict[str, Any], task_id: str, html_content: str, subject: str
) -> dict[str, Any]:
    """
    Dispatch one translation job per language and wait for the task to resolve.

    Args:
        ctx: Worker context.
        task_id: Task UUID (created by the API before queueing).
        html_content: Source HTML.
        subject: Source subject line.

    Returns:
        Result dictionary with the final status.
    """
    async with get_session_context() as session:
        store = JobStore(session)
        task = await store.get_task(task_id, fresh=True)
        if task is None:
            logger.error("Translation task not found", extra={"task_id": task_id})
            return {"status": "error", "message": "Task not found"}

        if task.status in _TERMINAL_TASK_VALUES:
            logger.info(
                "Translation task already finalized, skipping",
                extra={"task_id": task_id, "status": task.status},
            )
            return {"status": "skipped", "task_id": task_id}

        await store.update_task_status(task_id, TaskStatus.PROCESSING)
        languages = list(task.target_languages)
        template_id = task.template_id
        template_version_id = task.template_version_id
        total_languages = task.total_languages

    # Deterministic job ids make a re-run coordinator a no-op dispatcher
    for language_code in languages:
        await ctx["redis"].enqueue_job(
            "translate_language_task",
            task_id=task_id,
            template_id=template_id,
            template_version_id=template_version_id,
            language_code=language_code,
            html_content=html_content,
            subject=subject,
            total_languages=total_languages,
            _job_id=RedisKeys.translate_job_id(task_id, language_code),
            _queue_name=RedisKeys.TRANSLATION_QUEUE,
        )

    logger.info(
        "Dispatched language jobs",
        extra={"task_id": task_id, "languages": languages},
    )
    return await finalize_task(ctx, task_id)


async def await_translation_task(ctx: dict[str, Any], task_id: str) -> dict[str, Any]:
    """Wait for and finalize a task reopened by a retranslation."""
    logger.info("Waiting on reopened translation task", extra={"task_id": task_id})
    return await finalize_task(ctx, task_id)
