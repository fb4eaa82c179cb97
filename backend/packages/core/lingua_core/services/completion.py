"""
Completion evaluator.

Runs after every translation attempt. Once every language of a task has a
terminal latest row, it claims the task's completion round in the database
and publishes exactly one completion signal for it.
"""

import asyncio
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from lingua_core import get_logger
from lingua_core.schemas import CompletionSignal
from lingua_core.services.job_store import JobStore
from lingua_core.signals import publish_completion_signal
from lingua_database.models import TranslationTask

logger = get_logger(__name__)


def build_completion_signal(task: TranslationTask) -> CompletionSignal:
    """Build the completion signal for a fully resolved task."""
    failed = task.failed_languages
    return CompletionSignal(
        task_id=task.id,
        success=failed == 0,
        error=f"{failed} languages failed" if failed > 0 else None,
        completed_languages=task.completed_languages,
        failed_languages=failed,
        total_languages=task.total_languages,
    )


class CompletionEvaluator:
    """Decides whether a task has resolved and signals its coordinator."""

    def __init__(self, session: AsyncSession, redis: Any, settle_delay: float = 1.0):
        self.session = session
        self.redis = redis
        self.settle_delay = settle_delay

    async def evaluate(self, task_id: str) -> CompletionSignal | None:
        """
        Evaluate a task after one of its languages finished.

        Args:
            task_id: Task UUID.

        Returns:
            The published signal, or None if the task is still in flight,
            missing, or was already signaled this round.
        """
        if self.settle_delay > 0:
            # Let the triggering write become visible to this read
            await asyncio.sleep(self.settle_delay)

        store = JobStore(self.session)
        task = await store.get_task(task_id, fresh=True)
        if task is None:
            logger.error("Task not found during completion check", extra={"task_id": task_id})
            return None

        resolved = task.resolved_languages
        logger.info(
            "Task progress",
            extra={
                "task_id": task_id,
                "resolved_languages": resolved,
                "completed_languages": task.completed_languages,
                "failed_languages": task.failed_languages,
                "total_languages": task.total_languages,
            },
        )
        if resolved < task.total_languages:
            return None

        claimed = await store.claim_completion_signal(task_id)
        if claimed is None:
            logger.info(
                "Completion already signaled or task not active",
                extra={"task_id": task_id},
            )
            return None

        signal = build_completion_signal(claimed)
        await publish_completion_signal(self.redis, signal)
        return signal
