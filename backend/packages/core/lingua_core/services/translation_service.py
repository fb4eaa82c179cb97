"""
Translation service.

Entry points used by the HTTP layer: starting a multi-language task,
requesting a retranslation, operator actions on single rows, and read-only
snapshots. Work is handed to the arq worker through the Redis pool.
"""

from collections.abc import Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from lingua_core import get_logger
from lingua_core.config import TranslationSettings
from lingua_core.exceptions import CollaboratorError, ValidationError
from lingua_core.languages import target_languages as allowed_target_languages
from lingua_core.redis_keys import RedisKeys
from lingua_core.schemas import (
    RETRANSLATE_REASON_MAX_LENGTH,
    RETRANSLATE_REASON_MIN_LENGTH,
    RetranslateResponse,
    StartTranslationRequest,
    StartTranslationResponse,
    TaskSummary,
    TemplateTranslationResponse,
    TemplateTranslationsData,
    TranslationTaskResponse,
)
from lingua_core.services.job_store import JobStore
from lingua_core.signals import reset_completion_round
from lingua_database.models import TERMINAL_TASK_STATUSES, TaskStatus

logger = get_logger(__name__)

_TERMINAL_TASK_VALUES = {status.value for status in TERMINAL_TASK_STATUSES}


def validate_target_languages(target_languages: Sequence[str], source_language: str) -> list[str]:
    """
    Validate a requested language list.

    Raises:
        ValidationError: If the list is empty, has duplicates, contains an
            unsupported code, or contains the source language.
    """
    if not target_languages:
        raise ValidationError("At least one target language is required")

    allowed = {lang.code for lang in allowed_target_languages(source_language)}
    seen: set[str] = set()
    for code in target_languages:
        if code in seen:
            raise ValidationError(f"Duplicate target language: {code}")
        seen.add(code)
        if code == source_language:
            raise ValidationError(f"Target language {code} is the source language")
        if code not in allowed:
            raise ValidationError(f"Unsupported language code: {code}")
    return list(target_languages)


def validate_retranslate_reason(reason: str) -> str:
    """Validate reviewer feedback length."""
    stripped = reason.strip()
    if len(stripped) < RETRANSLATE_REASON_MIN_LENGTH:
        raise ValidationError(
            f"Reason must be at least {RETRANSLATE_REASON_MIN_LENGTH} characters"
        )
    if len(stripped) > RETRANSLATE_REASON_MAX_LENGTH:
        raise ValidationError(
            f"Reason must be at most {RETRANSLATE_REASON_MAX_LENGTH} characters"
        )
    return stripped


class TranslationService:
    """Translation task management service."""

    def __init__(
        self,
        session: AsyncSession,
        redis_pool: Any | None,
        settings: TranslationSettings,
    ):
        self.session = session
        self.redis_pool = redis_pool
        self.settings = settings
        self.store = JobStore(session)

    def _require_pool(self) -> Any:
        if self.redis_pool is None:
            raise CollaboratorError("Task queue is not available")
        return self.redis_pool

    async def start_translation(self, request: StartTranslationRequest) -> StartTranslationResponse:
        """
        Create a task and queue its coordinator.

        Args:
            request: Template content and target languages.

        Returns:
            Response carrying the new task id.

        Raises:
            ValidationError: If the language list is invalid.
            CollaboratorError: If the coordinator could not be queued; the
                task is marked failed in that case.
        """
        languages = validate_target_languages(
            request.target_languages, self.settings.source_language
        )
        redis_pool = self._require_pool()

        task = await self.store.create_task(
            template_id=request.template_id,
            template_version_id=request.template_version_id,
            template_name=request.template_name,
            target_languages=languages,
            source_language=self.settings.source_language,
            status=TaskStatus.QUEUED,
        )

        try:
            await redis_pool.enqueue_job(
                "coordinate_translation_task",
                task_id=task.id,
                html_content=request.html_content,
                subject=request.subject,
                _job_id=RedisKeys.coordinate_job_id(task.id),
                _queue_name=RedisKeys.COORDINATOR_QUEUE,
            )
        except Exception as e:
            logger.exception("Failed to queue coordinator", extra={"task_id": task.id})
            await self.store.update_task_status(
                task.id, TaskStatus.FAILED, "Failed to enqueue translation job"
            )
            raise CollaboratorError("Failed to start translation job") from e

        logger.info(
            "Queued translation task",
            extra={
                "task_id": task.id,
                "template_id": request.template_id,
                "languages": languages,
            },
        )
        return StartTranslationResponse(task_id=task.id)

    async def request_retranslation(self, translation_id: str, reason: str) -> RetranslateResponse:
        """
        Supersede a finished translation and queue a new attempt.

        If the task had already been finalized, or its completion signal was
        already published for a coordinator to consume, a fresh completion
        round is opened: pending signals and the wait deadline are dropped and
        a waiter is queued to finalize the task again. Otherwise the task is
        still mid-round and its coordinator keeps waiting for the new outcome.

        Raises:
            ValidationError: If the reason is too short or too long.
            NotFoundError: If the translation does not exist.
            ConflictError: If the translation is still in flight.
        """
        reason = validate_retranslate_reason(reason)
        redis_pool = self._require_pool()

        outcome = await self.store.request_retranslate(translation_id, reason)
        new_translation = outcome.new_translation
        task = await self.store.get_task(new_translation.task_id, fresh=True)
        if task is None:
            raise CollaboratorError("Translation task disappeared during retranslation")

        reopened = (
            outcome.previous_task_status in _TERMINAL_TASK_VALUES or outcome.previous_claimed
        )
        if reopened:
            await reset_completion_round(redis_pool, task.id)

        await redis_pool.enqueue_job(
            "translate_language_task",
            task_id=task.id,
            template_id=new_translation.template_id,
            template_version_id=new_translation.template_version_id,
            language_code=new_translation.language_code,
            html_content=new_translation.original_html,
            subject=new_translation.original_subject or "",
            total_languages=task.total_languages,
            translation_id=new_translation.id,
            reason=reason,
            _job_id=RedisKeys.retranslate_job_id(new_translation.id),
            _queue_name=RedisKeys.TRANSLATION_QUEUE,
        )
        if reopened:
            await redis_pool.enqueue_job(
                "await_translation_task",
                task_id=task.id,
                _job_id=RedisKeys.await_job_id(task.id, new_translation.id),
                _queue_name=RedisKeys.COORDINATOR_QUEUE,
            )

        logger.info(
            "Queued retranslation",
            extra={
                "task_id": task.id,
                "translation_id": new_translation.id,
                "language_code": new_translation.language_code,
                "reopened": reopened,
            },
        )
        return RetranslateResponse(translation_id=new_translation.id)

    async def verify_translation(self, translation_id: str) -> None:
        """Mark a completed translation as verified."""
        await self.store.mark_verified(translation_id)

    async def delete_translation(self, translation_id: str) -> None:
        """Soft-delete a translation."""
        await self.store.soft_delete(translation_id)

    async def get_template_snapshot(self, template_id: str) -> TemplateTranslationsData:
        """All tasks and live translations for a template."""
        tasks = await self.store.list_tasks_by_template(template_id)
        translations = await self.store.list_translations_by_template(template_id)
        return TemplateTranslationsData(
            tasks=[TranslationTaskResponse.model_validate(t) for t in tasks],
            translations=[TemplateTranslationResponse.model_validate(t) for t in translations],
        )

    async def get_recent_task_summaries(self, limit: int | None = None) -> list[TaskSummary]:
        """Recent tasks with the latest translation per language."""
        tasks = await self.store.list_recent_tasks(limit or self.settings.recent_tasks_limit)
        latest = await self.store.latest_translations_by_task_ids([t.id for t in tasks])
        return [
            TaskSummary(
                task=TranslationTaskResponse.model_validate(task),
                translations=[
                    TemplateTranslationResponse.model_validate(t) for t in latest.get(task.id, [])
                ],
            )
            for task in tasks
        ]
