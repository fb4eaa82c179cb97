"""
Per-language translation worker task.

Each job translates one template into one language. A failing translation
call is a business outcome recorded on that language's row only; sibling
languages are unaffected. Infrastructure faults (database, Redis) are
retried by arq with backoff, and on the last try the row is marked failed
so the task can still resolve.
"""

from typing import Any

from arq import Retry
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from sqlalchemy.exc import DBAPIError

from lingua_core import get_logger
from lingua_core.config import TranslationSettings
from lingua_core.exceptions import CollaboratorError, NotFoundError, VersionConflictError
from lingua_core.languages import get_language
from lingua_core.services.completion import CompletionEvaluator
from lingua_core.services.job_store import JobStore
from lingua_core.services.translation_providers import (
    TemplateTranslationResult,
    TemplateTranslator,
)
from lingua_database.models import IN_FLIGHT_STATUSES, TemplateTranslation
from lingua_database.session import get_session_context

logger = get_logger(__name__)

# Faults worth another invocation rather than a failed row
_TRANSIENT_ERRORS = (
    DBAPIError,
    RedisConnectionError,
    RedisTimeoutError,
    ConnectionError,
    VersionConflictError,
)


async def _translate(
    translator: TemplateTranslator,
    language_code: str,
    source_language_code: str,
    html_content: str,
    subject: str,
    reason: str | None,
) -> TemplateTranslationResult:
    language = get_language(language_code)
    if language is None:
        raise CollaboratorError(f"Unsupported language code: {language_code}")
    source_language = get_language(source_language_code)
    if source_language is None:
        raise CollaboratorError(f"Unsupported source language code: {source_language_code}")
    return await translator.translate(
        html_content, subject, language, source_language, extra_instructions=reason
    )


async def _resolve_translation(
    store: JobStore,
    settings: TranslationSettings,
    task_id: str,
    template_id: str,
    template_version_id: str,
    language_code: str,
    html_content: str,
    subject: str,
    translation_id: str | None,
) -> TemplateTranslation:
    """
    Find or create the row this invocation works on.

    Retranslations name their row explicitly. Initial attempts reuse the
    live row for the task and language when one exists (re-delivered job),
    otherwise insert the next version.
    """
    if translation_id:
        translation = await store.get_translation(translation_id)
        if translation is None or translation.is_deleted:
            raise NotFoundError(f"Translation {translation_id} not found")
        return translation

    existing = await store.find_latest_by_task_and_language(task_id, language_code)
    if existing is not None:
        return existing

    return await store.create_next_translation(
        task_id=task_id,
        template_id=template_id,
        template_version_id=template_version_id,
        language_code=language_code,
        original_html=html_content,
        original_subject=subject,
        max_attempts=settings.version_conflict_retries,
    )


async def _evaluate(ctx: dict[str, Any], store: JobStore, task_id: str) -> None:
    settings: TranslationSettings = ctx["settings"]
    await store.sync_task_counts(task_id)
    evaluator = CompletionEvaluator(
        store.session, ctx["redis"], settings.completion_settle_delay_seconds
    )
    await evaluator.evaluate(task_id)


async def _translate_and_record(
    ctx: dict[str, Any],
    task_id: str,
    template_id: str,
    template_version_id: str,
    language_code: str,
    html_content: str,
    subject: str,
    translation_id: str | None,
    reason: str | None,
) -> dict[str, Any]:
    settings: TranslationSettings = ctx["settings"]
    translator: TemplateTranslator = ctx["translator"]

    async with get_session_context() as session:
        store = JobStore(session)
        try:
            translation = await _resolve_translation(
                store,
                settings,
                task_id,
                template_id,
                template_version_id,
                language_code,
                html_content,
                subject,
                translation_id,
            )
        except NotFoundError as e:
            logger.error(
                "Translation record not found",
                extra={"task_id": task_id, "translation_id": translation_id},
            )
            return {"status": "error", "language_code": language_code, "message": str(e)}

        if translation.status not in IN_FLIGHT_STATUSES:
            # Re-delivered job for a language that already resolved
            logger.info(
                "Translation already resolved, skipping",
                extra={
                    "task_id": task_id,
                    "language_code": language_code,
                    "translation_id": translation.id,
                    "status": translation.status,
                },
            )
            await _evaluate(ctx, store, task_id)
            return {
                "status": "skipped",
                "language_code": language_code,
                "translation_id": translation.id,
            }

        await store.mark_translation_processing(translation.id)
        task = await store.get_task(task_id)
        source_language_code = task.source_language if task else settings.source_language

        try:
            translated = await _translate(
                translator, language_code, source_language_code, html_content, subject, reason
            )
        except Exception as e:
            error_msg = str(e) or e.__class__.__name__
            logger.exception(
                "Translation failed",
                extra={
                    "task_id": task_id,
                    "language_code": language_code,
                    "translation_id": translation.id,
                    "error": error_msg,
                },
            )
            await store.mark_translation_failed(translation.id, error_msg)
            result = {
                "status": "error",
                "language_code": language_code,
                "translation_id": translation.id,
                "error": error_msg,
            }
        else:
            await store.mark_translation_completed(
                translation.id, translated.html, translated.subject
            )
            logger.info(
                "Translation completed successfully",
                extra={
                    "task_id": task_id,
                    "language_code": language_code,
                    "translation_id": translation.id,
                },
            )
            result = {
                "status": "success",
                "language_code": language_code,
                "translation_id": translation.id,
            }

        await _evaluate(ctx, store, task_id)
        return result


async def _record_exhausted_failure(
    ctx: dict[str, Any],
    task_id: str,
    language_code: str,
    translation_id: str | None,
    error_msg: str,
) -> None:
    async with get_session_context() as session:
        store = JobStore(session)
        if translation_id:
            translation = await store.get_translation(translation_id)
        else:
            translation = await store.find_latest_by_task_and_language(task_id, language_code)

        if translation is not None and translation.status in IN_FLIGHT_STATUSES:
            await store.mark_translation_failed(translation.id, error_msg)
        await _evaluate(ctx, store, task_id)


async def translate_language_task(
    ctx: dict[str, Any],
    task_id: str,
    template_id: str,
    template_version_id: str,
    language_code: str,
    html_content: str,
    subject: str,
    total_languages: int,
    translation_id: str | None = None,
    reason: str | None = None,
) -> dict[str, Any]:
    """
    Translate a template into one language for a task.

    Args:
        ctx: Worker context (settings, translator, redis, job_try).
        task_id: Owning task UUID.
        template_id: Template host template id.
        template_version_id: Template host version id.
        language_code: Target language code.
        html_content: Source HTML.
        subject: Source subject line.
        total_languages: Number of languages in the task.
        translation_id: Row to work on (retranslations only).
        reason: Reviewer feedback (retranslations only).

    Returns:
        Result dictionary with status.
    """
    settings: TranslationSettings = ctx["settings"]
    job_try = ctx.get("job_try", 1)

    logger.info(
        "Starting translation task",
        extra={
            "task_id": task_id,
            "language_code": language_code,
            "translation_id": translation_id,
            "total_languages": total_languages,
            "job_try": job_try,
        },
    )

    try:
        return await _translate_and_record(
            ctx,
            task_id,
            template_id,
            template_version_id,
            language_code,
            html_content,
            subject,
            translation_id,
            reason,
        )
    except _TRANSIENT_ERRORS as e:
        if job_try < settings.worker_max_tries:
            logger.warning(
                "Transient failure, retrying translation",
                extra={
                    "task_id": task_id,
                    "language_code": language_code,
                    "job_try": job_try,
                    "error": str(e),
                },
            )
            raise Retry(defer=job_try * settings.retry_backoff_seconds) from e

        error_msg = f"Translation failed after {job_try} attempts: {e}"
        logger.exception(
            "Giving up on translation",
            extra={"task_id": task_id, "language_code": language_code, "job_try": job_try},
        )
        await _record_exhausted_failure(ctx, task_id, language_code, translation_id, error_msg)
        return {"status": "error", "language_code": language_code, "error": error_msg}
