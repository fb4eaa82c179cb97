"""
Job store.

Durable state for translation tasks and their versioned translation rows.
Every aggregate the orchestration relies on is recomputed from the
translation table rather than accumulated through increments, and the
"latest row" definition (highest version, then most recently updated,
soft-deleted rows excluded) lives in exactly one query builder here.
"""

from collections.abc import Sequence
from typing import Any, NamedTuple

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lingua_core import get_logger
from lingua_core.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    VersionConflictError,
)
from lingua_database.models import (
    ACTIVE_TASK_STATUSES,
    IN_FLIGHT_STATUSES,
    TaskStatus,
    TemplateTranslation,
    TranslationStatus,
    TranslationTask,
)
from lingua_database.models.base import utcnow

logger = get_logger(__name__)


class RetranslationOutcome(NamedTuple):
    """Result of superseding a translation row with a new version."""

    new_translation: TemplateTranslation
    previous_translation: TemplateTranslation
    previous_status: str
    previous_task_status: str
    previous_claimed: bool


def _latest_translation_ids(*criteria: Any):
    """
    Subquery of the latest live row id per (task, language).

    Ranks non-deleted rows by version, then by recency, and keeps rank 1.
    """
    rank = (
        func.row_number()
        .over(
            partition_by=(TemplateTranslation.task_id, TemplateTranslation.language_code),
            order_by=(TemplateTranslation.version.desc(), TemplateTranslation.updated_at.desc()),
        )
        .label("rank")
    )
    ranked = (
        select(TemplateTranslation.id.label("id"), rank)
        .where(TemplateTranslation.deleted_at.is_(None), *criteria)
        .subquery()
    )
    return select(ranked.c.id).where(ranked.c.rank == 1)


class JobStore:
    """Persistence operations for translation tasks and translation rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def create_task(
        self,
        template_id: str,
        template_version_id: str,
        template_name: str,
        target_languages: Sequence[str],
        source_language: str = "en",
        status: TaskStatus = TaskStatus.QUEUED,
    ) -> TranslationTask:
        """
        Create a translation task.

        Args:
            template_id: Template host template id.
            template_version_id: Template host version id.
            template_name: Template display name.
            target_languages: Language codes to translate into.
            source_language: Language of the original template.
            status: Initial status (queued or processing).

        Returns:
            The persisted task.

        Raises:
            ValidationError: If no target language is given.
        """
        if not target_languages:
            raise ValidationError("At least one target language is required")

        task = TranslationTask(
            template_id=template_id,
            template_version_id=template_version_id,
            template_name=template_name,
            source_language=source_language,
            target_languages=list(target_languages),
            status=status.value,
            total_languages=len(target_languages),
            completed_languages=0,
            failed_languages=0,
        )
        self.session.add(task)
        await self.session.commit()
        await self.session.refresh(task)

        logger.info(
            "Created translation task",
            extra={
                "task_id": task.id,
                "template_id": template_id,
                "total_languages": task.total_languages,
            },
        )
        return task

    async def get_task(self, task_id: str, *, fresh: bool = False) -> TranslationTask | None:
        """
        Get a task by id.

        Args:
            task_id: Task UUID.
            fresh: Bypass the session identity map and reload from the database.
        """
        stmt = select(TranslationTask).where(TranslationTask.id == task_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_task_status(
        self, task_id: str, status: TaskStatus, error_message: str | None = None
    ) -> None:
        """
        Set a task's status and error message.

        The store does not police transitions; callers follow the task
        state machine.
        """
        await self.session.execute(
            update(TranslationTask)
            .where(TranslationTask.id == task_id)
            .values(status=status.value, error_message=error_message, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        logger.info(
            "Updated task status",
            extra={"task_id": task_id, "status": status.value, "error": error_message},
        )

    async def finalize_task_status(
        self,
        task_id: str,
        status: TaskStatus,
        error_message: str | None = None,
        *,
        require_claim: bool = True,
    ) -> bool:
        """
        Record a task's final status if its round is still the one being finalized.

        The update only applies while the task is active. With
        ``require_claim`` it also needs the completion claim of the current
        round, so a signal from a round that a retranslation has since
        reopened cannot finalize the new one.

        Returns:
            True if the status was written.
        """
        criteria = [
            TranslationTask.id == task_id,
            TranslationTask.status.in_([s.value for s in ACTIVE_TASK_STATUSES]),
        ]
        if require_claim:
            criteria.append(TranslationTask.completion_signaled_at.is_not(None))

        result = await self.session.execute(
            update(TranslationTask)
            .where(*criteria)
            .values(status=status.value, error_message=error_message, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

        applied = result.rowcount == 1
        if applied:
            logger.info(
                "Finalized task",
                extra={"task_id": task_id, "status": status.value, "error": error_message},
            )
        else:
            logger.warning(
                "Task not finalized; round is no longer current",
                extra={"task_id": task_id, "status": status.value},
            )
        return applied

    async def sync_task_counts(self, task_id: str) -> TranslationTask | None:
        """
        Recompute completed/failed counts from the latest row per language.

        The task row is locked first so concurrent recomputations for the same
        task serialize and each one reads every previously committed outcome.

        Returns:
            The updated task, or None if it does not exist.
        """
        task = await self._lock_task(task_id)
        if task is None:
            await self.session.rollback()
            logger.error("Task not found during count sync", extra={"task_id": task_id})
            return None

        await self._recompute_counts(task)
        await self.session.commit()

        logger.info(
            "Synced task counts",
            extra={
                "task_id": task_id,
                "completed_languages": task.completed_languages,
                "failed_languages": task.failed_languages,
                "total_languages": task.total_languages,
            },
        )
        return task

    async def claim_completion_signal(self, task_id: str) -> TranslationTask | None:
        """
        Atomically claim the right to emit the completion signal.

        The claim succeeds only while the task is active, has not been
        claimed in the current round, and every language has resolved.

        Returns:
            The task with its final counts if this caller won the claim,
            otherwise None.
        """
        now = utcnow()
        result = await self.session.execute(
            update(TranslationTask)
            .where(
                TranslationTask.id == task_id,
                TranslationTask.completion_signaled_at.is_(None),
                TranslationTask.status.in_([s.value for s in ACTIVE_TASK_STATUSES]),
                TranslationTask.completed_languages + TranslationTask.failed_languages
                == TranslationTask.total_languages,
            )
            .values(completion_signaled_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

        if result.rowcount != 1:
            return None
        return await self.get_task(task_id, fresh=True)

    async def list_tasks_by_template(self, template_id: str) -> list[TranslationTask]:
        """All tasks for a template, newest first."""
        stmt = (
            select(TranslationTask)
            .where(TranslationTask.template_id == template_id)
            .order_by(TranslationTask.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_recent_tasks(self, limit: int = 25) -> list[TranslationTask]:
        """Most recently created tasks."""
        stmt = select(TranslationTask).order_by(TranslationTask.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Translations
    # ------------------------------------------------------------------

    async def get_next_version(
        self, template_id: str, template_version_id: str, language_code: str
    ) -> int:
        """
        Next version number for a (template, template version, language) key.

        Soft-deleted rows count too: their versions stay reserved so the
        uniqueness constraint never collides with audit history.
        """
        stmt = select(func.coalesce(func.max(TemplateTranslation.version), 0)).where(
            TemplateTranslation.template_id == template_id,
            TemplateTranslation.template_version_id == template_version_id,
            TemplateTranslation.language_code == language_code,
        )
        result = await self.session.execute(stmt)
        max_version = result.scalar_one() or 0
        return int(max_version) + 1

    async def create_translation(
        self,
        task_id: str,
        template_id: str,
        template_version_id: str,
        language_code: str,
        original_html: str,
        original_subject: str | None,
        version: int,
        status: TranslationStatus = TranslationStatus.PENDING,
    ) -> TemplateTranslation:
        """
        Insert a translation row at an explicit version.

        Raises:
            VersionConflictError: If another writer already inserted this version.
        """
        translation = TemplateTranslation(
            task_id=task_id,
            template_id=template_id,
            template_version_id=template_version_id,
            language_code=language_code,
            original_html=original_html,
            original_subject=original_subject,
            status=status.value,
            version=version,
            retranslate_attempts=0,
        )
        self.session.add(translation)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise VersionConflictError(
                template_id, template_version_id, language_code, version
            ) from e

        await self.session.refresh(translation)
        return translation

    async def create_next_translation(
        self,
        task_id: str,
        template_id: str,
        template_version_id: str,
        language_code: str,
        original_html: str,
        original_subject: str | None,
        max_attempts: int = 3,
    ) -> TemplateTranslation:
        """
        Insert a translation row at the next free version, retrying on collision.

        Raises:
            VersionConflictError: If every attempt lost the race.
        """
        attempt = 1
        while True:
            version = await self.get_next_version(template_id, template_version_id, language_code)
            try:
                return await self.create_translation(
                    task_id=task_id,
                    template_id=template_id,
                    template_version_id=template_version_id,
                    language_code=language_code,
                    original_html=original_html,
                    original_subject=original_subject,
                    version=version,
                )
            except VersionConflictError:
                if attempt >= max_attempts:
                    raise
                logger.warning(
                    "Translation version collision, retrying",
                    extra={
                        "task_id": task_id,
                        "language_code": language_code,
                        "version": version,
                        "attempt": attempt,
                    },
                )
                attempt += 1

    async def get_translation(self, translation_id: str) -> TemplateTranslation | None:
        """Get a translation row by id, including soft-deleted rows."""
        stmt = (
            select(TemplateTranslation)
            .where(TemplateTranslation.id == translation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_latest_by_task_and_language(
        self, task_id: str, language_code: str
    ) -> TemplateTranslation | None:
        """Latest live row for a task and language, or None."""
        stmt = (
            select(TemplateTranslation)
            .where(
                TemplateTranslation.task_id == task_id,
                TemplateTranslation.language_code == language_code,
                TemplateTranslation.deleted_at.is_(None),
            )
            .order_by(TemplateTranslation.version.desc(), TemplateTranslation.updated_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def latest_translations_by_task_ids(
        self, task_ids: Sequence[str]
    ) -> dict[str, list[TemplateTranslation]]:
        """
        Latest live row per language for each task.

        Returns:
            Mapping of task id to its latest rows ordered by language code.
        """
        if not task_ids:
            return {}

        latest_ids = _latest_translation_ids(TemplateTranslation.task_id.in_(list(task_ids)))
        stmt = (
            select(TemplateTranslation)
            .where(TemplateTranslation.id.in_(latest_ids))
            .order_by(TemplateTranslation.language_code)
        )
        result = await self.session.execute(stmt)

        grouped: dict[str, list[TemplateTranslation]] = {}
        for translation in result.scalars().all():
            grouped.setdefault(translation.task_id, []).append(translation)
        return grouped

    async def list_translations_by_template(self, template_id: str) -> list[TemplateTranslation]:
        """All live rows of a template, newest first."""
        stmt = (
            select(TemplateTranslation)
            .where(
                TemplateTranslation.template_id == template_id,
                TemplateTranslation.deleted_at.is_(None),
            )
            .order_by(TemplateTranslation.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_translation_processing(self, translation_id: str) -> bool:
        """pending -> processing. Returns False if the row is not in flight."""
        return await self._advance_translation(
            translation_id,
            status=TranslationStatus.PROCESSING,
        )

    async def mark_translation_completed(
        self, translation_id: str, translated_html: str, translated_subject: str
    ) -> bool:
        """processing -> completed with the translated content."""
        return await self._advance_translation(
            translation_id,
            status=TranslationStatus.COMPLETED,
            translated_html=translated_html,
            translated_subject=translated_subject,
            error_message=None,
        )

    async def mark_translation_failed(self, translation_id: str, error_message: str) -> bool:
        """processing -> failed with the error message."""
        return await self._advance_translation(
            translation_id,
            status=TranslationStatus.FAILED,
            error_message=error_message,
        )

    async def request_retranslate(self, translation_id: str, reason: str) -> RetranslationOutcome:
        """
        Supersede a translation row with a new version.

        In one transaction: inserts the next version (same original content,
        processing, carrying ``reason``), bumps the old row's attempt counter,
        reopens the owning task (processing, error and completion claim
        cleared), and recomputes its counts so the language slot is open again.

        Raises:
            NotFoundError: If the row or its task is missing or soft-deleted.
            ConflictError: If the language's latest attempt is still in flight.
            VersionConflictError: If a concurrent request claimed the version.
        """
        existing = await self.get_translation(translation_id)
        if existing is None or existing.deleted_at is not None:
            raise NotFoundError(f"Translation {translation_id} not found")

        latest = await self.find_latest_by_task_and_language(
            existing.task_id, existing.language_code
        )
        if existing.status in IN_FLIGHT_STATUSES or (
            latest is not None and latest.status in IN_FLIGHT_STATUSES
        ):
            raise ConflictError("Translation is still processing")

        # Rollback expires loaded rows; keep the key for error reporting
        task_id = existing.task_id
        template_id = existing.template_id
        template_version_id = existing.template_version_id
        language_code = existing.language_code

        task = await self._lock_task(task_id)
        if task is None:
            await self.session.rollback()
            raise NotFoundError(f"Translation task {task_id} not found")

        previous_status = existing.status
        previous_task_status = task.status
        previous_claimed = task.completion_signaled_at is not None
        next_version = await self.get_next_version(
            template_id, template_version_id, language_code
        )
        now = utcnow()

        new_translation = TemplateTranslation(
            task_id=task_id,
            template_id=template_id,
            template_version_id=template_version_id,
            language_code=language_code,
            original_html=existing.original_html,
            original_subject=existing.original_subject,
            status=TranslationStatus.PROCESSING.value,
            retranslate_reason=reason,
            retranslate_attempts=0,
            version=next_version,
            created_at=now,
            updated_at=now,
        )
        self.session.add(new_translation)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise VersionConflictError(
                template_id, template_version_id, language_code, next_version
            ) from e

        existing.retranslate_attempts = existing.retranslate_attempts + 1
        existing.updated_at = now

        await self._reopen(task)

        await self.session.commit()
        await self.session.refresh(new_translation)

        logger.info(
            "Requested retranslation",
            extra={
                "task_id": task.id,
                "translation_id": new_translation.id,
                "previous_translation_id": existing.id,
                "language_code": existing.language_code,
                "version": next_version,
                "previous_status": previous_status,
            },
        )
        return RetranslationOutcome(
            new_translation=new_translation,
            previous_translation=existing,
            previous_status=previous_status,
            previous_task_status=previous_task_status,
            previous_claimed=previous_claimed,
        )

    async def mark_verified(self, translation_id: str) -> TemplateTranslation:
        """
        Record human sign-off on a completed translation.

        Raises:
            NotFoundError: If the row is missing or soft-deleted.
            ConflictError: If the row is not completed.
        """
        translation = await self._get_live_translation(translation_id)
        if translation.status != TranslationStatus.COMPLETED.value:
            raise ConflictError("Only completed translations can be verified")

        now = utcnow()
        translation.verified_at = now
        translation.updated_at = now
        await self.session.commit()
        return translation

    async def soft_delete(self, translation_id: str) -> TemplateTranslation:
        """
        Soft-delete a translation row and re-sync its task's counts.

        Raises:
            NotFoundError: If the row is missing or already soft-deleted.
        """
        translation = await self._get_live_translation(translation_id)
        now = utcnow()
        translation.deleted_at = now
        translation.updated_at = now
        await self.session.commit()

        await self.sync_task_counts(translation.task_id)
        logger.info(
            "Soft-deleted translation",
            extra={"translation_id": translation_id, "task_id": translation.task_id},
        )
        return translation

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _get_live_translation(self, translation_id: str) -> TemplateTranslation:
        translation = await self.get_translation(translation_id)
        if translation is None or translation.is_deleted:
            raise NotFoundError(f"Translation {translation_id} not found")
        return translation

    async def _lock_task(self, task_id: str) -> TranslationTask | None:
        stmt = (
            select(TranslationTask)
            .where(TranslationTask.id == task_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _reopen(self, task: TranslationTask) -> None:
        task.status = TaskStatus.PROCESSING.value
        task.error_message = None
        task.completion_signaled_at = None
        await self._recompute_counts(task)

    async def _recompute_counts(self, task: TranslationTask) -> None:
        latest_ids = _latest_translation_ids(TemplateTranslation.task_id == task.id)
        stmt = select(
            func.coalesce(
                func.sum(
                    case(
                        (TemplateTranslation.status == TranslationStatus.COMPLETED.value, 1),
                        else_=0,
                    )
                ),
                0,
            ),
            func.coalesce(
                func.sum(
                    case(
                        (TemplateTranslation.status == TranslationStatus.FAILED.value, 1),
                        else_=0,
                    )
                ),
                0,
            ),
        ).where(TemplateTranslation.id.in_(latest_ids))
        completed, failed = (await self.session.execute(stmt)).one()

        task.completed_languages = int(completed)
        task.failed_languages = int(failed)
        task.updated_at = utcnow()

    async def _advance_translation(
        self, translation_id: str, status: TranslationStatus, **values: Any
    ) -> bool:
        # Rows only move forward out of pending/processing
        result = await self.session.execute(
            update(TemplateTranslation)
            .where(
                TemplateTranslation.id == translation_id,
                TemplateTranslation.status.in_(IN_FLIGHT_STATUSES),
            )
            .values(status=status.value, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

        advanced = result.rowcount == 1
        if not advanced:
            logger.warning(
                "Translation not advanced; row is not in flight",
                extra={"translation_id": translation_id, "status": status.value},
            )
        return advanced
