"""Tests for the translation job store."""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from lingua_core.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    VersionConflictError,
)
from lingua_core.services.job_store import JobStore
from lingua_database.models import TaskStatus, TemplateTranslation, TranslationTask

TEMPLATE_ID = "d-template-123"
TEMPLATE_VERSION_ID = "version-abc"


async def _add_translation(
    store: JobStore,
    task: TranslationTask,
    language_code: str,
    outcome: str | None = None,
    version: int | None = None,
) -> TemplateTranslation:
    """Insert a row for the task and drive it to ``outcome`` (None keeps it pending)."""
    if version is None:
        version = await store.get_next_version(
            task.template_id, task.template_version_id, language_code
        )
    translation = await store.create_translation(
        task_id=task.id,
        template_id=task.template_id,
        template_version_id=task.template_version_id,
        language_code=language_code,
        original_html="<p>Hello {{name}}</p>",
        original_subject="Welcome",
        version=version,
    )
    if outcome is not None:
        await store.mark_translation_processing(translation.id)
    if outcome == "completed":
        await store.mark_translation_completed(
            translation.id, f"<p>[{language_code}] Hello {{{{name}}}}</p>", "Bienvenue"
        )
    elif outcome == "failed":
        await store.mark_translation_failed(translation.id, "provider exploded")
    return await store.get_translation(translation.id)


@pytest.fixture
def store(db_session: AsyncSession) -> JobStore:
    return JobStore(db_session)


@pytest_asyncio.fixture
async def task(store: JobStore) -> TranslationTask:
    return await store.create_task(
        template_id=TEMPLATE_ID,
        template_version_id=TEMPLATE_VERSION_ID,
        template_name="Welcome email",
        target_languages=["fr", "de", "es"],
    )


class TestCreateTask:
    """Test task creation."""

    @pytest.mark.asyncio
    async def test_create_task_initial_counts(self, task: TranslationTask):
        """A new task has zeroed counters and a total matching its languages."""
        assert task.status == TaskStatus.QUEUED.value
        assert task.total_languages == 3
        assert task.completed_languages == 0
        assert task.failed_languages == 0
        assert task.target_languages == ["fr", "de", "es"]
        assert task.source_language == "en"
        assert task.completion_signaled_at is None

    @pytest.mark.asyncio
    async def test_create_task_rejects_empty_languages(self, store: JobStore):
        """Zero-language tasks are rejected."""
        with pytest.raises(ValidationError):
            await store.create_task(
                template_id=TEMPLATE_ID,
                template_version_id=TEMPLATE_VERSION_ID,
                template_name="Empty",
                target_languages=[],
            )

    @pytest.mark.asyncio
    async def test_update_task_status(self, store: JobStore, task: TranslationTask):
        """Status and error message are written together."""
        await store.update_task_status(task.id, TaskStatus.FAILED, "boom")

        refreshed = await store.get_task(task.id, fresh=True)
        assert refreshed.status == TaskStatus.FAILED.value
        assert refreshed.error_message == "boom"


class TestVersioning:
    """Test version numbering and the uniqueness guard."""

    @pytest.mark.asyncio
    async def test_next_version_starts_at_one(self, store: JobStore):
        """No rows means version 1."""
        assert await store.get_next_version(TEMPLATE_ID, TEMPLATE_VERSION_ID, "fr") == 1

    @pytest.mark.asyncio
    async def test_next_version_increments(self, store: JobStore, task: TranslationTask):
        """Next version is max + 1 within the key."""
        await _add_translation(store, task, "fr", "failed")
        await _add_translation(store, task, "fr", "completed")

        assert await store.get_next_version(TEMPLATE_ID, TEMPLATE_VERSION_ID, "fr") == 3
        assert await store.get_next_version(TEMPLATE_ID, TEMPLATE_VERSION_ID, "de") == 1

    @pytest.mark.asyncio
    async def test_next_version_counts_soft_deleted_rows(
        self, store: JobStore, task: TranslationTask
    ):
        """Deleted rows keep their version reserved."""
        translation = await _add_translation(store, task, "fr", "completed")
        await store.soft_delete(translation.id)

        assert await store.get_next_version(TEMPLATE_ID, TEMPLATE_VERSION_ID, "fr") == 2

    @pytest.mark.asyncio
    async def test_duplicate_version_raises_conflict(
        self, store: JobStore, task: TranslationTask
    ):
        """Two rows can never claim the same version."""
        template_id = task.template_id
        await _add_translation(store, task, "fr", version=1)

        with pytest.raises(VersionConflictError) as exc_info:
            await _add_translation(store, task, "fr", version=1)

        assert exc_info.value.version == 1
        assert exc_info.value.language_code == "fr"
        rows = await store.list_translations_by_template(template_id)
        assert [row.version for row in rows] == [1]

    @pytest.mark.asyncio
    async def test_create_next_translation_retries_on_collision(
        self, store: JobStore, task: TranslationTask
    ):
        """A stale version read is retried with a fresh one."""
        task_id = task.id
        await _add_translation(store, task, "fr", version=1)
        fresh_version = await store.get_next_version(TEMPLATE_ID, TEMPLATE_VERSION_ID, "fr")
        store.get_next_version = AsyncMock(side_effect=[1, fresh_version])

        translation = await store.create_next_translation(
            task_id=task_id,
            template_id=TEMPLATE_ID,
            template_version_id=TEMPLATE_VERSION_ID,
            language_code="fr",
            original_html="<p>Hi</p>",
            original_subject="Hi",
        )

        assert translation.version == 2
        assert store.get_next_version.await_count == 2

    @pytest.mark.asyncio
    async def test_create_next_translation_gives_up(
        self, store: JobStore, task: TranslationTask
    ):
        """Collisions past the attempt limit surface to the caller."""
        await _add_translation(store, task, "fr", version=1)
        store.get_next_version = AsyncMock(return_value=1)

        with pytest.raises(VersionConflictError):
            await store.create_next_translation(
                task_id=task.id,
                template_id=TEMPLATE_ID,
                template_version_id=TEMPLATE_VERSION_ID,
                language_code="fr",
                original_html="<p>Hi</p>",
                original_subject="Hi",
                max_attempts=2,
            )
        assert store.get_next_version.await_count == 2


class TestLatestSelection:
    """Test the latest-row definition."""

    @pytest.mark.asyncio
    async def test_find_latest_prefers_highest_version(
        self, store: JobStore, task: TranslationTask
    ):
        await _add_translation(store, task, "fr", "failed")
        second = await _add_translation(store, task, "fr", "completed")

        latest = await store.find_latest_by_task_and_language(task.id, "fr")
        assert latest.id == second.id
        assert latest.version == 2

    @pytest.mark.asyncio
    async def test_find_latest_skips_deleted(self, store: JobStore, task: TranslationTask):
        first = await _add_translation(store, task, "fr", "failed")
        second = await _add_translation(store, task, "fr", "completed")
        await store.soft_delete(second.id)

        latest = await store.find_latest_by_task_and_language(task.id, "fr")
        assert latest.id == first.id

    @pytest.mark.asyncio
    async def test_find_latest_none(self, store: JobStore, task: TranslationTask):
        assert await store.find_latest_by_task_and_language(task.id, "fr") is None

    @pytest.mark.asyncio
    async def test_latest_translations_by_task_ids(
        self, store: JobStore, task: TranslationTask
    ):
        """One latest row per language, grouped by task."""
        await _add_translation(store, task, "fr", "failed")
        fr_latest = await _add_translation(store, task, "fr", "completed")
        de = await _add_translation(store, task, "de", "completed")
        other = await store.create_task(
            template_id="d-other",
            template_version_id="v1",
            template_name="Other",
            target_languages=["es"],
        )

        grouped = await store.latest_translations_by_task_ids([task.id, other.id])

        assert set(grouped) == {task.id}
        assert {t.id for t in grouped[task.id]} == {fr_latest.id, de.id}
        assert await store.latest_translations_by_task_ids([]) == {}


class TestSyncTaskCounts:
    """Test aggregate recomputation."""

    @pytest.mark.asyncio
    async def test_counts_follow_latest_rows(self, store: JobStore, task: TranslationTask):
        """Superseded attempts do not count."""
        await _add_translation(store, task, "fr", "failed")
        await _add_translation(store, task, "fr", "completed")
        await _add_translation(store, task, "de", "failed")
        await _add_translation(store, task, "es")  # still pending

        synced = await store.sync_task_counts(task.id)

        assert synced.completed_languages == 1
        assert synced.failed_languages == 1
        assert synced.completed_languages + synced.failed_languages <= synced.total_languages

    @pytest.mark.asyncio
    async def test_counts_are_idempotent(self, store: JobStore, task: TranslationTask):
        """Repeated syncs never double count."""
        for code in ("fr", "de", "es"):
            await _add_translation(store, task, code, "completed")

        await store.sync_task_counts(task.id)
        await store.sync_task_counts(task.id)
        synced = await store.sync_task_counts(task.id)

        assert synced.completed_languages == 3
        assert synced.failed_languages == 0

    @pytest.mark.asyncio
    async def test_missing_task(self, store: JobStore):
        assert await store.sync_task_counts("does-not-exist") is None


class TestTranslationTransitions:
    """Test forward-only row transitions."""

    @pytest.mark.asyncio
    async def test_terminal_row_is_not_advanced(self, store: JobStore, task: TranslationTask):
        translation = await _add_translation(store, task, "fr", "completed")

        assert await store.mark_translation_failed(translation.id, "late failure") is False

        refreshed = await store.get_translation(translation.id)
        assert refreshed.status == "completed"
        assert refreshed.error_message is None

    @pytest.mark.asyncio
    async def test_completed_row_carries_content(self, store: JobStore, task: TranslationTask):
        translation = await _add_translation(store, task, "de", "completed")

        assert translation.status == "completed"
        assert translation.translated_subject == "Bienvenue"
        assert "{{name}}" in translation.translated_html


class TestRequestRetranslate:
    """Test the retranslation entry in the store."""

    @pytest.mark.asyncio
    async def test_retranslate_completed_row(self, store: JobStore, task: TranslationTask):
        """Retranslating a completed row reopens exactly that slot."""
        fr = await _add_translation(store, task, "fr", "completed")
        await _add_translation(store, task, "de", "completed")
        await _add_translation(store, task, "es", "completed")
        await store.sync_task_counts(task.id)
        await store.update_task_status(task.id, TaskStatus.COMPLETED)

        outcome = await store.request_retranslate(fr.id, "tone too formal")

        assert outcome.previous_status == "completed"
        assert outcome.previous_task_status == TaskStatus.COMPLETED.value
        new = outcome.new_translation
        assert new.version == 2
        assert new.status == "processing"
        assert new.retranslate_reason == "tone too formal"
        assert new.retranslate_attempts == 0
        assert new.original_html == fr.original_html

        old = await store.get_translation(fr.id)
        assert old.retranslate_attempts == 1
        assert old.status == "completed"

        refreshed = await store.get_task(task.id, fresh=True)
        assert refreshed.status == TaskStatus.PROCESSING.value
        assert refreshed.completed_languages == 2
        assert refreshed.failed_languages == 0
        assert refreshed.error_message is None
        assert refreshed.completion_signaled_at is None

    @pytest.mark.asyncio
    async def test_retranslate_failed_row(self, store: JobStore, task: TranslationTask):
        """Retranslating a failed row decrements the failed count by one."""
        await _add_translation(store, task, "fr", "completed")
        de = await _add_translation(store, task, "de", "failed")
        await _add_translation(store, task, "es", "completed")
        await store.sync_task_counts(task.id)
        await store.update_task_status(task.id, TaskStatus.FAILED, "1 languages failed")

        outcome = await store.request_retranslate(de.id, "tone too formal")

        refreshed = await store.get_task(task.id, fresh=True)
        assert outcome.previous_status == "failed"
        assert refreshed.failed_languages == 0
        assert refreshed.completed_languages == 2
        assert refreshed.status == TaskStatus.PROCESSING.value
        assert refreshed.error_message is None

    @pytest.mark.asyncio
    async def test_retranslate_in_flight_row_rejected(
        self, store: JobStore, task: TranslationTask
    ):
        """A processing row cannot be retranslated and nothing changes."""
        fr = await _add_translation(store, task, "fr")
        await store.mark_translation_processing(fr.id)

        with pytest.raises(ConflictError):
            await store.request_retranslate(fr.id, "tone too formal")

        rows = await store.list_translations_by_template(task.template_id)
        assert len(rows) == 1
        assert rows[0].retranslate_attempts == 0
        refreshed = await store.get_task(task.id, fresh=True)
        assert refreshed.status == TaskStatus.QUEUED.value

    @pytest.mark.asyncio
    async def test_retranslate_while_newer_attempt_in_flight(
        self, store: JobStore, task: TranslationTask
    ):
        """Only one attempt per language can be in flight."""
        fr = await _add_translation(store, task, "fr", "completed")
        await store.request_retranslate(fr.id, "tone too formal")

        with pytest.raises(ConflictError):
            await store.request_retranslate(fr.id, "different feedback")

        rows = await store.list_translations_by_template(task.template_id)
        assert sorted(row.version for row in rows) == [1, 2]

    @pytest.mark.asyncio
    async def test_retranslate_version_race(self, store: JobStore, task: TranslationTask):
        """A stale version read loses to the uniqueness guard without side effects."""
        task_id = task.id
        fr = await _add_translation(store, task, "fr", "completed")
        fr_id = fr.id
        await store.sync_task_counts(task_id)
        store.get_next_version = AsyncMock(return_value=1)

        with pytest.raises(VersionConflictError):
            await store.request_retranslate(fr_id, "tone too formal")

        old = await store.get_translation(fr_id)
        assert old.retranslate_attempts == 0
        refreshed = await store.get_task(task_id, fresh=True)
        assert refreshed.completed_languages == 1
        assert refreshed.status == TaskStatus.QUEUED.value

    @pytest.mark.asyncio
    async def test_retranslate_missing_row(self, store: JobStore):
        with pytest.raises(NotFoundError):
            await store.request_retranslate("missing-id", "tone too formal")

    @pytest.mark.asyncio
    async def test_retranslate_deleted_row(self, store: JobStore, task: TranslationTask):
        fr = await _add_translation(store, task, "fr", "completed")
        await store.soft_delete(fr.id)

        with pytest.raises(NotFoundError):
            await store.request_retranslate(fr.id, "tone too formal")


class TestCompletionClaim:
    """Test the at-most-once completion claim."""

    @pytest.mark.asyncio
    async def test_claim_once(self, store: JobStore, task: TranslationTask):
        for code in ("fr", "de", "es"):
            await _add_translation(store, task, code, "completed")
        await store.sync_task_counts(task.id)

        first = await store.claim_completion_signal(task.id)
        second = await store.claim_completion_signal(task.id)

        assert first is not None
        assert first.completion_signaled_at is not None
        assert second is None

    @pytest.mark.asyncio
    async def test_claim_requires_all_languages(self, store: JobStore, task: TranslationTask):
        await _add_translation(store, task, "fr", "completed")
        await store.sync_task_counts(task.id)

        assert await store.claim_completion_signal(task.id) is None

    @pytest.mark.asyncio
    async def test_claim_requires_active_task(self, store: JobStore, task: TranslationTask):
        for code in ("fr", "de", "es"):
            await _add_translation(store, task, code, "completed")
        await store.sync_task_counts(task.id)
        await store.update_task_status(task.id, TaskStatus.FAILED, "timed out")

        assert await store.claim_completion_signal(task.id) is None

    @pytest.mark.asyncio
    async def test_retranslation_reopens_claimed_round(
        self, store: JobStore, task: TranslationTask
    ):
        """Retranslating after the claim reports it and lets the new round claim again."""
        rows = {}
        for code in ("fr", "de", "es"):
            rows[code] = await _add_translation(store, task, code, "completed")
        await store.sync_task_counts(task.id)
        assert await store.claim_completion_signal(task.id) is not None

        outcome = await store.request_retranslate(rows["fr"].id, "tone too formal")

        assert outcome.previous_claimed is True
        assert outcome.previous_task_status == TaskStatus.QUEUED.value
        reopened = await store.get_task(task.id, fresh=True)
        assert reopened.status == TaskStatus.PROCESSING.value
        assert reopened.completion_signaled_at is None
        assert await store.claim_completion_signal(task.id) is None

        new_id = outcome.new_translation.id
        await store.mark_translation_completed(new_id, "<p>Bonjour</p>", "Bienvenue")
        await store.sync_task_counts(task.id)
        assert await store.claim_completion_signal(task.id) is not None

    @pytest.mark.asyncio
    async def test_unclaimed_retranslation_reports_no_claim(
        self, store: JobStore, task: TranslationTask
    ):
        fr = await _add_translation(store, task, "fr", "completed")

        outcome = await store.request_retranslate(fr.id, "tone too formal")

        assert outcome.previous_claimed is False


class TestFinalizeTaskStatus:
    """Test the conditional final status write."""

    @pytest.mark.asyncio
    async def test_finalize_with_current_claim(self, store: JobStore, task: TranslationTask):
        for code in ("fr", "de", "es"):
            await _add_translation(store, task, code, "completed")
        await store.sync_task_counts(task.id)
        await store.claim_completion_signal(task.id)

        assert await store.finalize_task_status(task.id, TaskStatus.COMPLETED) is True

        refreshed = await store.get_task(task.id, fresh=True)
        assert refreshed.status == TaskStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_reopened_round_is_not_finalized(self, store: JobStore, task: TranslationTask):
        """A signal from before a retranslation cannot finalize the reopened task."""
        rows = {}
        for code in ("fr", "de", "es"):
            rows[code] = await _add_translation(store, task, code, "completed")
        await store.sync_task_counts(task.id)
        await store.claim_completion_signal(task.id)
        await store.request_retranslate(rows["fr"].id, "tone too formal")

        assert await store.finalize_task_status(task.id, TaskStatus.COMPLETED) is False

        refreshed = await store.get_task(task.id, fresh=True)
        assert refreshed.status == TaskStatus.PROCESSING.value
        assert refreshed.completed_languages == 2

    @pytest.mark.asyncio
    async def test_timeout_needs_active_task(self, store: JobStore, task: TranslationTask):
        assert await store.finalize_task_status(
            task.id, TaskStatus.FAILED, "timed out", require_claim=False
        ) is True
        assert await store.finalize_task_status(
            task.id, TaskStatus.FAILED, "timed out again", require_claim=False
        ) is False

        refreshed = await store.get_task(task.id, fresh=True)
        assert refreshed.error_message == "timed out"


class TestOperatorActions:
    """Test verify and soft delete."""

    @pytest.mark.asyncio
    async def test_verify_completed(self, store: JobStore, task: TranslationTask):
        fr = await _add_translation(store, task, "fr", "completed")

        verified = await store.mark_verified(fr.id)

        assert verified.verified_at is not None

    @pytest.mark.asyncio
    async def test_verify_failed_rejected(self, store: JobStore, task: TranslationTask):
        fr = await _add_translation(store, task, "fr", "failed")

        with pytest.raises(ConflictError):
            await store.mark_verified(fr.id)

    @pytest.mark.asyncio
    async def test_verify_missing(self, store: JobStore):
        with pytest.raises(NotFoundError):
            await store.mark_verified("missing-id")

    @pytest.mark.asyncio
    async def test_soft_delete_resyncs_counts(self, store: JobStore, task: TranslationTask):
        fr = await _add_translation(store, task, "fr", "completed")
        await _add_translation(store, task, "de", "completed")
        await store.sync_task_counts(task.id)

        await store.soft_delete(fr.id)

        refreshed = await store.get_task(task.id, fresh=True)
        assert refreshed.completed_languages == 1
        deleted = await store.get_translation(fr.id)
        assert deleted.deleted_at is not None
        assert fr.id not in {t.id for t in await store.list_translations_by_template(TEMPLATE_ID)}

    @pytest.mark.asyncio
    async def test_soft_delete_twice(self, store: JobStore, task: TranslationTask):
        fr = await _add_translation(store, task, "fr", "completed")
        await store.soft_delete(fr.id)

        with pytest.raises(NotFoundError):
            await store.soft_delete(fr.id)
