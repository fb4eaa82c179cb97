"""
Translation task model definition.

A task is one coordinated request to translate a single template version
into a fixed set of target languages.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, generate_uuid


class TaskStatus(str, Enum):
    """Task status enumeration."""

    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_TASK_STATUSES = (TaskStatus.PENDING, TaskStatus.QUEUED, TaskStatus.PROCESSING)
TERMINAL_TASK_STATUSES = (TaskStatus.COMPLETED, TaskStatus.FAILED)


class TranslationTask(Base, TimestampMixin):
    """
    Coordinated multi-language translation request.

    Attributes:
        id: Unique task identifier (UUID).
        template_id: Template host identifier of the template.
        template_version_id: Template host identifier of the template version.
        template_name: Display name of the template.
        source_language: Language the template is written in.
        target_languages: Ordered list of language codes, fixed at creation.
        status: Task status (see TaskStatus).
        total_languages: Number of target languages, immutable.
        completed_languages: Languages whose latest attempt completed.
        failed_languages: Languages whose latest attempt failed.
        error_message: Failure summary once the task has failed.
        completion_signaled_at: Set when the completion signal for the
            current round has been claimed; cleared when the task is reopened.
    """

    __tablename__ = "translation_tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    template_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    template_version_id: Mapped[str] = mapped_column(String(255), nullable=False)
    template_name: Mapped[str] = mapped_column(String(500), nullable=False)
    source_language: Mapped[str] = mapped_column(String(10), default="en", nullable=False)
    target_languages: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=TaskStatus.PENDING.value, nullable=False, index=True
    )
    total_languages: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_languages: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_languages: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text)
    completion_signaled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    translations = relationship(
        "TemplateTranslation",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def resolved_languages(self) -> int:
        """Languages that reached a terminal outcome."""
        return self.completed_languages + self.failed_languages
