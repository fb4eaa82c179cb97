"""
Template translation model definition.

Each row is one versioned attempt at translating a template version into a
single language. Retranslation never rewrites a row; it inserts the next
version and leaves the previous attempt for audit.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, generate_uuid


class TranslationStatus(str, Enum):
    """Translation attempt status enumeration."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


IN_FLIGHT_STATUSES = (TranslationStatus.PENDING.value, TranslationStatus.PROCESSING.value)


class TemplateTranslation(Base, TimestampMixin):
    """
    Single translation attempt for (template, template version, language).

    Attributes:
        id: Unique translation identifier (UUID).
        task_id: Owning task reference.
        template_id: Template host identifier of the template.
        template_version_id: Template host identifier of the template version.
        language_code: Target language code (e.g. "fr", "de").
        version: Attempt number within the (template, version, language) key.
        original_html: Source HTML content.
        original_subject: Source subject line.
        translated_html: Translated HTML, set once completed.
        translated_subject: Translated subject line, set once completed.
        status: Attempt status (pending/processing/completed/failed).
        error_message: Error message if the attempt failed.
        retranslate_reason: Reviewer feedback that triggered this attempt.
        retranslate_attempts: How many times this row was retranslated.
        verified_at: Human sign-off timestamp.
        deleted_at: Soft delete timestamp.
    """

    __tablename__ = "template_translations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    task_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("translation_tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    template_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    template_version_id: Mapped[str] = mapped_column(String(255), nullable=False)
    language_code: Mapped[str] = mapped_column(String(10), nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    original_html: Mapped[str] = mapped_column(Text, nullable=False)
    original_subject: Mapped[str | None] = mapped_column(Text)
    translated_html: Mapped[str | None] = mapped_column(Text)
    translated_subject: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(20), default=TranslationStatus.PENDING.value, nullable=False
    )
    error_message: Mapped[str | None] = mapped_column(Text)
    retranslate_reason: Mapped[str | None] = mapped_column(Text)
    retranslate_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    task = relationship("TranslationTask", back_populates="translations")

    # Constraints
    __table_args__ = (
        UniqueConstraint(
            "template_id",
            "template_version_id",
            "language_code",
            "version",
            name="uq_template_translation_version",
        ),
        Index("ix_template_translations_task_language", "task_id", "language_code"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
