"""
Translation request, response, and signal schemas.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

RETRANSLATE_REASON_MIN_LENGTH = 5
RETRANSLATE_REASON_MAX_LENGTH = 500


class StartTranslationRequest(BaseModel):
    """Request to translate one template version into several languages."""

    template_id: str = Field(min_length=1)
    template_name: str
    template_version_id: str = Field(min_length=1)
    html_content: str
    subject: str
    target_languages: list[str]


class StartTranslationResponse(BaseModel):
    """Response after a translation task has been queued."""

    success: bool = True
    message: str = "Translation job queued successfully"
    task_id: str


class RetranslateRequest(BaseModel):
    """Request to retranslate an existing translation with reviewer feedback."""

    translation_id: str
    reason: str = Field(
        min_length=RETRANSLATE_REASON_MIN_LENGTH, max_length=RETRANSLATE_REASON_MAX_LENGTH
    )


class RetranslateResponse(BaseModel):
    """Response after a retranslation attempt has been queued."""

    success: bool = True
    translation_id: str


class UpdateTranslationRequest(BaseModel):
    """Operator action on a single translation."""

    action: Literal["verify"]


class SuccessResponse(BaseModel):
    """Generic acknowledgement."""

    success: bool = True


class TranslationTaskResponse(BaseModel):
    """Translation task snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    template_id: str
    template_version_id: str
    template_name: str
    source_language: str
    target_languages: list[str]
    status: str
    total_languages: int
    completed_languages: int
    failed_languages: int
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class TemplateTranslationResponse(BaseModel):
    """Translation attempt snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    task_id: str
    template_id: str
    template_version_id: str
    language_code: str
    version: int
    original_html: str
    original_subject: str | None = None
    translated_html: str | None = None
    translated_subject: str | None = None
    status: str
    error_message: str | None = None
    retranslate_reason: str | None = None
    retranslate_attempts: int
    verified_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class TemplateTranslationsData(BaseModel):
    """All tasks and live translations for one template."""

    tasks: list[TranslationTaskResponse]
    translations: list[TemplateTranslationResponse]


class TemplateTranslationsResponse(BaseModel):
    """Envelope for the per-template snapshot."""

    success: bool = True
    data: TemplateTranslationsData


class TaskSummary(BaseModel):
    """A task together with the latest translation per language."""

    task: TranslationTaskResponse
    translations: list[TemplateTranslationResponse]


class TaskSummariesData(BaseModel):
    summaries: list[TaskSummary]


class TaskSummariesResponse(BaseModel):
    """Envelope for the recent-tasks feed."""

    success: bool = True
    data: TaskSummariesData


class CompletionSignal(BaseModel):
    """Message telling a waiting coordinator that a task has resolved."""

    task_id: str
    success: bool
    error: str | None = None
    completed_languages: int
    failed_languages: int
    total_languages: int
