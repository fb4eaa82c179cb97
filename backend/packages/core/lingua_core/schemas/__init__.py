"""
Pydantic schemas for API requests, responses, and queue messages.
"""

from .template import Template, TemplateListResponse, TemplateVersion
from .translation import (
    RETRANSLATE_REASON_MAX_LENGTH,
    RETRANSLATE_REASON_MIN_LENGTH,
    CompletionSignal,
    RetranslateRequest,
    RetranslateResponse,
    StartTranslationRequest,
    StartTranslationResponse,
    SuccessResponse,
    TaskSummariesData,
    TaskSummariesResponse,
    TaskSummary,
    TemplateTranslationResponse,
    TemplateTranslationsData,
    TemplateTranslationsResponse,
    TranslationTaskResponse,
    UpdateTranslationRequest,
)

__all__ = [
    # Translation
    "StartTranslationRequest",
    "StartTranslationResponse",
    "RetranslateRequest",
    "RetranslateResponse",
    "UpdateTranslationRequest",
    "SuccessResponse",
    "TranslationTaskResponse",
    "TemplateTranslationResponse",
    "TemplateTranslationsData",
    "TemplateTranslationsResponse",
    "TaskSummary",
    "TaskSummariesData",
    "TaskSummariesResponse",
    "CompletionSignal",
    "RETRANSLATE_REASON_MIN_LENGTH",
    "RETRANSLATE_REASON_MAX_LENGTH",
    # Template host
    "Template",
    "TemplateVersion",
    "TemplateListResponse",
]
