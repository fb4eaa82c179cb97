"""
Service layer.

Business logic services for translation orchestration.
"""

from .completion import CompletionEvaluator, build_completion_signal
from .job_store import JobStore, RetranslationOutcome
from .template_host import SendGridClient, TemplateHostError
from .translation_providers import (
    OpenAITemplateTranslator,
    TemplateTranslationResult,
    TemplateTranslator,
    create_template_translator,
)
from .translation_service import TranslationService

__all__ = [
    "JobStore",
    "RetranslationOutcome",
    "CompletionEvaluator",
    "build_completion_signal",
    "TranslationService",
    # Collaborators
    "TemplateTranslator",
    "TemplateTranslationResult",
    "OpenAITemplateTranslator",
    "create_template_translator",
    "SendGridClient",
    "TemplateHostError",
]
