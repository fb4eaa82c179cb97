"""
Database models package.

This module exports all SQLAlchemy models for the Lingua application.
"""

from .base import Base, TimestampMixin
from .template_translation import IN_FLIGHT_STATUSES, TemplateTranslation, TranslationStatus
from .translation_task import (
    ACTIVE_TASK_STATUSES,
    TERMINAL_TASK_STATUSES,
    TaskStatus,
    TranslationTask,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "TranslationTask",
    "TaskStatus",
    "ACTIVE_TASK_STATUSES",
    "TERMINAL_TASK_STATUSES",
    "TemplateTranslation",
    "TranslationStatus",
    "IN_FLIGHT_STATUSES",
]
