"""
FastAPI dependencies.

Provides dependency injection for settings, the task queue pool, database
sessions, and services.
"""

from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from lingua_core.services import SendGridClient, TranslationService
from lingua_database.session import get_session

from .config import Settings, settings


def get_settings() -> Settings:
    """Get API settings."""
    return settings


def get_redis_pool(request: Request) -> Any | None:
    """
    Get the arq Redis pool created at startup.

    Returns:
        The pool, or None if the application started without one.
    """
    return getattr(request.app.state, "redis_pool", None)


def get_translation_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    redis_pool: Annotated[Any | None, Depends(get_redis_pool)],
    app_settings: Annotated[Settings, Depends(get_settings)],
) -> TranslationService:
    """Get translation service instance."""
    return TranslationService(session, redis_pool, app_settings)


def get_template_host_client(
    app_settings: Annotated[Settings, Depends(get_settings)],
) -> SendGridClient:
    """
    Get the SendGrid client.

    Raises:
        HTTPException: If no API key is configured.
    """
    if not app_settings.sendgrid_api_key:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="API key is required")
    return SendGridClient(
        api_key=app_settings.sendgrid_api_key,
        base_url=app_settings.sendgrid_base_url,
        timeout=app_settings.sendgrid_timeout_seconds,
    )
