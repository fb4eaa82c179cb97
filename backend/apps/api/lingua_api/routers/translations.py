"""
Translations router.

Provides endpoints for starting translation tasks, requesting
retranslations, and reading or acting on translation rows.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status

from lingua_core import get_logger
from lingua_core.exceptions import (
    CollaboratorError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from lingua_core.schemas import (
    RetranslateRequest,
    RetranslateResponse,
    StartTranslationRequest,
    StartTranslationResponse,
    SuccessResponse,
    TaskSummariesData,
    TaskSummariesResponse,
    TemplateTranslationsResponse,
    UpdateTranslationRequest,
)
from lingua_core.services import TranslationService

from ..dependencies import get_translation_service

logger = get_logger(__name__)

router = APIRouter()

NO_STORE = "no-store"


@router.post("/start")
async def start_translation(
    data: StartTranslationRequest,
    translation_service: Annotated[TranslationService, Depends(get_translation_service)],
) -> StartTranslationResponse:
    """
    Create a translation task and queue its coordinator.

    Args:
        data: Template content and target languages.
        translation_service: Translation service.

    Returns:
        The queued task id.

    Raises:
        HTTPException: 400 on invalid languages, 500 if queueing failed.
    """
    try:
        return await translation_service.start_translation(data)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None
    except CollaboratorError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
        ) from None


@router.post("/retranslate")
async def retranslate(
    data: RetranslateRequest,
    translation_service: Annotated[TranslationService, Depends(get_translation_service)],
) -> RetranslateResponse:
    """
    Supersede a finished translation with a new attempt.

    Args:
        data: Translation id and reviewer feedback.
        translation_service: Translation service.

    Returns:
        The new translation id.

    Raises:
        HTTPException: 404 if the translation is missing, 400 if it is still
            in flight or the reason is invalid.
    """
    try:
        return await translation_service.request_retranslation(data.translation_id, data.reason)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from None
    except (ValidationError, ConflictError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None
    except CollaboratorError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
        ) from None


@router.get("/tasks")
async def list_recent_tasks(
    response: Response,
    translation_service: Annotated[TranslationService, Depends(get_translation_service)],
) -> TaskSummariesResponse:
    """Recent tasks with the latest translation per language."""
    response.headers["Cache-Control"] = NO_STORE
    summaries = await translation_service.get_recent_task_summaries()
    return TaskSummariesResponse(data=TaskSummariesData(summaries=summaries))


@router.patch("/translation/{translation_id}")
async def update_translation(
    translation_id: str,
    data: UpdateTranslationRequest,
    translation_service: Annotated[TranslationService, Depends(get_translation_service)],
) -> SuccessResponse:
    """
    Apply an operator action to a translation.

    Raises:
        HTTPException: 404 if the translation is missing, 400 if it is not
            completed.
    """
    try:
        await translation_service.verify_translation(translation_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from None
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None
    logger.info(
        "Applied translation action",
        extra={"translation_id": translation_id, "action": data.action},
    )
    return SuccessResponse()


@router.delete("/translation/{translation_id}")
async def delete_translation(
    translation_id: str,
    translation_service: Annotated[TranslationService, Depends(get_translation_service)],
) -> SuccessResponse:
    """
    Soft-delete a translation.

    Raises:
        HTTPException: 404 if the translation is missing or already deleted.
    """
    try:
        await translation_service.delete_translation(translation_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from None
    return SuccessResponse()


@router.get("/{template_id}")
async def get_template_translations(
    template_id: str,
    response: Response,
    translation_service: Annotated[TranslationService, Depends(get_translation_service)],
) -> TemplateTranslationsResponse:
    """All tasks and live translations for a template."""
    response.headers["Cache-Control"] = NO_STORE
    data = await translation_service.get_template_snapshot(template_id)
    return TemplateTranslationsResponse(data=data)
