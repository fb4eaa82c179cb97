"""
Templates router.

Read-only listing of the template host's dynamic templates.
"""

from typing import Annotated

import httpx
from fastapi import APIRouter, Depends, HTTPException, status

from lingua_core.schemas import TemplateListResponse
from lingua_core.services import SendGridClient, TemplateHostError

from ..dependencies import get_template_host_client

router = APIRouter()


@router.get("")
async def list_templates(
    client: Annotated[SendGridClient, Depends(get_template_host_client)],
) -> TemplateListResponse:
    """
    List dynamic templates with their versions.

    Raises:
        HTTPException: With the upstream status if the template host fails.
    """
    try:
        templates = await client.list_templates_with_versions()
    except TemplateHostError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from None
    except httpx.HTTPError:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to fetch templates"
        ) from None
    return TemplateListResponse(result=templates)
