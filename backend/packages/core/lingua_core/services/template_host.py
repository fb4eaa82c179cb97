"""
Template host client.

Read-only access to SendGrid dynamic templates. The orchestration core only
consumes template ids, version ids, HTML, and subject lines from here; the
remote templates are never modified.
"""

import asyncio
from typing import Any

import httpx

from lingua_core import get_logger
from lingua_core.exceptions import CollaboratorError
from lingua_core.schemas import Template, TemplateVersion

logger = get_logger(__name__)


class TemplateHostError(CollaboratorError):
    """The template host answered with an error status or unreadable payload."""

    def __init__(self, message: str, status_code: int = 502):
        self.status_code = status_code
        super().__init__(message)


class SendGridClient:
    """Async SendGrid v3 templates client."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.sendgrid.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self._transport,
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            errors = data.get("errors")
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                message = errors[0].get("message")
                if isinstance(message, str):
                    return message
        return f"SendGrid API error: {response.status_code}"

    @staticmethod
    def _extract_templates(data: Any) -> list[dict[str, Any]]:
        if isinstance(data, dict):
            for key in ("templates", "result"):
                value = data.get(key)
                if isinstance(value, list):
                    return value
        if isinstance(data, list):
            return data
        raise TemplateHostError("Unexpected response format from SendGrid API", status_code=500)

    async def list_templates(self) -> list[Template]:
        """
        List dynamic templates (without versions).

        Raises:
            TemplateHostError: On an error status or unexpected payload.
        """
        async with self._client() as client:
            response = await client.get("/v3/templates", params={"generations": "dynamic"})
        if response.status_code >= 400:
            raise TemplateHostError(self._error_message(response), status_code=response.status_code)

        templates = [Template.model_validate(item) for item in self._extract_templates(response.json())]
        logger.info("Fetched templates", extra={"count": len(templates)})
        return templates

    async def get_template_versions(self, template_id: str) -> list[TemplateVersion]:
        """
        Get all versions of a template.

        Raises:
            TemplateHostError: On an error status.
        """
        async with self._client() as client:
            response = await client.get(f"/v3/templates/{template_id}")
        if response.status_code >= 400:
            raise TemplateHostError(self._error_message(response), status_code=response.status_code)

        data = response.json()
        versions = data.get("versions") if isinstance(data, dict) else None
        return [TemplateVersion.model_validate(item) for item in versions or []]

    async def list_templates_with_versions(self) -> list[Template]:
        """
        List templates with their versions attached.

        A failure fetching one template's versions leaves that template with
        an empty version list instead of failing the whole listing.
        """
        templates = await self.list_templates()

        async def _with_versions(template: Template) -> Template:
            try:
                versions = await self.get_template_versions(template.id)
            except (TemplateHostError, httpx.HTTPError):
                logger.exception(
                    "Failed to fetch template versions",
                    extra={"template_id": template.id},
                )
                versions = []
            return template.model_copy(update={"versions": versions})

        return list(await asyncio.gather(*(_with_versions(t) for t in templates)))
