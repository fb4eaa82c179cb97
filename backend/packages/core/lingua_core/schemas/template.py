"""
Template host (SendGrid) schemas.

Only the fields the orchestration core consumes are required; everything
else is optional so upstream additions never break parsing.
"""

from pydantic import BaseModel, ConfigDict, Field


class TemplateVersion(BaseModel):
    """A single version of a dynamic template."""

    model_config = ConfigDict(extra="ignore")

    id: str
    template_id: str | None = None
    active: int = 0
    name: str | None = None
    html_content: str = ""
    plain_content: str | None = None
    generate_plain_content: bool | None = None
    subject: str = ""
    updated_at: str | None = None
    editor: str | None = None
    test_data: str | None = None


class Template(BaseModel):
    """A dynamic template with its versions."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    generation: str | None = None
    updated_at: str | None = None
    versions: list[TemplateVersion] = Field(default_factory=list)


class TemplateListResponse(BaseModel):
    """Templates with their versions."""

    result: list[Template]
