"""
Template translation provider abstraction.

A provider turns one email template (HTML body plus subject line) into a
target language while leaving Handlebars placeholders, markup, and links
untouched. OpenAI is the production backend; the factory reads its
credentials from ``TranslationSettings``.
"""

import json
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from lingua_core import get_logger
from lingua_core.config import TranslationSettings
from lingua_core.exceptions import CollaboratorError
from lingua_core.languages import Language

logger = get_logger(__name__)


class TemplateTranslationResult(BaseModel):
    """Translated template content."""

    html: str
    subject: str
    notes: list[str] = Field(default_factory=list)


def build_system_prompt(language: Language, source_language: Language) -> str:
    """System instructions for translating a dynamic email template."""
    return f"""You are a professional email template translator specializing in SendGrid dynamic templates.

CRITICAL RULES:
1. NEVER translate or modify Handlebars variables like {{{{name}}}}, {{{{email}}}}, {{{{unsubscribe_url}}}}
2. NEVER translate or modify HTML tags, attributes, CSS classes, or IDs
3. NEVER translate URLs, email addresses, or links
4. Preserve all HTML structure and formatting exactly
5. Translate ONLY human-readable text content and subject line
6. Maintain professional email tone and marketing language
7. Keep translations concise and natural for {language.name}

Translate the email template from {source_language.name} to {language.name} ({language.native_name}).

Respond with a JSON object with the keys "html" (the translated HTML), "subject" (the translated subject line) and optionally "notes" (a list of short translation notes)."""


def build_user_prompt(html: str, subject: str, extra_instructions: str | None = None) -> str:
    """User message carrying the template and optional reviewer feedback."""
    prompt = f"""Translate this SendGrid email template:

HTML:
{html}

SUBJECT:
{subject}

Provide clean translations while preserving all technical elements."""
    if extra_instructions and extra_instructions.strip():
        prompt += (
            "\n\nReviewer feedback on the previous translation "
            f"(apply it to this translation):\n{extra_instructions.strip()}"
        )
    return prompt


class TemplateTranslator(ABC):
    """Base class for template translation providers."""

    @abstractmethod
    async def translate(
        self,
        html: str,
        subject: str,
        target_language: Language,
        source_language: Language,
        extra_instructions: str | None = None,
    ) -> TemplateTranslationResult:
        """
        Translate a template.

        Args:
            html: Source HTML (may contain Handlebars expressions).
            subject: Source subject line.
            target_language: Language to translate into.
            source_language: Language the template is written in.
            extra_instructions: Reviewer feedback for a retranslation.

        Returns:
            Translated HTML and subject.

        Raises:
            CollaboratorError: If the provider fails or answers malformed output.
        """


class OpenAITemplateTranslator(TemplateTranslator):
    """OpenAI chat-completions translation provider."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url or None
        self.timeout = timeout

    def _client(self):
        from openai import AsyncOpenAI

        return AsyncOpenAI(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout)

    async def translate(
        self,
        html: str,
        subject: str,
        target_language: Language,
        source_language: Language,
        extra_instructions: str | None = None,
    ) -> TemplateTranslationResult:
        if not self.api_key:
            raise CollaboratorError("OpenAI API key is not configured")

        client = self._client()
        response = await client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "system",
                    "content": build_system_prompt(target_language, source_language),
                },
                {
                    "role": "user",
                    "content": build_user_prompt(html, subject, extra_instructions),
                },
            ],
            response_format={"type": "json_object"},
            temperature=0.3,
        )
        raw = response.choices[0].message.content or ""
        return parse_translation_output(raw)


def parse_translation_output(raw: str) -> TemplateTranslationResult:
    """
    Parse the provider's JSON answer.

    Raises:
        CollaboratorError: If the answer is not the expected JSON object.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CollaboratorError(f"Translation response is not valid JSON: {e}") from e

    try:
        return TemplateTranslationResult.model_validate(data)
    except PydanticValidationError as e:
        raise CollaboratorError(f"Translation response is missing fields: {e}") from e


def create_template_translator(settings: TranslationSettings) -> TemplateTranslator:
    """
    Create the template translator from settings.

    A missing API key is not fatal here; each attempt then fails on its own
    row so operators see the cause per language.
    """
    if not settings.openai_api_key:
        logger.warning("OpenAI API key not configured; translations will fail")

    logger.info("Using OpenAI template translator", extra={"model": settings.openai_model})
    return OpenAITemplateTranslator(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url or None,
        timeout=settings.openai_timeout_seconds,
    )
