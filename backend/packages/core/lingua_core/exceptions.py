"""
Error taxonomy for translation orchestration.

Validation, not-found, conflict, and timeout errors surface to callers.
Collaborator failures are recorded on a single translation row and never
abort sibling languages.
"""


class LinguaError(Exception):
    """Base class for all Lingua errors."""


class ValidationError(LinguaError):
    """Caller input is malformed; rejected before any work is queued."""


class NotFoundError(LinguaError):
    """Referenced task or translation does not exist or is soft-deleted."""


class ConflictError(LinguaError):
    """Requested change conflicts with the current state of a translation."""


class VersionConflictError(ConflictError):
    """Another writer already claimed the translation version being inserted."""

    def __init__(self, template_id: str, template_version_id: str, language_code: str, version: int):
        self.template_id = template_id
        self.template_version_id = template_version_id
        self.language_code = language_code
        self.version = version
        super().__init__(
            f"Version {version} already exists for template {template_id} "
            f"({template_version_id}) in {language_code}"
        )


class TranslationTimeoutError(LinguaError):
    """The coordinator gave up waiting for a task's completion signal."""


class CollaboratorError(LinguaError):
    """An external collaborator (LLM, template host) failed."""
