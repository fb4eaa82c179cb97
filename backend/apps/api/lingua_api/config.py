"""
API configuration.

Extends the shared translation settings with HTTP-layer options.
"""

from lingua_core.config import TranslationSettings


class Settings(TranslationSettings):
    """
    API settings.

    All settings are prefixed with LINGUA_ in environment.
    """

    version: str = "0.1.0"
    debug: bool = False
    cors_origins: list[str] = ["http://localhost:3000"]


settings = Settings()
