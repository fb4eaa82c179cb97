"""
Supported language catalogue.
"""

from typing import NamedTuple


class Language(NamedTuple):
    """Language code with its English and native display names."""

    code: str
    name: str
    native_name: str


LANGUAGES: dict[str, Language] = {
    lang.code: lang
    for lang in (
        Language("en", "English", "English"),
        Language("en-GB", "English (UK)", "English (UK)"),
        Language("fr", "French", "Français"),
        Language("fr-CA", "French (Quebec)", "Français (Québec)"),
        Language("de", "German", "Deutsch"),
        Language("es", "Spanish", "Español"),
        Language("it", "Italian", "Italiano"),
        Language("pt", "Portuguese", "Português"),
        Language("pt-BR", "Portuguese (Brazil)", "Português (Brasil)"),
        Language("nl", "Dutch", "Nederlands"),
        Language("pl", "Polish", "Polski"),
        Language("sv", "Swedish", "Svenska"),
        Language("ja", "Japanese", "日本語"),
        Language("ko", "Korean", "한국어"),
        Language("zh-CN", "Chinese (Simplified)", "简体中文"),
        Language("zh-TW", "Chinese (Traditional)", "繁體中文"),
        Language("vi", "Vietnamese", "Tiếng Việt"),
    )
}

SUPPORTED_LANGUAGES: list[Language] = list(LANGUAGES.values())


def get_language(code: str) -> Language | None:
    """Look up a language by code."""
    return LANGUAGES.get(code)


def target_languages(source_language: str = "en") -> list[Language]:
    """All supported languages other than the source language."""
    return [lang for lang in SUPPORTED_LANGUAGES if lang.code != source_language]
