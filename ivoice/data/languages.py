"""Catalogue of languages supported by the translator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List


@dataclass(frozen=True)
class LanguageOption:
    code: str
    name: str
    native_name: str
    tts_locale: str
    flag: str


@dataclass(frozen=True)
class LanguagePair:
    """The user's mother language and the language currently translated to."""

    mother: LanguageOption
    target: LanguageOption

    def swapped(self) -> "LanguagePair":
        return LanguagePair(mother=self.target, target=self.mother)

    def other_than(self, detected_code: str) -> LanguageOption:
        """Return the language of the pair the speaker was *not* using."""

        return self.target if detected_code == self.mother.code else self.mother


SUPPORTED_LANGUAGES: List[LanguageOption] = [
    LanguageOption("en", "English", "English", "en-US", "🇺🇸"),
    LanguageOption("id", "Indonesian", "Bahasa Indonesia", "id-ID", "🇮🇩"),
    LanguageOption("zh", "Chinese", "中文", "zh-CN", "🇨🇳"),
    LanguageOption("es", "Spanish", "Español", "es-ES", "🇪🇸"),
    LanguageOption("ko", "Korean", "한국어", "ko-KR", "🇰🇷"),
    LanguageOption("ja", "Japanese", "日本語", "ja-JP", "🇯🇵"),
    LanguageOption("nl", "Dutch", "Nederlands", "nl-NL", "🇳🇱"),
    LanguageOption("ar", "Arabic", "العربية", "ar-SA", "🇸🇦"),
]

_BY_CODE: Dict[str, LanguageOption] = {language.code: language for language in SUPPORTED_LANGUAGES}


class UnknownLanguageError(KeyError):
    """Raised when a language code is not part of the catalogue."""


def get_language(code: str) -> LanguageOption:
    normalized = (code or "").strip().lower()
    try:
        return _BY_CODE[normalized]
    except KeyError as exc:
        raise UnknownLanguageError(f"Unsupported language code: {code}") from exc


def resolve_pair(mother_code: str, target_code: str) -> LanguagePair:
    return LanguagePair(mother=get_language(mother_code), target=get_language(target_code))


def supported_codes() -> List[str]:
    return [language.code for language in SUPPORTED_LANGUAGES]


__all__ = [
    "LanguageOption",
    "LanguagePair",
    "SUPPORTED_LANGUAGES",
    "UnknownLanguageError",
    "get_language",
    "resolve_pair",
    "supported_codes",
]
