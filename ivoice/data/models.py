"""Data models used by IVoice."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field


class TranslationMode(str, Enum):
    VOICE = "voice"
    TEXT = "text"
    IMAGE = "image"


class TranslationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_text: str
    detected_language: str
    translated_text: str
    phonetic: Optional[str] = None


class HistoryItem(TranslationResult):
    """A translation stored in history with the other language of the pair resolved."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    timestamp: int
    target_lang_name: str = Field(alias="targetLangName")
    target_lang_locale: str = Field(alias="targetLangLocale")
    target_lang_flag: str = Field(alias="targetLangFlag")

    def to_result(self) -> TranslationResult:
        return TranslationResult(
            original_text=self.original_text,
            detected_language=self.detected_language,
            translated_text=self.translated_text,
            phonetic=self.phonetic,
        )


class UsageLedger(BaseModel):
    date: str
    count: int = Field(default=0, ge=0)


@dataclass(frozen=True)
class Entitlement:
    is_premium: bool = False
    downloaded_languages: FrozenSet[str] = field(default_factory=frozenset)

    def allows_offline(self, language_code: str) -> bool:
        return self.is_premium and language_code in self.downloaded_languages


@dataclass(frozen=True)
class OfflinePack:
    code: str
    name: str
    size: str
    is_downloaded: bool


@dataclass(frozen=True)
class SpeechRequest:
    """Playback the caller should perform once a voice translation succeeds."""

    text: str
    locale: str


__all__ = [
    "Entitlement",
    "HistoryItem",
    "OfflinePack",
    "SpeechRequest",
    "TranslationMode",
    "TranslationResult",
    "UsageLedger",
]
