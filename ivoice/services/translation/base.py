"""Cloud translation capability abstractions."""

from __future__ import annotations

import abc
import json
from typing import Any, Dict

from pydantic import ValidationError

from ...data.models import TranslationResult

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "original_text": {"type": "string"},
        "detected_language": {"type": "string"},
        "translated_text": {"type": "string"},
        "phonetic": {"type": "string"},
    },
    "required": ["original_text", "detected_language", "translated_text", "phonetic"],
    "additionalProperties": False,
}


class TranslationServiceError(RuntimeError):
    """Raised when the translation capability fails."""


class EmptyResponseError(TranslationServiceError):
    """Raised when the capability answers successfully but with no content."""

    def __init__(self, message: str = "The translation engine returned an empty response.") -> None:
        super().__init__(message)


class TranslationService(abc.ABC):
    """Translate speech, text or images between a mother and a target language."""

    @abc.abstractmethod
    def translate_audio(
        self,
        audio: bytes,
        mime_type: str,
        target_language: str,
        mother_language: str,
    ) -> TranslationResult:
        raise NotImplementedError

    @abc.abstractmethod
    def translate_text(
        self,
        text: str,
        target_language: str,
        mother_language: str,
    ) -> TranslationResult:
        raise NotImplementedError

    @abc.abstractmethod
    def translate_image(
        self,
        image: bytes,
        mime_type: str,
        target_language: str,
        mother_language: str,
    ) -> TranslationResult:
        raise NotImplementedError


def parse_translation_payload(raw: str | None) -> TranslationResult:
    """Parse the structured JSON answer of a capability into a result."""

    if raw is None or not raw.strip():
        raise EmptyResponseError()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise TranslationServiceError(f"The translation engine returned malformed JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise TranslationServiceError("The translation engine returned an unexpected payload.")
    if not data.get("phonetic"):
        data["phonetic"] = None
    try:
        result = TranslationResult.model_validate(data)
    except ValidationError as exc:
        raise TranslationServiceError(f"The translation engine returned an invalid result: {exc}") from exc
    if not result.translated_text.strip():
        raise EmptyResponseError()
    return result


__all__ = [
    "EmptyResponseError",
    "RESPONSE_SCHEMA",
    "TranslationService",
    "TranslationServiceError",
    "parse_translation_payload",
]
