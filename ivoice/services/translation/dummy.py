"""Dummy translation service for testing or demos without an API key."""

from __future__ import annotations

from ...data.models import TranslationResult
from .base import TranslationService


class DummyTranslationService(TranslationService):
    def __init__(self, detected_language: str = "en") -> None:
        self.detected_language = detected_language

    def _result(self, original: str, target_language: str) -> TranslationResult:
        return TranslationResult(
            original_text=original,
            detected_language=self.detected_language,
            translated_text=f"[{target_language}] {original}",
        )

    def translate_audio(
        self,
        audio: bytes,
        mime_type: str,
        target_language: str,
        mother_language: str,
    ) -> TranslationResult:
        return self._result(f"Dummy transcript of {len(audio)} bytes of {mime_type}", target_language)

    def translate_text(
        self,
        text: str,
        target_language: str,
        mother_language: str,
    ) -> TranslationResult:
        return self._result(text, target_language)

    def translate_image(
        self,
        image: bytes,
        mime_type: str,
        target_language: str,
        mother_language: str,
    ) -> TranslationResult:
        return self._result(f"Dummy text extracted from {len(image)} bytes of {mime_type}", target_language)


__all__ = ["DummyTranslationService"]
