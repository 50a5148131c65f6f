"""Factories for runtime service selection."""

from __future__ import annotations

from typing import Optional

from .speech.base import NullSpeechSynthesizer, SpeechSynthesizer
from .speech.pyttsx3_backend import Pyttsx3SpeechSynthesizer
from .translation.base import TranslationService
from .translation.dummy import DummyTranslationService


class ServiceConfigurationError(ValueError):
    """Raised when an unknown backend is requested."""


def _normalise(name: Optional[str]) -> str:
    if not name:
        return "none"
    return name.strip().lower()


def resolve_translation_backend(name: Optional[str]) -> TranslationService:
    backend = _normalise(name)
    if backend == "dummy":
        return DummyTranslationService()
    if backend == "openai":
        from .translation.openai_client import OpenAITranslationService

        return OpenAITranslationService()
    raise ServiceConfigurationError(f"Unknown translation backend: {name}")


def resolve_speech_backend(name: Optional[str]) -> SpeechSynthesizer:
    backend = _normalise(name)
    if backend in {"", "none", "off"}:
        return NullSpeechSynthesizer()
    if backend == "pyttsx3":
        return Pyttsx3SpeechSynthesizer()
    raise ServiceConfigurationError(f"Unknown speech backend: {name}")


__all__ = [
    "ServiceConfigurationError",
    "resolve_speech_backend",
    "resolve_translation_backend",
]
