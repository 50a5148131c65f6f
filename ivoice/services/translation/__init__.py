"""Cloud translation services."""

from .base import EmptyResponseError, TranslationService, TranslationServiceError
from .dummy import DummyTranslationService

__all__ = [
    "DummyTranslationService",
    "EmptyResponseError",
    "TranslationService",
    "TranslationServiceError",
]
