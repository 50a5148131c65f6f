"""Offline translation fallback."""

from .dictionary import OfflineDictionaryResolver, is_passthrough

__all__ = ["OfflineDictionaryResolver", "is_passthrough"]
