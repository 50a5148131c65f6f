"""Speech synthesis abstractions."""

from __future__ import annotations

import abc


class SpeechSynthesizer(abc.ABC):
    """Best-effort text-to-speech; implementations never raise on playback."""

    @abc.abstractmethod
    def speak(self, text: str, locale: str, volume: float = 1.0) -> bool:
        """Speak ``text`` and return ``True`` when playback was attempted."""


class NullSpeechSynthesizer(SpeechSynthesizer):
    def speak(self, text: str, locale: str, volume: float = 1.0) -> bool:
        return False


__all__ = ["NullSpeechSynthesizer", "SpeechSynthesizer"]
