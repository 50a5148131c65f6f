"""Offline speech synthesis through pyttsx3."""

from __future__ import annotations

import re
import threading
from typing import Any, Iterable, Optional

from ...logging import get_logger
from .base import SpeechSynthesizer

LOGGER = get_logger(__name__)


def _voice_languages(voice: Any) -> Iterable[str]:
    for language in getattr(voice, "languages", None) or []:
        if isinstance(language, bytes):
            language = language.decode("utf-8", errors="ignore")
        yield str(language).lstrip("\x05")
    yield str(getattr(voice, "id", ""))


def _matches_locale(voice: Any, locale: str) -> bool:
    """Match ``ja-JP`` against ``ja_JP``, ``ja``, ``ja-jp`` or an id such as ``TTS_MS_JA-JP_HARUKA``."""

    language, _, region = locale.lower().replace("_", "-").partition("-")
    tagged = None
    if region:
        tagged = re.compile(rf"(?<![a-z]){re.escape(language)}[-_]{re.escape(region)}(?![a-z])")
    for name in _voice_languages(voice):
        lowered = name.lower()
        if lowered == language or lowered.startswith((f"{language}-", f"{language}_")):
            return True
        if tagged is not None and tagged.search(lowered):
            return True
    return False


class Pyttsx3SpeechSynthesizer(SpeechSynthesizer):
    """pyttsx3 engine wrapper; becomes a no-op when no engine is available."""

    def __init__(self, rate: Optional[int] = None) -> None:
        self._rate = rate
        self._engine: Any = None
        self._unavailable = False
        self._lock = threading.Lock()

    def _get_engine(self) -> Any:
        if self._engine is not None or self._unavailable:
            return self._engine
        try:
            import pyttsx3
        except ImportError:
            LOGGER.info("pyttsx3 is not installed; speech playback disabled")
            self._unavailable = True
            return None
        try:
            engine = pyttsx3.init()
        except Exception as exc:  # pragma: no cover - depends on platform drivers
            LOGGER.info("No speech engine available (%s); speech playback disabled", exc)
            self._unavailable = True
            return None
        if self._rate is not None:
            engine.setProperty("rate", self._rate)
        self._engine = engine
        return engine

    def speak(self, text: str, locale: str, volume: float = 1.0) -> bool:
        if not text.strip():
            return False
        with self._lock:
            engine = self._get_engine()
            if engine is None:
                return False
            try:
                engine.stop()
                engine.setProperty("volume", min(max(float(volume), 0.0), 1.0))
                voice = next(
                    (candidate for candidate in engine.getProperty("voices") or [] if _matches_locale(candidate, locale)),
                    None,
                )
                if voice is not None:
                    engine.setProperty("voice", voice.id)
                engine.say(text)
                engine.runAndWait()
            except Exception as exc:  # pragma: no cover - depends on platform drivers
                LOGGER.warning("Speech playback failed: %s", exc)
                return False
        return True


__all__ = ["Pyttsx3SpeechSynthesizer"]
