"""Survival-phrase dictionary used when no network is available."""

from __future__ import annotations

import re
from typing import Dict, Mapping, Optional

from ...data.models import TranslationResult
from ...logging import get_logger

LOGGER = get_logger(__name__)

SOURCE_LANGUAGE = "en"
PASSTHROUGH_TEMPLATE = "[Offline: {text}]"

OFFLINE_DICTIONARY: Dict[str, Dict[str, str]] = {
    "hello": {"id": "halo", "es": "hola", "ja": "こんにちは", "zh": "你好", "en": "hello"},
    "thank you": {"id": "terima kasih", "es": "gracias", "ja": "ありがとう", "zh": "谢谢", "en": "thank you"},
    "where is the bathroom": {
        "id": "di mana kamar mandi",
        "es": "donde está el baño",
        "ja": "トイレはどこですか",
        "zh": "洗手间在哪里",
        "en": "where is the bathroom",
    },
    "help me": {"id": "tolong saya", "es": "ayúdame", "ja": "助けて", "zh": "帮帮我", "en": "help me"},
    "good morning": {"id": "selamat pagi", "es": "buenos días", "ja": "おはよう", "zh": "早上好", "en": "good morning"},
    "how much": {"id": "berapa harganya", "es": "cuánto cuesta", "ja": "いくらですか", "zh": "多少钱", "en": "how much"},
    "i am lost": {"id": "saya tersesat", "es": "estoy perdido", "ja": "迷いました", "zh": "我迷路了", "en": "i am lost"},
    "water": {"id": "air", "es": "agua", "ja": "水", "zh": "水", "en": "water"},
    "food": {"id": "makanan", "es": "comida", "ja": "食べ物", "zh": "食物", "en": "food"},
    "yes": {"id": "ya", "es": "sí", "ja": "はい", "zh": "是", "en": "yes"},
    "no": {"id": "tidak", "es": "no", "ja": "いいえ", "zh": "不", "en": "no"},
}

_TERMINAL_PUNCTUATION = re.compile(r"[?.!]")


def normalize(text: str) -> str:
    return _TERMINAL_PUNCTUATION.sub("", text.lower().strip())


def passthrough_text(text: str) -> str:
    return PASSTHROUGH_TEMPLATE.format(text=text)


class OfflineDictionaryResolver:
    """Best-effort local translation that never fails.

    Lookup is an exact match on the normalised input, then the first key
    (in dictionary order) contained anywhere in it. The substring pass is
    unranked, so short keys such as ``"no"`` also match inside words like
    ``"know"``.
    """

    def __init__(self, dictionary: Optional[Mapping[str, Mapping[str, str]]] = None) -> None:
        self.dictionary = dictionary if dictionary is not None else OFFLINE_DICTIONARY

    def _lookup(self, cleaned: str, target_code: str) -> Optional[str]:
        entry = self.dictionary.get(cleaned)
        translation = entry.get(target_code) if entry else None
        if translation:
            return translation
        for key, translations in self.dictionary.items():
            if key in cleaned:
                return translations.get(target_code)
        return None

    def resolve(self, text: str, target_code: str) -> TranslationResult:
        text = text if isinstance(text, str) else str(text or "")
        translation = self._lookup(normalize(text), target_code)
        if not translation:
            LOGGER.debug("No offline entry for %r in %s", text, target_code)
        return TranslationResult(
            original_text=text,
            detected_language=SOURCE_LANGUAGE,
            translated_text=translation or passthrough_text(text),
            phonetic="",
        )


def is_passthrough(result: TranslationResult) -> bool:
    return result.translated_text == passthrough_text(result.original_text)


__all__ = [
    "OFFLINE_DICTIONARY",
    "OfflineDictionaryResolver",
    "PASSTHROUGH_TEMPLATE",
    "SOURCE_LANGUAGE",
    "is_passthrough",
    "normalize",
    "passthrough_text",
]
