"""Bounded, persisted log of past translations."""

from __future__ import annotations

import json
import threading
import time
import uuid
from typing import Callable, List, Optional

from pydantic import ValidationError

from ..logging import get_logger
from .languages import LanguageOption
from .models import HistoryItem, TranslationResult
from .storage import KeyValueStore

LOGGER = get_logger(__name__)

HISTORY_KEY = "history"
DEFAULT_HISTORY_LIMIT = 50


class HistoryStore:
    """Newest-first translation history, written through on every mutation."""

    def __init__(
        self,
        store: KeyValueStore,
        limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if limit <= 0:
            raise ValueError("History limit must be positive")
        self._store = store
        self.limit = limit
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self._items: List[HistoryItem] = self._load()

    def _load(self) -> List[HistoryItem]:
        try:
            raw_items = self._store.get_json(HISTORY_KEY, default=[])
        except json.JSONDecodeError:
            LOGGER.error("Failed to parse stored history; starting empty")
            return []
        if not isinstance(raw_items, list):
            LOGGER.error("Stored history is not a list; starting empty")
            return []
        items: List[HistoryItem] = []
        for raw in raw_items:
            try:
                items.append(HistoryItem.model_validate(raw))
            except ValidationError:
                LOGGER.warning("Skipping malformed history entry: %s", raw)
        return items[: self.limit]

    def _commit(self, items: List[HistoryItem]) -> None:
        # write first so a failed write leaves memory matching storage
        self._store.set_json(
            HISTORY_KEY,
            [item.model_dump(by_alias=True) for item in items],
        )
        self._items = items

    def append(self, result: TranslationResult, other_language: LanguageOption) -> HistoryItem:
        item = HistoryItem(
            **result.model_dump(),
            id=uuid.uuid4().hex,
            timestamp=int(self._clock() * 1000),
            target_lang_name=other_language.name,
            target_lang_locale=other_language.tts_locale,
            target_lang_flag=other_language.flag,
        )
        with self._lock:
            self._commit([item, *self._items][: self.limit])
        LOGGER.debug("Appended history item %s", item.id)
        return item

    def remove(self, item_id: str) -> bool:
        with self._lock:
            remaining = [item for item in self._items if item.id != item_id]
            if len(remaining) == len(self._items):
                return False
            self._commit(remaining)
        return True

    def get(self, item_id: str) -> Optional[HistoryItem]:
        with self._lock:
            return next((item for item in self._items if item.id == item_id), None)

    def clear(self) -> None:
        with self._lock:
            self._commit([])

    def list(self) -> List[HistoryItem]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


__all__ = ["DEFAULT_HISTORY_LIMIT", "HISTORY_KEY", "HistoryStore"]
