"""Offline language packs and the entitlement derived from them."""

from __future__ import annotations

import json
import threading
from typing import Dict, List, Set

from ..logging import get_logger
from .languages import SUPPORTED_LANGUAGES, get_language
from .models import Entitlement, OfflinePack
from .storage import KeyValueStore

LOGGER = get_logger(__name__)

PACKS_KEY = "offline_packs"

PACK_SIZES: Dict[str, str] = {
    "en": "42 MB",
    "id": "38 MB",
    "zh": "56 MB",
    "es": "40 MB",
    "ko": "47 MB",
    "ja": "52 MB",
    "nl": "36 MB",
    "ar": "44 MB",
}


class EntitlementError(RuntimeError):
    """Raised when a premium-only operation is requested without premium."""


class ProfileStore:
    def __init__(self, store: KeyValueStore, is_premium: bool = False) -> None:
        self._store = store
        self.is_premium = is_premium
        self._lock = threading.Lock()

    def _downloaded(self) -> Set[str]:
        try:
            raw = self._store.get_json(PACKS_KEY, default=[])
        except json.JSONDecodeError:
            LOGGER.warning("Stored offline pack list is corrupt; treating as empty")
            return set()
        if not isinstance(raw, list):
            return set()
        return {str(code) for code in raw}

    def _save(self, codes: Set[str]) -> None:
        self._store.set_json(PACKS_KEY, sorted(codes))

    def entitlement(self) -> Entitlement:
        with self._lock:
            downloaded = frozenset(self._downloaded())
        return Entitlement(is_premium=self.is_premium, downloaded_languages=downloaded)

    def list_packs(self) -> List[OfflinePack]:
        with self._lock:
            downloaded = self._downloaded()
        return [
            OfflinePack(
                code=language.code,
                name=language.native_name,
                size=PACK_SIZES.get(language.code, "?"),
                is_downloaded=language.code in downloaded,
            )
            for language in SUPPORTED_LANGUAGES
        ]

    def download_pack(self, code: str) -> OfflinePack:
        language = get_language(code)
        if not self.is_premium:
            raise EntitlementError("Offline language packs are a Premium feature.")
        with self._lock:
            downloaded = self._downloaded()
            if language.code not in downloaded:
                downloaded.add(language.code)
                self._save(downloaded)
                LOGGER.info("Offline pack for %s marked as downloaded", language.name)
        return OfflinePack(
            code=language.code,
            name=language.native_name,
            size=PACK_SIZES.get(language.code, "?"),
            is_downloaded=True,
        )

    def remove_pack(self, code: str) -> bool:
        language = get_language(code)
        with self._lock:
            downloaded = self._downloaded()
            if language.code not in downloaded:
                return False
            downloaded.discard(language.code)
            self._save(downloaded)
        LOGGER.info("Offline pack for %s removed", language.name)
        return True


__all__ = ["EntitlementError", "PACKS_KEY", "PACK_SIZES", "ProfileStore"]
