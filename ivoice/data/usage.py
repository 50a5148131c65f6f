"""Daily usage quota for non-premium identities."""

from __future__ import annotations

import json
import threading
from datetime import date, datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from ..logging import get_logger
from .models import Entitlement, UsageLedger
from .storage import KeyValueStore

LOGGER = get_logger(__name__)

USAGE_KEY = "usage"
DEFAULT_DAILY_LIMIT = 3


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class QuotaReservation:
    """A quota slot held for one top-level action until it succeeds or fails."""

    def __init__(self, ledger: Optional["UsageQuotaLedger"], entitlement: Entitlement) -> None:
        self._ledger = ledger
        self._entitlement = entitlement
        self._settled = False

    @property
    def settled(self) -> bool:
        return self._settled

    def commit(self) -> None:
        """Record the usage and free the slot."""

        if self._settled:
            return
        self._settled = True
        if self._ledger is not None:
            self._ledger._settle(self._entitlement, charge=True)

    def release(self) -> None:
        """Free the slot without charging."""

        if self._settled:
            return
        self._settled = True
        if self._ledger is not None:
            self._ledger._settle(self._entitlement, charge=False)


class UsageQuotaLedger:
    """Persisted per-day counter gating cloud translations for free users.

    Reads never write: a stale stored date is treated as a zero count and
    the reset is only committed by :meth:`record_usage`.
    """

    def __init__(
        self,
        store: KeyValueStore,
        daily_limit: int = DEFAULT_DAILY_LIMIT,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self._store = store
        self.daily_limit = daily_limit
        self._today = today or utc_today
        self._lock = threading.Lock()
        self._pending = 0

    def _read(self) -> Optional[UsageLedger]:
        try:
            raw = self._store.get_json(USAGE_KEY)
        except json.JSONDecodeError:
            LOGGER.warning("Stored usage ledger is corrupt; treating as empty")
            return None
        if raw is None:
            return None
        try:
            return UsageLedger.model_validate(raw)
        except ValidationError:
            LOGGER.warning("Stored usage ledger is malformed; treating as empty")
            return None

    def usage(self) -> UsageLedger:
        """Return the ledger as it applies to today without persisting anything."""

        today = self._today().isoformat()
        stored = self._read()
        if stored is None or stored.date != today:
            return UsageLedger(date=today, count=0)
        return stored

    def remaining(self, entitlement: Entitlement) -> Optional[int]:
        if entitlement.is_premium:
            return None
        return max(self.daily_limit - self.usage().count, 0)

    def check_and_maybe_block(self, entitlement: Entitlement) -> bool:
        if entitlement.is_premium:
            return True
        with self._lock:
            return self._allowed()

    def record_usage(self, entitlement: Entitlement) -> None:
        if entitlement.is_premium:
            return
        with self._lock:
            self._increment()

    def reserve(self, entitlement: Entitlement) -> Optional[QuotaReservation]:
        """Check the quota and hold a slot in one step; ``None`` when blocked."""

        if entitlement.is_premium:
            return QuotaReservation(None, entitlement)
        with self._lock:
            if not self._allowed():
                LOGGER.info("Daily quota of %s reached", self.daily_limit)
                return None
            self._pending += 1
        return QuotaReservation(self, entitlement)

    def _settle(self, entitlement: Entitlement, charge: bool) -> None:
        with self._lock:
            self._pending = max(self._pending - 1, 0)
            if charge and not entitlement.is_premium:
                self._increment()

    def _allowed(self) -> bool:
        return self.usage().count + self._pending < self.daily_limit

    def _increment(self) -> None:
        current = self.usage()
        updated = UsageLedger(date=current.date, count=current.count + 1)
        self._store.set_json(USAGE_KEY, updated.model_dump())
        LOGGER.debug("Usage for %s is now %s", updated.date, updated.count)


__all__ = [
    "DEFAULT_DAILY_LIMIT",
    "QuotaReservation",
    "USAGE_KEY",
    "UsageQuotaLedger",
    "utc_today",
]
