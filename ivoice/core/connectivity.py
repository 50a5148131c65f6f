"""Online/offline signal consumed by the dispatcher."""

from __future__ import annotations

import socket
import threading
from typing import Callable, List, Optional

from ..logging import get_logger

LOGGER = get_logger(__name__)

ConnectivityListener = Callable[[bool], None]


class ConnectivityMonitor:
    """Boolean connectivity state updated by external notifications."""

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._lock = threading.Lock()
        self._listeners: List[ConnectivityListener] = []

    @property
    def is_online(self) -> bool:
        with self._lock:
            return self._online

    def set_online(self, online: bool) -> None:
        with self._lock:
            changed = self._online != online
            self._online = online
            listeners = list(self._listeners)
        if not changed:
            return
        LOGGER.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in listeners:
            try:
                listener(online)
            except Exception:  # pragma: no cover - listeners should not break notification
                LOGGER.exception("Connectivity listener raised an exception")

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def probe(self, host: str, port: int, timeout: float = 1.5) -> bool:
        """Refresh the state with a TCP reachability check and return it."""

        online = probe_connectivity(host, port, timeout)
        self.set_online(online)
        return online


def probe_connectivity(host: str, port: int, timeout: Optional[float] = 1.5) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError as exc:
        LOGGER.debug("Connectivity probe to %s:%s failed: %s", host, port, exc)
        return False


__all__ = ["ConnectivityMonitor", "probe_connectivity"]
