"""Logging helpers for the IVoice project."""

from __future__ import annotations

import logging
from typing import Optional, Union

ROOT_LOGGER = "ivoice"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_LOGGER_CONFIGURED = False


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def configure_logging(level: Union[int, str] = logging.INFO, force: bool = False) -> None:
    """Configure logging once; ``force`` re-applies ``level`` to the IVoice loggers."""

    global _LOGGER_CONFIGURED
    if _LOGGER_CONFIGURED and not force:
        return

    resolved = _coerce_level(level)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger(ROOT_LOGGER).setLevel(resolved)
    _LOGGER_CONFIGURED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Convenience helper that ensures logging is configured."""

    configure_logging()
    return logging.getLogger(name or ROOT_LOGGER)


__all__ = ["LOG_FORMAT", "ROOT_LOGGER", "configure_logging", "get_logger"]
