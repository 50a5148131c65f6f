"""Failure taxonomy and classification of cloud capability errors."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple


class FailureKind(str, Enum):
    DEVICE_ERROR = "DEVICE_ERROR"
    CONNECTIVITY_REQUIRED = "CONNECTIVITY_REQUIRED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    ENTITLEMENT_REQUIRED = "ENTITLEMENT_REQUIRED"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    CONTENT_SAFETY_BLOCKED = "CONTENT_SAFETY_BLOCKED"
    RATE_LIMITED = "RATE_LIMITED"
    COPYRIGHT_BLOCKED = "COPYRIGHT_BLOCKED"
    NO_CONNECTIVITY = "NO_CONNECTIVITY"
    UNCLASSIFIED = "UNCLASSIFIED"


ERROR_MESSAGES: Dict[FailureKind, str] = {
    FailureKind.DEVICE_ERROR: "Microphone access denied or not found.",
    FailureKind.CONNECTIVITY_REQUIRED: (
        "Image translation requires a cloud connection. Connect to the internet to scan images."
    ),
    FailureKind.QUOTA_EXCEEDED: (
        "You have used all free translations for today. Upgrade to Premium for unlimited use."
    ),
    FailureKind.ENTITLEMENT_REQUIRED: (
        "Offline translation is a Premium feature. Connect to the internet to upgrade."
    ),
    FailureKind.EMPTY_RESPONSE: "The translation engine returned an empty response.",
    FailureKind.CONTENT_SAFETY_BLOCKED: (
        "The translation engine blocked the content for safety reasons. Try using more common words."
    ),
    FailureKind.RATE_LIMITED: (
        "The translation engine is currently over capacity. Please wait a moment and try again."
    ),
    FailureKind.COPYRIGHT_BLOCKED: (
        "The engine detected copyrighted material and cannot translate it."
    ),
    FailureKind.NO_CONNECTIVITY: (
        "No internet connection detected. Reconnect to use the cloud translation engine."
    ),
    FailureKind.UNCLASSIFIED: (
        "An unexpected error occurred in the translation engine. Please try again."
    ),
}

PACK_REQUIRED_MESSAGE = (
    "The {language} pack is not downloaded. Connect to the internet and download it for offline use."
)

# First matching rule wins.
CLASSIFICATION_RULES: List[Tuple[Tuple[str, ...], FailureKind]] = [
    (("SAFETY",), FailureKind.CONTENT_SAFETY_BLOCKED),
    (("429", "quota"), FailureKind.RATE_LIMITED),
    (("RECITATION",), FailureKind.COPYRIGHT_BLOCKED),
]


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str

    def __str__(self) -> str:
        return self.message


def failure(kind: FailureKind, message: str | None = None) -> Failure:
    return Failure(kind=kind, message=message or ERROR_MESSAGES[kind])


def pack_required(language_name: str) -> Failure:
    return Failure(
        kind=FailureKind.ENTITLEMENT_REQUIRED,
        message=PACK_REQUIRED_MESSAGE.format(language=language_name),
    )


def _failure_text(raw_failure: object) -> str:
    if raw_failure is None:
        return ""
    message = getattr(raw_failure, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(raw_failure)


def classify(raw_failure: object) -> Failure:
    """Map a raw capability failure onto the failure taxonomy."""

    text = _failure_text(raw_failure)
    for signals, kind in CLASSIFICATION_RULES:
        if any(signal in text for signal in signals):
            return failure(kind)
    return failure(FailureKind.UNCLASSIFIED, text.strip() or None)


__all__ = [
    "CLASSIFICATION_RULES",
    "ERROR_MESSAGES",
    "Failure",
    "FailureKind",
    "classify",
    "failure",
    "pack_required",
]
