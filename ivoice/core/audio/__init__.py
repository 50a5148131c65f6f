"""Audio capture package."""

from .base import AudioCapture, AudioPayload, CaptureError, CaptureInfo, DeviceError
from .recorder import AudioCapturePipeline, CaptureState

__all__ = [
    "AudioCapture",
    "AudioCapturePipeline",
    "AudioPayload",
    "CaptureError",
    "CaptureInfo",
    "CaptureState",
    "DeviceError",
]
