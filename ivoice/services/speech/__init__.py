"""Speech synthesis services."""

from .base import NullSpeechSynthesizer, SpeechSynthesizer
from .pyttsx3_backend import Pyttsx3SpeechSynthesizer

__all__ = ["NullSpeechSynthesizer", "Pyttsx3SpeechSynthesizer", "SpeechSynthesizer"]
