"""Tests for speech playback and backend selection."""

from __future__ import annotations

import sys
from types import SimpleNamespace

import pytest

from ivoice.services.factory import (
    ServiceConfigurationError,
    resolve_speech_backend,
    resolve_translation_backend,
)
from ivoice.services.speech import NullSpeechSynthesizer, Pyttsx3SpeechSynthesizer
from ivoice.services.speech.pyttsx3_backend import _matches_locale
from ivoice.services.translation.dummy import DummyTranslationService


class _FakeEngine:
    def __init__(self) -> None:
        self.properties: dict = {}
        self.spoken: list[str] = []
        self.voices = [
            SimpleNamespace(id="english", languages=[b"\x05en-us"]),
            SimpleNamespace(id="japanese", languages=["ja_JP"]),
        ]

    def getProperty(self, name):
        if name == "voices":
            return self.voices
        return self.properties.get(name)

    def setProperty(self, name, value):
        self.properties[name] = value

    def say(self, text):
        self.spoken.append(text)

    def runAndWait(self):
        pass

    def stop(self):
        pass


@pytest.fixture
def fake_engine(monkeypatch):
    engine = _FakeEngine()
    monkeypatch.setitem(sys.modules, "pyttsx3", SimpleNamespace(init=lambda: engine))
    return engine


def test_pyttsx3_picks_voice_matching_locale(fake_engine):
    speaker = Pyttsx3SpeechSynthesizer(rate=150)

    assert speaker.speak("こんにちは", "ja-JP", volume=0.5) is True

    assert fake_engine.spoken == ["こんにちは"]
    assert fake_engine.properties["voice"] == "japanese"
    assert fake_engine.properties["volume"] == 0.5
    assert fake_engine.properties["rate"] == 150


def test_pyttsx3_clamps_volume_and_handles_byte_languages(fake_engine):
    speaker = Pyttsx3SpeechSynthesizer()

    speaker.speak("hello", "en-US", volume=4.0)

    assert fake_engine.properties["voice"] == "english"
    assert fake_engine.properties["volume"] == 1.0


def test_pyttsx3_keeps_default_voice_when_locale_unknown(fake_engine):
    speaker = Pyttsx3SpeechSynthesizer()

    assert speaker.speak("hola", "es-ES") is True
    assert "voice" not in fake_engine.properties


@pytest.mark.parametrize(
    "voice",
    [
        SimpleNamespace(id="idiom", languages=["idk"]),
        SimpleNamespace(id="arabic-male", languages=[]),
        SimpleNamespace(id="identity", languages=[b"\x05ida"]),
    ],
)
def test_locale_matching_ignores_unrelated_names_sharing_a_prefix(voice):
    assert not _matches_locale(voice, "id-ID")
    assert not _matches_locale(voice, "ar-SA")


@pytest.mark.parametrize(
    "voice",
    [
        SimpleNamespace(id="indonesian", languages=["id_ID"]),
        SimpleNamespace(id="indonesian", languages=[b"\x05id"]),
        SimpleNamespace(id="TTS_MS_ID-ID_ANDIKA_11.0", languages=[]),
    ],
)
def test_locale_matching_accepts_language_tags_and_tagged_ids(voice):
    assert _matches_locale(voice, "id-ID")


def test_pyttsx3_ignores_blank_text(fake_engine):
    assert Pyttsx3SpeechSynthesizer().speak("  ", "en-US") is False
    assert fake_engine.spoken == []


def test_pyttsx3_missing_module_is_a_no_op(monkeypatch):
    monkeypatch.setitem(sys.modules, "pyttsx3", None)

    assert Pyttsx3SpeechSynthesizer().speak("hello", "en-US") is False


def test_null_synthesizer():
    assert NullSpeechSynthesizer().speak("hello", "en-US") is False


def test_resolve_backends():
    assert isinstance(resolve_translation_backend("dummy"), DummyTranslationService)
    assert isinstance(resolve_speech_backend("none"), NullSpeechSynthesizer)
    assert isinstance(resolve_speech_backend(None), NullSpeechSynthesizer)
    assert isinstance(resolve_speech_backend(" PYTTSX3 "), Pyttsx3SpeechSynthesizer)


@pytest.mark.parametrize("name", ["gemini", "", None])
def test_unknown_translation_backend(name):
    with pytest.raises(ServiceConfigurationError):
        resolve_translation_backend(name)


def test_unknown_speech_backend():
    with pytest.raises(ServiceConfigurationError):
        resolve_speech_backend("festival")


def test_dummy_service_marks_target():
    result = DummyTranslationService().translate_text("hello", "Japanese", "English")

    assert result.translated_text == "[Japanese] hello"
    assert result.detected_language == "en"
