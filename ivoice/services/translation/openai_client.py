"""OpenAI powered translation service."""

from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional

from ...config import get_settings
from ...data.languages import SUPPORTED_LANGUAGES
from ...data.models import TranslationResult
from ...logging import get_logger
from .base import (
    RESPONSE_SCHEMA,
    EmptyResponseError,
    TranslationService,
    parse_translation_payload,
)

LOGGER = get_logger(__name__)

SYSTEM_INSTRUCTION = (
    "You are a real-time interpreter. Detect the language of the input, translate it "
    "faithfully and naturally, and answer only with the requested JSON object. "
    "detected_language must be an ISO 639-1 code. phonetic holds a romanised "
    "pronunciation aid for the translation, or an empty string when not useful."
)

_EXTENSIONS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/webm": "webm",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/ogg": "ogg",
}


class OpenAITranslationService(TranslationService):
    def __init__(
        self,
        model: Optional[str] = None,
        transcription_model: Optional[str] = None,
    ) -> None:
        settings = get_settings()
        self.model = model or settings.openai_translation_model
        self.transcription_model = transcription_model or settings.openai_transcription_model
        try:
            from openai import OpenAI, OpenAIError  # type: ignore
        except ImportError as exc:  # pragma: no cover - runtime dependency guard
            raise RuntimeError("openai package is required for OpenAITranslationService") from exc
        client_kwargs = {}
        if settings.openai_api_key:
            client_kwargs["api_key"] = settings.openai_api_key

        try:
            self.client = OpenAI(**client_kwargs)
        except OpenAIError as exc:
            message = str(exc)
            if "api_key" in message.lower():
                raise RuntimeError(
                    "OpenAI API key not configured. Set the OPENAI_API_KEY environment variable "
                    "or configure IVOICE_OPENAI_API_KEY with `ivoice env set`."
                ) from exc
            raise RuntimeError(f"Failed to initialise OpenAI translation client: {message}") from exc

    def translate_audio(
        self,
        audio: bytes,
        mime_type: str,
        target_language: str,
        mother_language: str,
    ) -> TranslationResult:
        transcript = self._transcribe(audio, mime_type or "audio/wav")
        language_list = ", ".join(language.name for language in SUPPORTED_LANGUAGES)
        prompt = (
            "Universal detection task.\n"
            f"Supported languages: [{language_list}]\n"
            f"User preferred language (mother): {mother_language}\n"
            f"Active target language: {target_language}\n"
            f'Transcribed speech: "{transcript}"\n\n'
            "1. Detect which supported language is being spoken.\n"
            f"2. If the speaker uses {mother_language}, translate to {target_language}.\n"
            f"3. If the speaker uses any other language, translate to {mother_language}."
        )
        return self._request([{"type": "input_text", "text": prompt}])

    def translate_text(
        self,
        text: str,
        target_language: str,
        mother_language: str,
    ) -> TranslationResult:
        prompt = (
            f"The user's mother language is {mother_language}. Input text: \"{text}\"\n"
            f"Translate this text to {target_language}. If the input text is already in "
            f"{target_language}, translate it back to {mother_language}. Use auto-detection."
        )
        return self._request([{"type": "input_text", "text": prompt}])

    def translate_image(
        self,
        image: bytes,
        mime_type: str,
        target_language: str,
        mother_language: str,
    ) -> TranslationResult:
        encoded = base64.b64encode(image).decode("ascii")
        prompt = (
            f"The user's mother language is {mother_language}. Extract all visible text from "
            f"this image and translate it to {target_language}. If the extracted text is in "
            f"{target_language}, translate it to {mother_language}."
        )
        return self._request(
            [
                {"type": "input_image", "image_url": f"data:{mime_type or 'image/jpeg'};base64,{encoded}"},
                {"type": "input_text", "text": prompt},
            ]
        )

    def _transcribe(self, audio: bytes, mime_type: str) -> str:
        extension = _EXTENSIONS.get(mime_type.split(";")[0].strip().lower(), "wav")
        LOGGER.info("Requesting OpenAI transcription (%s bytes, %s)", len(audio), mime_type)
        response = self.client.audio.transcriptions.create(
            model=self.transcription_model,
            file=(f"speech.{extension}", audio, mime_type),
        )
        text = _response_text(response)
        if not text.strip():
            raise EmptyResponseError()
        return text.strip()

    def _request(self, content: List[Dict[str, Any]]) -> TranslationResult:
        LOGGER.info("Requesting OpenAI translation with model %s", self.model)
        response = self.client.responses.create(
            model=self.model,
            instructions=SYSTEM_INSTRUCTION,
            input=[{"role": "user", "content": content}],
            text={
                "format": {
                    "type": "json_schema",
                    "name": "translation_result",
                    "schema": RESPONSE_SCHEMA,
                    "strict": True,
                }
            },
        )
        return parse_translation_payload(getattr(response, "output_text", None))


def _response_text(response: Any) -> str:
    if response is None:
        return ""
    if isinstance(response, str):
        return response
    if isinstance(response, dict):
        return str(response.get("text", "") or "")
    return str(getattr(response, "text", "") or "")


__all__ = ["OpenAITranslationService", "SYSTEM_INSTRUCTION"]
