"""Translation dispatcher routing requests between the cloud and the offline dictionary."""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol

from ...config import Settings, get_settings
from ...data.history import HistoryStore
from ...data.languages import LanguageOption, LanguagePair
from ...data.models import (
    Entitlement,
    HistoryItem,
    SpeechRequest,
    TranslationMode,
    TranslationResult,
    UsageLedger,
)
from ...data.usage import QuotaReservation, UsageQuotaLedger
from ...logging import get_logger
from ...services.offline.dictionary import OfflineDictionaryResolver
from ...services.translation.base import EmptyResponseError, TranslationService
from ..audio.base import AudioPayload, DeviceError
from ..audio.recorder import AudioCapturePipeline, CaptureFactory, RecordingBusyError
from ..connectivity import ConnectivityMonitor
from ..errors import Failure, FailureKind, classify, failure, pack_required

LOGGER = get_logger(__name__)

# There is no local speech recognition, so offline voice turns are answered
# with the survival phrase most likely to be needed.
OFFLINE_VOICE_PHRASE = "Help me"

HISTORY_WRITE_MESSAGE = "The translation could not be saved to history. Please try again."


class EntitlementSource(Protocol):
    def entitlement(self) -> Entitlement: ...


@dataclass
class DispatchOutcome:
    mode: TranslationMode
    result: Optional[TranslationResult] = None
    history_item: Optional[HistoryItem] = None
    failure: Optional[Failure] = None
    speech: Optional[SpeechRequest] = None
    offline: bool = False

    @property
    def ok(self) -> bool:
        return self.failure is None and self.result is not None


@dataclass
class _PendingVoice:
    languages: LanguagePair
    speak_back: bool
    reservation: QuotaReservation


class TranslationDispatcher:
    """Central orchestrator for voice, text and image translation requests."""

    def __init__(
        self,
        translator: TranslationService,
        history: HistoryStore,
        ledger: UsageQuotaLedger,
        connectivity: ConnectivityMonitor,
        entitlements: EntitlementSource,
        resolver: Optional[OfflineDictionaryResolver] = None,
        capture_factory: Optional[CaptureFactory] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._translator = translator
        self._history = history
        self._ledger = ledger
        self._connectivity = connectivity
        self._entitlements = entitlements
        self._resolver = resolver or OfflineDictionaryResolver()
        self._settings = settings or get_settings()
        self._slots: Dict[TranslationMode, threading.Lock] = {mode: threading.Lock() for mode in TranslationMode}
        self._lock = threading.Lock()
        self._pending_voice: Optional[_PendingVoice] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pipeline: Optional[AudioCapturePipeline] = None
        if capture_factory is not None:
            self._pipeline = AudioCapturePipeline(capture_factory, on_payload=self._enqueue_voice)

    @property
    def pipeline(self) -> Optional[AudioCapturePipeline]:
        return self._pipeline

    # ------------------------------------------------------------------
    # Voice
    # ------------------------------------------------------------------
    def start_voice(
        self,
        languages: LanguagePair,
        sensitivity: Optional[float] = None,
        speak_back: bool = True,
    ) -> Optional[DispatchOutcome]:
        """Begin a voice turn.

        Returns ``None`` once the microphone is recording, or a failure
        outcome when the quota is spent or the microphone is unavailable.
        """

        if self._pipeline is None:
            raise RuntimeError("No microphone capture configured for voice translation")

        reservation = self._ledger.reserve(self._entitlements.entitlement())
        if reservation is None:
            return self._fail(TranslationMode.VOICE, failure(FailureKind.QUOTA_EXCEEDED))

        with self._lock:
            if self._pending_voice is not None:
                reservation.release()
                raise RecordingBusyError("A voice turn is already being recorded")
            self._pending_voice = _PendingVoice(languages, speak_back, reservation)

        try:
            self._pipeline.start(self._settings.clamp_sensitivity(sensitivity))
        except DeviceError as exc:
            self._drop_pending_voice()
            return self._fail(TranslationMode.VOICE, failure(FailureKind.DEVICE_ERROR), detail=str(exc))
        except RecordingBusyError:
            self._drop_pending_voice()
            raise
        return None

    def stop_voice(self) -> Optional["Future[DispatchOutcome]"]:
        """Stop recording and return the pending translation of the recording."""

        if self._pipeline is None:
            return None
        return self._pipeline.stop()

    def dispatch_voice(
        self,
        payload: AudioPayload,
        languages: LanguagePair,
        speak_back: bool = True,
        reservation: Optional[QuotaReservation] = None,
    ) -> DispatchOutcome:
        return self._dispatch(
            TranslationMode.VOICE,
            languages,
            cloud_call=lambda: self._translator.translate_audio(
                payload.data,
                payload.mime_type,
                languages.target.name,
                languages.mother.name,
            ),
            offline_text=OFFLINE_VOICE_PHRASE,
            speak_back=speak_back,
            reservation=reservation,
        )

    def _enqueue_voice(self, payload: AudioPayload) -> "Future[DispatchOutcome]":
        with self._lock:
            pending = self._pending_voice
            self._pending_voice = None
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ivoice-dispatch")
            executor = self._executor
        if pending is None:  # pragma: no cover - pipeline only hands off started sessions
            raise RuntimeError("Received audio without an active voice turn")
        return executor.submit(
            self.dispatch_voice,
            payload,
            pending.languages,
            pending.speak_back,
            pending.reservation,
        )

    def _drop_pending_voice(self) -> None:
        with self._lock:
            pending = self._pending_voice
            self._pending_voice = None
        if pending is not None:
            pending.reservation.release()

    # ------------------------------------------------------------------
    # Text and image
    # ------------------------------------------------------------------
    def submit_text(self, text: str, languages: LanguagePair) -> DispatchOutcome:
        if not text or not text.strip():
            raise ValueError("Nothing to translate")
        return self._dispatch(
            TranslationMode.TEXT,
            languages,
            cloud_call=lambda: self._translator.translate_text(
                text,
                languages.target.name,
                languages.mother.name,
            ),
            offline_text=text,
        )

    def submit_image(self, image: bytes, mime_type: str, languages: LanguagePair) -> DispatchOutcome:
        if not image:
            raise ValueError("Image payload is empty")
        return self._dispatch(
            TranslationMode.IMAGE,
            languages,
            cloud_call=lambda: self._translator.translate_image(
                image,
                mime_type,
                languages.target.name,
                languages.mother.name,
            ),
            offline_text=None,
        )

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------
    def _dispatch(
        self,
        mode: TranslationMode,
        languages: LanguagePair,
        cloud_call: Callable[[], TranslationResult],
        offline_text: Optional[str],
        speak_back: bool = False,
        reservation: Optional[QuotaReservation] = None,
    ) -> DispatchOutcome:
        with self._slots[mode]:
            online = self._connectivity.is_online
            if mode is TranslationMode.IMAGE and not online:
                if reservation is not None:
                    reservation.release()
                return self._fail(mode, failure(FailureKind.CONNECTIVITY_REQUIRED))

            entitlement = self._entitlements.entitlement()
            if reservation is None:
                reservation = self._ledger.reserve(entitlement)
                if reservation is None:
                    return self._fail(mode, failure(FailureKind.QUOTA_EXCEEDED))

            if online:
                return self._translate_cloud(mode, languages, cloud_call, speak_back, reservation)
            return self._translate_offline(
                mode,
                languages,
                offline_text or "",
                entitlement,
                speak_back,
                reservation,
            )

    def _translate_cloud(
        self,
        mode: TranslationMode,
        languages: LanguagePair,
        cloud_call: Callable[[], TranslationResult],
        speak_back: bool,
        reservation: QuotaReservation,
    ) -> DispatchOutcome:
        LOGGER.info("Routing %s translation to the cloud engine", mode.value)
        try:
            result = cloud_call()
        except Exception as exc:
            reservation.release()
            return self._fail(mode, self._classify_failure(exc), detail=str(exc))

        other = languages.other_than(result.detected_language)
        item = self._record(mode, result, other, reservation)
        if item is None:
            return self._fail(mode, failure(FailureKind.UNCLASSIFIED, HISTORY_WRITE_MESSAGE))
        reservation.commit()
        speech = None
        if mode is TranslationMode.VOICE and speak_back:
            speech = SpeechRequest(text=result.translated_text, locale=other.tts_locale)
        return DispatchOutcome(mode=mode, result=result, history_item=item, speech=speech)

    def _translate_offline(
        self,
        mode: TranslationMode,
        languages: LanguagePair,
        text: str,
        entitlement: Entitlement,
        speak_back: bool,
        reservation: QuotaReservation,
    ) -> DispatchOutcome:
        target = languages.target
        if not entitlement.is_premium:
            reservation.release()
            return self._fail(mode, failure(FailureKind.ENTITLEMENT_REQUIRED))
        if not entitlement.allows_offline(target.code):
            reservation.release()
            return self._fail(mode, pack_required(target.native_name))

        LOGGER.info("Routing %s translation to the offline dictionary (%s)", mode.value, target.code)
        result = self._resolver.resolve(text, target.code)
        item = self._record(mode, result, languages.other_than(result.detected_language), reservation)
        reservation.release()
        if item is None:
            return self._fail(mode, failure(FailureKind.UNCLASSIFIED, HISTORY_WRITE_MESSAGE))
        speech = None
        if mode is TranslationMode.VOICE and speak_back:
            speech = SpeechRequest(text=result.translated_text, locale=target.tts_locale)
        return DispatchOutcome(mode=mode, result=result, history_item=item, speech=speech, offline=True)

    def _record(
        self,
        mode: TranslationMode,
        result: TranslationResult,
        other: LanguageOption,
        reservation: QuotaReservation,
    ) -> Optional[HistoryItem]:
        """Append to history, releasing the reservation when the write fails."""

        try:
            return self._history.append(result, other)
        except Exception:
            LOGGER.exception("Failed to record %s translation in history", mode.value)
            reservation.release()
            return None

    def _classify_failure(self, exc: Exception) -> Failure:
        if isinstance(exc, EmptyResponseError):
            return failure(FailureKind.EMPTY_RESPONSE)
        if not self._connectivity.is_online:
            return failure(FailureKind.NO_CONNECTIVITY)
        return classify(exc)

    def _fail(self, mode: TranslationMode, failed: Failure, detail: Optional[str] = None) -> DispatchOutcome:
        if detail:
            LOGGER.warning("%s translation failed with %s: %s", mode.value, failed.kind.value, detail)
        else:
            LOGGER.info("%s translation refused: %s", mode.value, failed.kind.value)
        return DispatchOutcome(mode=mode, failure=failed)

    # ------------------------------------------------------------------
    # History and usage
    # ------------------------------------------------------------------
    def list_history(self) -> List[HistoryItem]:
        return self._history.list()

    def delete_history_item(self, item_id: str) -> bool:
        return self._history.remove(item_id)

    def clear_history(self) -> None:
        self._history.clear()

    def usage(self) -> UsageLedger:
        return self._ledger.usage()

    def close(self) -> None:
        if self._pipeline is not None:
            self._pipeline.close()
        self._drop_pending_voice()
        with self._lock:
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=True)


__all__ = [
    "DispatchOutcome",
    "EntitlementSource",
    "HISTORY_WRITE_MESSAGE",
    "OFFLINE_VOICE_PHRASE",
    "TranslationDispatcher",
]
