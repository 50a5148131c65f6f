import queue
import threading
from datetime import date

import numpy as np
import pytest

from ivoice.config import Settings
from ivoice.core.audio.base import AudioCapture, CaptureInfo
from ivoice.core.audio.recorder import RecordingBusyError
from ivoice.core.connectivity import ConnectivityMonitor
from ivoice.core.errors import ERROR_MESSAGES, FailureKind
from ivoice.core.pipeline.dispatcher import HISTORY_WRITE_MESSAGE, OFFLINE_VOICE_PHRASE, TranslationDispatcher
from ivoice.data.history import HISTORY_KEY, HistoryStore
from ivoice.data.languages import resolve_pair
from ivoice.data.models import Entitlement, TranslationMode, TranslationResult
from ivoice.data.storage import MemoryKeyValueStore
from ivoice.data.usage import UsageQuotaLedger
from ivoice.services.offline import OfflineDictionaryResolver
from ivoice.services.translation.base import EmptyResponseError, TranslationService

EN_JA = resolve_pair("en", "ja")


class FakeTranslator(TranslationService):
    def __init__(self, detected_language: str = "en", error: Exception | None = None) -> None:
        self.detected_language = detected_language
        self.error = error
        self.calls: list[tuple[str, str, str]] = []
        self.before_return = None

    def _answer(self, mode: str, original: str, target_language: str, mother_language: str):
        self.calls.append((mode, target_language, mother_language))
        if self.before_return is not None:
            self.before_return()
        if self.error is not None:
            raise self.error
        return TranslationResult(
            original_text=original,
            detected_language=self.detected_language,
            translated_text=f"<{target_language}> {original}",
            phonetic="ro-ma-ji",
        )

    def translate_audio(self, audio, mime_type, target_language, mother_language):
        assert mime_type == "audio/wav"
        return self._answer("voice", "spoken words", target_language, mother_language)

    def translate_text(self, text, target_language, mother_language):
        return self._answer("text", text, target_language, mother_language)

    def translate_image(self, image, mime_type, target_language, mother_language):
        return self._answer("image", "menu", target_language, mother_language)


class FakeEntitlements:
    def __init__(self, is_premium: bool = False, downloaded=()) -> None:
        self.is_premium = is_premium
        self.downloaded = frozenset(downloaded)

    def entitlement(self) -> Entitlement:
        return Entitlement(is_premium=self.is_premium, downloaded_languages=self.downloaded)


class SpyResolver(OfflineDictionaryResolver):
    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, str]] = []

    def resolve(self, text, target_code):
        self.calls.append((text, target_code))
        return super().resolve(text, target_code)


class FakeCapture(AudioCapture):
    def __init__(self, fail: bool = False) -> None:
        self.info = CaptureInfo(name="microphone", sample_rate=16000, channels=1)
        self._queue: "queue.Queue[np.ndarray]" = queue.Queue()
        self._queue.put(np.full((1600, 1), 0.1, dtype=np.float32))
        self.fail = fail
        self.closed = False

    def start(self) -> None:
        if self.fail:
            raise OSError("Microphone access denied")

    def stop(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    def read(self, timeout=None):
        try:
            if timeout is None or timeout <= 0:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


class Harness:
    def __init__(
        self,
        translator: FakeTranslator | None = None,
        online: bool = True,
        premium: bool = False,
        downloaded=(),
        daily_limit: int = 3,
        capture_fails: bool = False,
        store: MemoryKeyValueStore | None = None,
    ) -> None:
        self.store = store or MemoryKeyValueStore()
        self.translator = translator or FakeTranslator()
        self.history = HistoryStore(self.store)
        self.ledger = UsageQuotaLedger(self.store, daily_limit=daily_limit, today=lambda: date(2024, 5, 1))
        self.connectivity = ConnectivityMonitor(online=online)
        self.entitlements = FakeEntitlements(premium, downloaded)
        self.resolver = SpyResolver()
        self.captures: list[FakeCapture] = []

        def capture_factory() -> AudioCapture:
            capture = FakeCapture(fail=capture_fails)
            self.captures.append(capture)
            return capture

        self.dispatcher = TranslationDispatcher(
            translator=self.translator,
            history=self.history,
            ledger=self.ledger,
            connectivity=self.connectivity,
            entitlements=self.entitlements,
            resolver=self.resolver,
            capture_factory=capture_factory,
            settings=Settings(),
        )

    def voice_turn(self, pair=EN_JA, speak_back: bool = True):
        refused = self.dispatcher.start_voice(pair, speak_back=speak_back)
        assert refused is None
        return self.dispatcher.stop_voice().result(timeout=5)


@pytest.fixture
def harness():
    created: list[Harness] = []

    def build(**kwargs) -> Harness:
        instance = Harness(**kwargs)
        created.append(instance)
        return instance

    yield build
    for instance in created:
        instance.dispatcher.close()


def test_cloud_text_success_records_history_and_usage(harness):
    h = harness()

    outcome = h.dispatcher.submit_text("Good morning", EN_JA)

    assert outcome.ok
    assert outcome.mode is TranslationMode.TEXT
    assert outcome.result.translated_text == "<Japanese> Good morning"
    assert outcome.speech is None
    assert h.translator.calls == [("text", "Japanese", "English")]
    assert h.ledger.usage().count == 1
    [item] = h.dispatcher.list_history()
    assert item.id == outcome.history_item.id
    assert item.target_lang_locale == "ja-JP"


def test_history_stores_mother_language_when_target_was_spoken(harness):
    h = harness(translator=FakeTranslator(detected_language="ja"))

    outcome = h.dispatcher.submit_text("おはよう", EN_JA)

    assert outcome.history_item.target_lang_name == "English"


def test_image_offline_requires_connectivity(harness):
    h = harness(online=False, premium=True, downloaded={"ja"})

    outcome = h.dispatcher.submit_image(b"\xff\xd8jpeg", "image/jpeg", EN_JA)

    assert outcome.failure.kind is FailureKind.CONNECTIVITY_REQUIRED
    assert h.translator.calls == []
    assert h.resolver.calls == []
    assert h.dispatcher.list_history() == []
    assert h.ledger.usage().count == 0


def test_offline_without_premium_is_refused_before_resolving(harness):
    h = harness(online=False, premium=False, downloaded={"ja"})

    outcome = h.dispatcher.submit_text("hello", EN_JA)

    assert outcome.failure.kind is FailureKind.ENTITLEMENT_REQUIRED
    assert outcome.failure.message == ERROR_MESSAGES[FailureKind.ENTITLEMENT_REQUIRED]
    assert h.resolver.calls == []
    assert h.dispatcher.list_history() == []


def test_offline_without_target_pack_names_the_pack(harness):
    h = harness(online=False, premium=True, downloaded={"es"})

    outcome = h.dispatcher.submit_text("hello", EN_JA)

    assert outcome.failure.kind is FailureKind.ENTITLEMENT_REQUIRED
    assert "日本語" in outcome.failure.message
    assert h.resolver.calls == []


def test_offline_text_uses_dictionary_and_is_not_charged(harness):
    h = harness(online=False, premium=True, downloaded={"ja"})

    outcome = h.dispatcher.submit_text("Where is the bathroom?", EN_JA)

    assert outcome.ok and outcome.offline
    assert outcome.result.translated_text == "トイレはどこですか"
    assert h.translator.calls == []
    assert h.ledger.usage().count == 0
    assert h.dispatcher.list_history()[0].target_lang_name == "Japanese"


def test_offline_unknown_phrase_passes_through(harness):
    h = harness(online=False, premium=True, downloaded={"ja"})

    outcome = h.dispatcher.submit_text("The weather is nice", EN_JA)

    assert outcome.ok
    assert outcome.result.translated_text == "[Offline: The weather is nice]"


def test_cloud_failure_writes_nothing(harness):
    h = harness(translator=FakeTranslator(error=RuntimeError("Error code: 429 - rate limit")))

    outcome = h.dispatcher.submit_text("hello", EN_JA)

    assert outcome.failure.kind is FailureKind.RATE_LIMITED
    assert h.dispatcher.list_history() == []
    assert h.ledger.usage().count == 0
    assert h.store.get("usage") is None


def test_unclassified_failure_surfaces_raw_message(harness):
    h = harness(translator=FakeTranslator(error=RuntimeError("upstream exploded")))

    outcome = h.dispatcher.submit_image(b"png", "image/png", EN_JA)

    assert outcome.failure.kind is FailureKind.UNCLASSIFIED
    assert outcome.failure.message == "upstream exploded"


def test_failure_after_losing_connectivity_reports_no_connectivity(harness):
    h = harness(translator=FakeTranslator(error=RuntimeError("SAFETY")))
    h.translator.before_return = lambda: h.connectivity.set_online(False)

    outcome = h.dispatcher.submit_text("hello", EN_JA)

    assert outcome.failure.kind is FailureKind.NO_CONNECTIVITY


def test_empty_response_is_reported(harness):
    h = harness(translator=FakeTranslator(error=EmptyResponseError()))

    outcome = h.dispatcher.submit_text("hello", EN_JA)

    assert outcome.failure.kind is FailureKind.EMPTY_RESPONSE
    assert h.ledger.usage().count == 0


def test_quota_is_shared_across_modes(harness):
    h = harness(daily_limit=3)

    assert h.dispatcher.submit_text("one", EN_JA).ok
    assert h.dispatcher.submit_image(b"img", "image/png", EN_JA).ok
    assert h.voice_turn().ok

    blocked_text = h.dispatcher.submit_text("four", EN_JA)
    blocked_voice = h.dispatcher.start_voice(EN_JA)

    assert blocked_text.failure.kind is FailureKind.QUOTA_EXCEEDED
    assert blocked_voice.failure.kind is FailureKind.QUOTA_EXCEEDED
    assert len(h.translator.calls) == 3
    assert h.dispatcher.usage().count == 3
    assert len(h.captures) == 1


def test_quota_blocks_offline_requests_too(harness):
    h = harness(daily_limit=1)
    assert h.dispatcher.submit_text("hello", EN_JA).ok

    h.connectivity.set_online(False)
    h.entitlements.is_premium = False

    assert h.dispatcher.submit_text("hello", EN_JA).failure.kind is FailureKind.QUOTA_EXCEEDED


def test_premium_is_never_charged(harness):
    h = harness(premium=True, daily_limit=1)

    for index in range(5):
        assert h.dispatcher.submit_text(f"phrase {index}", EN_JA).ok

    assert h.dispatcher.usage().count == 0
    assert len(h.dispatcher.list_history()) == 5


def test_concurrent_requests_cannot_overshoot_quota(harness):
    h = harness(daily_limit=1)
    entered = threading.Event()
    release = threading.Event()

    def block() -> None:
        entered.set()
        release.wait(timeout=5)

    h.translator.before_return = block
    results = {}
    worker = threading.Thread(target=lambda: results.setdefault("text", h.dispatcher.submit_text("hi", EN_JA)))
    worker.start()
    assert entered.wait(timeout=5)

    h.translator.before_return = None
    second = h.dispatcher.submit_image(b"img", "image/png", EN_JA)
    release.set()
    worker.join(timeout=5)

    assert second.failure.kind is FailureKind.QUOTA_EXCEEDED
    assert results["text"].ok
    assert h.dispatcher.usage().count == 1


def test_voice_success_speaks_in_the_other_language(harness):
    h = harness(translator=FakeTranslator(detected_language="en"))

    outcome = h.voice_turn()

    assert outcome.ok
    assert outcome.mode is TranslationMode.VOICE
    assert outcome.speech.text == "<Japanese> spoken words"
    assert outcome.speech.locale == "ja-JP"
    assert h.captures[0].closed
    assert h.dispatcher.pipeline.state.value == "IDLE"


def test_voice_reply_in_target_language_is_spoken_in_mother_locale(harness):
    h = harness(translator=FakeTranslator(detected_language="ja"))

    outcome = h.voice_turn()

    assert outcome.speech.locale == "en-US"


def test_voice_without_speak_back(harness):
    h = harness()

    outcome = h.voice_turn(speak_back=False)

    assert outcome.ok
    assert outcome.speech is None


def test_voice_device_error_releases_quota(harness):
    h = harness(daily_limit=1, capture_fails=True)

    outcome = h.dispatcher.start_voice(EN_JA)

    assert outcome.failure.kind is FailureKind.DEVICE_ERROR
    assert h.dispatcher.pipeline.state.value == "IDLE"
    assert h.captures[0].closed
    assert h.dispatcher.submit_text("hello", EN_JA).ok


def test_voice_offline_answers_with_survival_phrase(harness):
    h = harness(online=False, premium=True, downloaded={"ja"})

    outcome = h.voice_turn()

    assert outcome.offline
    assert outcome.result.original_text == OFFLINE_VOICE_PHRASE
    assert outcome.result.translated_text == "助けて"
    assert outcome.speech.locale == "ja-JP"
    assert h.translator.calls == []


def test_second_voice_start_is_rejected(harness):
    h = harness()
    assert h.dispatcher.start_voice(EN_JA) is None

    with pytest.raises(RecordingBusyError):
        h.dispatcher.start_voice(EN_JA)

    assert h.dispatcher.stop_voice().result(timeout=5).ok
    assert h.dispatcher.usage().count == 1


def test_stop_without_recording_returns_none(harness):
    h = harness()
    assert h.dispatcher.stop_voice() is None


def test_blank_text_is_rejected(harness):
    h = harness()
    with pytest.raises(ValueError):
        h.dispatcher.submit_text("   ", EN_JA)
    assert h.ledger.usage().count == 0


def test_history_management(harness):
    h = harness()
    first = h.dispatcher.submit_text("one", EN_JA).history_item
    second = h.dispatcher.submit_text("two", EN_JA).history_item

    assert [item.id for item in h.dispatcher.list_history()] == [second.id, first.id]
    assert h.dispatcher.delete_history_item(first.id)
    h.dispatcher.clear_history()
    assert h.dispatcher.list_history() == []


class FlakyHistoryStore(MemoryKeyValueStore):
    """Refuses history writes while ``broken`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.broken = False

    def set(self, key: str, value: str) -> None:
        if self.broken and key == HISTORY_KEY:
            raise OSError("disk full")
        super().set(key, value)


def test_history_write_failure_is_reported_and_frees_the_quota(harness):
    store = FlakyHistoryStore()
    h = harness(store=store, daily_limit=3)
    h.dispatcher.submit_text("before", EN_JA)
    store.broken = True

    outcomes = [h.dispatcher.submit_text("hello", EN_JA) for _ in range(3)]

    for outcome in outcomes:
        assert outcome.failure.kind is FailureKind.UNCLASSIFIED
        assert outcome.failure.message == HISTORY_WRITE_MESSAGE
        assert outcome.history_item is None
    assert h.ledger.usage().count == 1
    assert [item.original_text for item in h.dispatcher.list_history()] == ["before"]

    store.broken = False
    assert h.dispatcher.submit_text("after", EN_JA).ok
    assert h.dispatcher.submit_text("again", EN_JA).ok
    assert h.ledger.usage().count == 3
    assert h.dispatcher.submit_text("over", EN_JA).failure.kind is FailureKind.QUOTA_EXCEEDED


def test_offline_history_write_failure_is_reported(harness):
    store = FlakyHistoryStore()
    h = harness(store=store, online=False, premium=True, downloaded={"ja"})
    store.broken = True

    outcome = h.dispatcher.submit_text("hello", EN_JA)

    assert outcome.failure.message == HISTORY_WRITE_MESSAGE
    assert h.dispatcher.list_history() == []
    assert h.ledger.usage().count == 0
