"""Microphone recording state machine.

``IDLE -> ACQUIRING -> RECORDING -> FINALIZING -> IDLE``. Acquisition
failures, and teardowns that arrive while the device is still opening, go
straight back to ``IDLE``. Every path out of ``RECORDING`` runs
through :meth:`AudioCapturePipeline._release`, so the device stream is
closed no matter how the session ends.
"""

from __future__ import annotations

import contextlib
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

import numpy as np

from ...logging import get_logger
from ...utils.audio import apply_gain
from .base import AudioCapture, AudioPayload, DeviceError
from .writers import WaveFragmentEncoder

LOGGER = get_logger(__name__)

CaptureFactory = Callable[[], AudioCapture]
PayloadHandler = Callable[[AudioPayload], Any]
StateCallback = Callable[["CaptureState", "CaptureState"], None]


class CaptureState(str, Enum):
    IDLE = "IDLE"
    ACQUIRING = "ACQUIRING"
    RECORDING = "RECORDING"
    FINALIZING = "FINALIZING"


class RecordingBusyError(RuntimeError):
    """Raised when a recording is started while another one is active."""


@dataclass
class RecordingSession:
    capture: AudioCapture
    gain: float
    encoder: WaveFragmentEncoder
    stop_event: threading.Event = field(default_factory=threading.Event)
    thread: Optional[threading.Thread] = None
    error: Optional[BaseException] = None
    released: bool = False


@dataclass
class Acquisition:
    """A microphone that is being opened; ``cancelled`` is set by a teardown."""

    cancelled: bool = False


class AudioCapturePipeline:
    """Captures, amplifies and packages one microphone recording at a time."""

    def __init__(
        self,
        capture_factory: CaptureFactory,
        on_payload: PayloadHandler,
        poll_interval: float = 0.05,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self._capture_factory = capture_factory
        self._on_payload = on_payload
        self._poll_interval = poll_interval
        self._on_state_change = on_state_change
        self._lock = threading.RLock()
        self._state = CaptureState.IDLE
        self._session: Optional[RecordingSession] = None
        self._acquisition: Optional[Acquisition] = None

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state == CaptureState.RECORDING

    def start(self, sensitivity: float = 1.0) -> None:
        acquisition = Acquisition()
        with self._lock:
            if self._state != CaptureState.IDLE:
                raise RecordingBusyError("A recording session is already active")
            self._acquisition = acquisition
            self._transition(CaptureState.ACQUIRING)

        capture: Optional[AudioCapture] = None
        try:
            capture = self._capture_factory()
            capture.start()
        except Exception as exc:
            LOGGER.warning("Microphone acquisition failed: %s", exc)
            if capture is not None:
                self._close_capture(capture)
            with self._lock:
                self._finish_acquisition(acquisition)
            if isinstance(exc, DeviceError):
                raise
            raise DeviceError(str(exc) or "Microphone unavailable") from exc

        info = capture.info
        session = RecordingSession(
            capture=capture,
            gain=float(sensitivity),
            encoder=WaveFragmentEncoder(info.sample_rate, info.channels),
        )
        session.thread = threading.Thread(
            target=self._pump,
            args=(session,),
            name="ivoice-capture",
            daemon=True,
        )
        with self._lock:
            cancelled = acquisition.cancelled
            if not cancelled:
                self._acquisition = None
                self._session = session
                self._transition(CaptureState.RECORDING)
        if cancelled:
            LOGGER.info("Recording cancelled while the microphone was opening")
            self._close_capture(capture)
            raise DeviceError("Recording was cancelled while the microphone was opening")
        session.thread.start()
        LOGGER.info(
            "Recording started at %s Hz with gain %.2f",
            info.sample_rate,
            session.gain,
        )

    def stop(self) -> Any:
        """Finalize the active recording and hand its payload off.

        Returns whatever the payload handler returns, or ``None`` when no
        recording was active.
        """

        with self._lock:
            if self._state != CaptureState.RECORDING or self._session is None:
                return None
            session = self._session
            self._session = None
            self._transition(CaptureState.FINALIZING)

        try:
            self._halt(session)
            payload = session.encoder.finish()
            LOGGER.info(
                "Recording finalized: %s fragment(s), %.2fs",
                payload.fragments,
                payload.duration_seconds,
            )
            return self._on_payload(payload)
        finally:
            self._release(session)
            with self._lock:
                self._transition(CaptureState.IDLE)

    def close(self) -> None:
        """Tear down any live session without handing off; safe to call repeatedly.

        A microphone that is still opening cannot be closed from here while its
        ``start()`` blocks, so the acquisition is marked cancelled and the
        starting thread closes the device as soon as it is granted.
        """

        with self._lock:
            if self._acquisition is not None:
                LOGGER.info("Cancelling microphone acquisition")
                self._acquisition.cancelled = True
                self._acquisition = None
            session = self._session
            self._session = None
        if session is not None:
            LOGGER.info("Discarding active recording")
            try:
                self._halt(session, drain=False)
            finally:
                session.encoder.discard()
                self._release(session)
        with self._lock:
            self._transition(CaptureState.IDLE)

    def _pump(self, session: RecordingSession) -> None:
        try:
            while not session.stop_event.is_set():
                chunk = session.capture.read(timeout=self._poll_interval)
                if chunk is not None:
                    self._ingest(session, chunk)
        except Exception as exc:  # pragma: no cover - depends on runtime device
            session.error = exc
            LOGGER.exception("Microphone stream failed during recording: %s", exc)

    def _ingest(self, session: RecordingSession, chunk: np.ndarray) -> None:
        session.encoder.write(apply_gain(chunk, session.gain))

    def _halt(self, session: RecordingSession, drain: bool = True) -> None:
        session.stop_event.set()
        if session.thread is not None and session.thread is not threading.current_thread():
            session.thread.join()
        with contextlib.suppress(Exception):
            session.capture.stop()
        if not drain or session.error is not None:
            return
        while True:
            chunk = session.capture.read(timeout=0)
            if chunk is None:
                break
            self._ingest(session, chunk)

    def _release(self, session: RecordingSession) -> None:
        if session.released:
            return
        session.released = True
        self._close_capture(session.capture)

    def _close_capture(self, capture: AudioCapture) -> None:
        with contextlib.suppress(Exception):
            capture.stop()
        try:
            capture.close()
        except Exception:  # pragma: no cover - depends on runtime device
            LOGGER.exception("Failed to release microphone stream")

    def _finish_acquisition(self, acquisition: Acquisition) -> None:
        # a teardown has already moved the state on; a newer start may own it
        if self._acquisition is not acquisition:
            return
        self._acquisition = None
        self._transition(CaptureState.IDLE)

    def _transition(self, to_state: CaptureState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        LOGGER.debug("Capture state %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)


__all__ = [
    "AudioCapturePipeline",
    "CaptureFactory",
    "CaptureState",
    "RecordingBusyError",
    "RecordingSession",
]
