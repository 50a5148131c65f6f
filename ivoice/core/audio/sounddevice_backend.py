"""Microphone capture powered by sounddevice/PortAudio."""

from __future__ import annotations

import contextlib
import queue
from typing import Optional

import numpy as np

from ...logging import get_logger
from .base import AudioCapture, CaptureInfo, DeviceError

LOGGER = get_logger(__name__)

FALLBACK_SAMPLE_RATES = (48_000, 44_100, 32_000, 24_000, 22_050, 16_000, 8_000)


class SoundDeviceCapture(AudioCapture):
    """Capture stream using the sounddevice library."""

    def __init__(
        self,
        info: CaptureInfo,
        device: Optional[int | str] = None,
        block_size: int = 1024,
        dtype: str = "float32",
    ) -> None:
        try:
            import sounddevice as sd
        except (ImportError, OSError) as exc:  # pragma: no cover - depends on PortAudio
            raise DeviceError("sounddevice and PortAudio are required for microphone capture") from exc

        self._sd = sd
        self.info = info
        self._device = device
        self._block_size = block_size
        self._dtype = dtype
        self._queue: queue.Queue[np.ndarray] = queue.Queue()
        self._stream: Optional[sd.InputStream] = None
        self._device_info: Optional[dict] = None

    def _callback(self, indata, frames, time_info, status) -> None:  # pragma: no cover - executed in runtime
        if status:
            LOGGER.warning("sounddevice status: %s", status)
        self._queue.put(indata.copy())

    def start(self) -> None:
        """Open the microphone, stepping down through sample rates it rejects."""

        if self._stream is not None:
            return
        label = self._device if self._device is not None else "default"
        LOGGER.info("Opening microphone %s", label)

        device_info = self._query_device_info()
        if device_info is not None and int(device_info.get("max_input_channels") or 0) <= 0:
            raise DeviceError(f"Device {label} has no input channels")

        requested = int(self.info.sample_rate)
        rejections: list[str] = []
        for sample_rate in self._resolve_sample_rate_candidates():
            stream = self._open_stream(sample_rate, rejections)
            if stream is None:
                continue
            if sample_rate != requested:
                LOGGER.warning("Microphone %s runs at %s Hz instead of %s Hz", label, sample_rate, requested)
            self._stream = stream
            self.info.sample_rate = sample_rate
            return

        detail = f" ({rejections[-1]})" if rejections else ""
        raise DeviceError(f"Failed to open microphone {label}: no compatible sample rate{detail}")

    def _open_stream(self, sample_rate: int, rejections: list[str]):
        """Return a started stream, or ``None`` when ``sample_rate`` is refused."""

        try:
            stream = self._sd.InputStream(
                samplerate=sample_rate,
                channels=self.info.channels,
                dtype=self._dtype,
                blocksize=self._block_size,
                device=self._device,
                callback=self._callback,
            )
        except self._sd.PortAudioError as exc:
            if "sample rate" not in str(exc).lower():
                raise DeviceError(str(exc)) from exc
            rejections.append(str(exc))
            LOGGER.debug("Microphone rejected %s Hz: %s", sample_rate, exc)
            return None

        try:
            stream.start()
        except self._sd.PortAudioError as exc:  # pragma: no cover - depends on runtime device
            with contextlib.suppress(Exception):
                stream.close()
            message = str(exc).lower()
            if "sample rate" not in message and "host error" not in message:
                raise DeviceError(str(exc)) from exc
            rejections.append(str(exc))
            LOGGER.debug("Microphone failed to start at %s Hz: %s", sample_rate, exc)
            return None
        return stream

    def stop(self) -> None:
        if self._stream is not None:
            LOGGER.info("Stopping microphone capture")
            self._stream.stop()

    def close(self) -> None:
        if self._stream is not None:
            LOGGER.debug("Releasing microphone stream")
            self._stream.close()
            self._stream = None
        # drop chunks the callback queued after the last read
        while self.read(timeout=0) is not None:
            pass

    def read(self, timeout: Optional[float] = None) -> Optional[np.ndarray]:
        try:
            if timeout is None or timeout <= 0:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def _resolve_sample_rate_candidates(self) -> list[int]:
        """Requested rate first, then the device default, then common fallbacks."""

        device_info = self._query_device_info() or {}
        try:
            device_default = int(float(device_info.get("default_samplerate") or 0))
        except (TypeError, ValueError):
            device_default = 0
        ordered = [int(self.info.sample_rate or 0), device_default, *FALLBACK_SAMPLE_RATES]
        return list(dict.fromkeys(rate for rate in ordered if rate > 0))

    def _query_device_info(self) -> Optional[dict]:
        if self._device_info is not None:
            return self._device_info
        try:  # pragma: no cover - depends on runtime availability
            info = self._sd.query_devices(self._device, "input")
        except Exception as exc:  # pragma: no cover - depends on runtime availability
            LOGGER.debug("Failed to query device info for %s: %s", self._device, exc)
            return None
        self._device_info = dict(info)
        return self._device_info


def parse_device(device: Optional[str]) -> Optional[int | str]:
    if device is None:
        return None
    device = device.strip()
    if not device:
        return None
    if device.isdigit():
        return int(device)
    return device


def create_microphone_capture(
    device: Optional[str] = None,
    sample_rate: int = 16_000,
    channels: int = 1,
    block_size: int = 1024,
) -> SoundDeviceCapture:
    parsed = parse_device(device)
    info = CaptureInfo(
        name="microphone",
        sample_rate=sample_rate,
        channels=channels,
        device="default" if parsed is None else str(parsed),
    )
    return SoundDeviceCapture(info=info, device=parsed, block_size=block_size)


__all__ = ["SoundDeviceCapture", "create_microphone_capture", "parse_device"]
