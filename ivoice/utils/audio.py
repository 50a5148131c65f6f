"""Audio processing utilities."""

from __future__ import annotations

import io
import wave
from typing import Tuple

import numpy as np


def apply_gain(data: np.ndarray, gain: float) -> np.ndarray:
    """Amplify float samples and clip them back into ``[-1.0, 1.0]``."""

    return np.clip(np.asarray(data, dtype=np.float32) * float(gain), -1.0, 1.0)


def to_pcm16(data: np.ndarray, channels: int) -> bytes:
    if data.ndim == 1:
        data = data[:, np.newaxis]
    if data.shape[1] != channels:
        if data.shape[1] == 1 and channels == 2:
            data = np.repeat(data, 2, axis=1)
        else:
            raise ValueError("Channel mismatch when encoding audio")
    clipped = np.clip(data, -1.0, 1.0)
    return (clipped * 32767.0).astype(np.int16).tobytes()


def wave_bytes(pcm: bytes, sample_rate: int, channels: int) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buffer.getvalue()


def read_wave_bytes(data: bytes) -> Tuple[np.ndarray, int]:
    with wave.open(io.BytesIO(data), "rb") as wf:
        frames = wf.readframes(wf.getnframes())
        channels = wf.getnchannels()
        sample_rate = wf.getframerate()
    samples = np.frombuffer(frames, dtype=np.int16).astype(np.float32)
    samples = samples.reshape(-1, channels) if channels > 1 else samples.reshape(-1, 1)
    samples /= 32767.0
    return samples, sample_rate


__all__ = ["apply_gain", "read_wave_bytes", "to_pcm16", "wave_bytes"]
