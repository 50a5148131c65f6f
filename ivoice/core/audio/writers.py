"""Incremental WAV encoder for captured microphone fragments."""

from __future__ import annotations

from typing import List

import numpy as np

from ...utils.audio import to_pcm16, wave_bytes
from .base import AudioPayload

WAV_MIME_TYPE = "audio/wav"


class WaveFragmentEncoder:
    """Encodes float chunks to 16-bit PCM fragments kept in arrival order."""

    mime_type = WAV_MIME_TYPE

    def __init__(self, sample_rate: int, channels: int) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self._fragments: List[bytes] = []
        self._frames_written = 0

    def write(self, data: np.ndarray) -> None:
        fragment = to_pcm16(data, self.channels)
        if not fragment:
            return
        self._fragments.append(fragment)
        self._frames_written += len(fragment) // (2 * self.channels)

    @property
    def fragments(self) -> int:
        return len(self._fragments)

    @property
    def frames_written(self) -> int:
        return self._frames_written

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate == 0:
            return 0.0
        return self._frames_written / float(self.sample_rate)

    def finish(self) -> AudioPayload:
        """Concatenate all fragments into one WAV payload."""

        pcm = b"".join(self._fragments)
        return AudioPayload(
            data=wave_bytes(pcm, self.sample_rate, self.channels),
            mime_type=self.mime_type,
            sample_rate=self.sample_rate,
            channels=self.channels,
            fragments=len(self._fragments),
            duration_seconds=self.duration_seconds,
        )

    def discard(self) -> None:
        self._fragments.clear()
        self._frames_written = 0


__all__ = ["WAV_MIME_TYPE", "WaveFragmentEncoder"]
