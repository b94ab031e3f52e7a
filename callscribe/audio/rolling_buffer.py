"""
RollingBuffer: time-based audio window for real-time STT (no silence gating).

- We keep a fixed window (e.g. 5s) of the most recent samples and hand it to the
  recognizer every STEP seconds of new audio, not when silence is detected, so
  partial text appears while the caller is still speaking.
- Triggers: buffered >= MIN_CHUNK and new samples since last emit >= STEP.
- Finality is decided by segment age in the recognizer (commit horizon).
"""
from __future__ import annotations

import numpy as np

from callscribe.config import get_settings


class RollingBuffer:
    """
    Maintains the most recent window_sec of samples. push() returns
    (window_samples, window_start_sec) when a step elapsed, else None.
    """

    def __init__(
        self,
        sample_rate: int,
        window_sec: float | None = None,
        step_sec: float | None = None,
        min_chunk_sec: float | None = None,
    ) -> None:
        settings = get_settings()
        self._sample_rate = sample_rate
        window_sec = window_sec if window_sec is not None else settings.STT_WINDOW_SECONDS
        step_sec = step_sec if step_sec is not None else settings.STT_STEP_SECONDS
        min_chunk_sec = min_chunk_sec if min_chunk_sec is not None else settings.STT_MIN_CHUNK_SECONDS

        self._window_samples = max(1, int(sample_rate * window_sec))
        self._step_samples = max(1, int(sample_rate * step_sec))
        self._min_samples = max(1, int(sample_rate * min_chunk_sec))

        self._buffer = np.zeros(0, dtype=np.float32)
        self._total_samples = 0
        self._since_emit = 0
        self._emitted = False

    @property
    def total_seconds(self) -> float:
        return self._total_samples / self._sample_rate

    def push(self, samples: np.ndarray) -> tuple[np.ndarray, float] | None:
        """Append one chunk. Returns the current window when a step interval was reached."""
        chunk = np.asarray(samples, dtype=np.float32).ravel()
        if chunk.size == 0:
            return None
        self._buffer = np.concatenate([self._buffer, chunk])[-self._window_samples :]
        self._total_samples += chunk.size
        self._since_emit += chunk.size

        if self._buffer.size < self._min_samples:
            return None
        if self._emitted and self._since_emit < self._step_samples:
            return None
        self._emitted = True
        self._since_emit = 0
        return self._current()

    def flush(self) -> tuple[np.ndarray, float] | None:
        """At end of stream: the last window if anything arrived since the last emit."""
        if self._buffer.size == 0 or (self._emitted and self._since_emit == 0):
            return None
        if not self._emitted and self._buffer.size < self._min_samples:
            return None
        self._since_emit = 0
        return self._current()

    def _current(self) -> tuple[np.ndarray, float]:
        start_sec = (self._total_samples - self._buffer.size) / self._sample_rate
        return self._buffer.copy(), start_sec
