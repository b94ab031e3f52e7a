"""
FrameAccumulator: turns irregular sample chunks into fixed-duration EnergyFrames.

Why an arena instead of a list with prefix removal:
- Capture delivers chunks of arbitrary size (e.g. 4096 samples at 48kHz) while frames
  are 0.25s. Removing the consumed prefix on every frame copies the whole buffer each
  time (O(n^2) over a long call).
- We keep one numpy array with read/write offsets. Frames are views into it; the
  unread tail (always < one frame) is moved back to offset 0 only after
  COMPACT_MULTIPLE frames were consumed, so the copy cost is amortised.
"""
from __future__ import annotations

from typing import Iterable

import numpy as np

from callscribe.audio.energy import compute_energy, zero_crossing_rate
from callscribe.audio.models import EnergyFrame
from callscribe.config import get_settings


class FrameAccumulator:
    """
    Stateful framer for one live session. push() returns frames completed by the chunk;
    flush() returns the final short frame (if any) when the stream ends.
    Never blocks; only allocation is occasional arena growth.
    """

    def __init__(
        self,
        sample_rate: int,
        frame_seconds: float | None = None,
        compact_multiple: int | None = None,
        with_zcr: bool = False,
    ) -> None:
        settings = get_settings()
        self._sample_rate = sample_rate
        frame_seconds = frame_seconds if frame_seconds is not None else settings.STREAM_FRAME_SECONDS
        compact_multiple = compact_multiple if compact_multiple is not None else settings.FRAME_COMPACT_MULTIPLE
        self._frame_length = max(1, int(sample_rate * frame_seconds))
        self._compact_threshold = self._frame_length * max(1, compact_multiple)
        self._with_zcr = with_zcr

        self._buffer = np.zeros(self._compact_threshold + 2 * self._frame_length, dtype=np.float32)
        self._read = 0
        self._write = 0
        # Samples already turned into frames; absolute time base for the next frame
        self._consumed_samples = 0

    @property
    def frame_length(self) -> int:
        return self._frame_length

    @property
    def pending_samples(self) -> int:
        """Samples received but not yet part of a frame."""
        return self._write - self._read

    def push(self, samples: Iterable[float] | np.ndarray) -> list[EnergyFrame]:
        chunk = np.asarray(samples, dtype=np.float32).ravel()
        if chunk.size == 0:
            return []
        self._reserve(chunk.size)
        self._buffer[self._write : self._write + chunk.size] = chunk
        self._write += chunk.size

        frames: list[EnergyFrame] = []
        while self._write - self._read >= self._frame_length:
            window = self._buffer[self._read : self._read + self._frame_length]
            frames.append(self._make_frame(window))
            self._read += self._frame_length

        if self._read > self._compact_threshold:
            self._compact()
        return frames

    def flush(self) -> EnergyFrame | None:
        """Emit leftover samples (< one frame) as a final, shorter frame."""
        remaining = self._write - self._read
        if remaining <= 0:
            return None
        frame = self._make_frame(self._buffer[self._read : self._write])
        self._read = self._write = 0
        return frame

    def _make_frame(self, window: np.ndarray) -> EnergyFrame:
        start = self._consumed_samples / self._sample_rate
        self._consumed_samples += window.size
        end = self._consumed_samples / self._sample_rate
        zcr = zero_crossing_rate(window) if self._with_zcr else 0.0
        return EnergyFrame(start=start, end=end, energy=compute_energy(window), zero_crossing_rate=zcr)

    def _compact(self) -> None:
        """Move the unread tail to the front of the arena."""
        unread = self._write - self._read
        if unread:
            self._buffer[:unread] = self._buffer[self._read : self._write]
        self._read = 0
        self._write = unread

    def _reserve(self, incoming: int) -> None:
        if self._write + incoming <= self._buffer.size:
            return
        self._compact()
        needed = self._write + incoming
        if needed <= self._buffer.size:
            return
        grown = np.zeros(max(needed, self._buffer.size * 2), dtype=np.float32)
        grown[: self._write] = self._buffer[: self._write]
        self._buffer = grown


def frames_from_samples(
    samples: np.ndarray,
    sample_rate: int,
    frame_seconds: float | None = None,
) -> list[EnergyFrame]:
    """
    Batch framing of a whole recording: energy + zero-crossing rate per frame.
    The last frame covers the remainder and may be shorter.
    """
    if frame_seconds is None:
        frame_seconds = get_settings().BATCH_FRAME_SECONDS
    x = np.asarray(samples, dtype=np.float32).ravel()
    frame_size = int(sample_rate * frame_seconds)
    if frame_size <= 0 or x.size == 0:
        return []

    frames: list[EnergyFrame] = []
    for i in range(0, x.size, frame_size):
        window = x[i : i + frame_size]
        frames.append(
            EnergyFrame(
                start=i / sample_rate,
                end=(i + window.size) / sample_rate,
                energy=compute_energy(window),
                zero_crossing_rate=zero_crossing_rate(window),
            )
        )
    return frames
