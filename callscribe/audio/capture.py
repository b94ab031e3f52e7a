"""
Capture devices: where raw sample chunks come from.

CaptureDevice is the seam to real hardware (microphone drivers are not part of this
service). WebSocketCapture is the one we ship: the browser captures the microphone and
streams PCM 16-bit mono over the WebSocket; each binary message becomes one chunk.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable

import numpy as np

from callscribe.audio.loader import downmix, pcm_bytes_to_float32
from callscribe.errors import CaptureTerminatedError

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[np.ndarray], None]
TerminatedCallback = Callable[[CaptureTerminatedError], None]


class CaptureDevice(ABC):
    """
    Produces float32 sample chunks via on_chunk. on_chunk must be treated as a realtime
    callback: it may run on a driver thread and must return immediately.
    """

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        ...

    @property
    @abstractmethod
    def channels(self) -> int:
        ...

    @abstractmethod
    def start(self, on_chunk: ChunkCallback, on_terminated: TerminatedCallback) -> None:
        """Begin delivering chunks. May raise PermissionDeniedError."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering chunks. Safe to call twice."""
        ...


class WebSocketCapture(CaptureDevice):
    """
    Capture fed by WebSocket binary messages (PCM 16-bit little-endian).
    An odd trailing byte is kept for the next message so samples never split.
    """

    def __init__(self, sample_rate: int, channels: int = 1) -> None:
        self._sample_rate = sample_rate
        self._channels = channels
        self._on_chunk: ChunkCallback | None = None
        self._on_terminated: TerminatedCallback | None = None
        self._remainder = b""
        self._running = False

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, on_chunk: ChunkCallback, on_terminated: TerminatedCallback) -> None:
        self._on_chunk = on_chunk
        self._on_terminated = on_terminated
        self._remainder = b""
        self._running = True

    def stop(self) -> None:
        self._running = False
        self._remainder = b""

    def feed(self, data: bytes) -> None:
        """Append raw PCM bytes from the WebSocket. Ignored when not running."""
        if not self._running or self._on_chunk is None or not data:
            return
        data = self._remainder + data
        usable = len(data) - (len(data) % (2 * self._channels))
        self._remainder = data[usable:]
        if usable == 0:
            return
        samples = downmix(pcm_bytes_to_float32(data[:usable]), self._channels)
        self._on_chunk(samples)

    def terminate(self, reason: str) -> None:
        """The client went away without a stop request."""
        if not self._running:
            return
        self._running = False
        logger.warning("Capture terminated unexpectedly: %s", reason)
        if self._on_terminated is not None:
            self._on_terminated(CaptureTerminatedError(reason))
