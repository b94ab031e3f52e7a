"""Shared fixtures: frame builders, fake recognizer and capture device, isolated settings."""
from __future__ import annotations

import wave
from pathlib import Path
from typing import AsyncIterator, Iterator, Sequence

import numpy as np
import pytest

from callscribe import session_store
from callscribe.asr.base import RecognitionResult, Recognizer
from callscribe.audio.capture import CaptureDevice, ChunkCallback, TerminatedCallback
from callscribe.audio.models import EnergyFrame
from callscribe.errors import CaptureTerminatedError, PermissionDeniedError, ResourceUnavailableError


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep transcripts and vocabulary lookups inside tmp_path."""
    monkeypatch.setenv("TRANSCRIPT_DIR", str(tmp_path / "transcripts"))
    monkeypatch.setenv("VOCABULARY_PATH", str(tmp_path / "no-vocabulary.json"))
    monkeypatch.setenv("VOCABULARY_CATEGORY", "")
    return tmp_path


@pytest.fixture(autouse=True)
def isolated_session_store() -> Iterator[None]:
    """Keep sessions registered by one test out of the process-wide registry seen by the next."""
    session_store._session_store.clear()
    yield
    session_store._session_store.clear()


def make_frames(
    energies: Sequence[float],
    frame_seconds: float = 0.25,
    zcrs: Sequence[float] | None = None,
) -> list[EnergyFrame]:
    """Contiguous frames; frame i covers [i * d, (i + 1) * d)."""
    zcrs = zcrs if zcrs is not None else [0.0] * len(energies)
    return [
        EnergyFrame(start=i * frame_seconds, end=(i + 1) * frame_seconds, energy=e, zero_crossing_rate=z)
        for i, (e, z) in enumerate(zip(energies, zcrs))
    ]


def sine(seconds: float, amplitude: float, frequency: float, sample_rate: int = 16000) -> np.ndarray:
    t = np.arange(int(seconds * sample_rate)) / sample_rate
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


def silence(seconds: float, sample_rate: int = 16000) -> np.ndarray:
    return np.zeros(int(seconds * sample_rate), dtype=np.float32)


def write_wav(path: Path, samples: np.ndarray, sample_rate: int = 16000) -> Path:
    pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype("<i2")
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm.tobytes())
    return path


class FakeRecognizer(Recognizer):
    """Consumes all live audio, then yields the scripted results. transcribe() returns batch_results."""

    def __init__(
        self,
        stream_results: Sequence[RecognitionResult] = (),
        batch_results: Sequence[RecognitionResult] = (),
        unavailable: bool = False,
        fail_after_chunks: int | None = None,
    ) -> None:
        self.stream_results = list(stream_results)
        self.batch_results = list(batch_results)
        self.unavailable = unavailable
        self.fail_after_chunks = fail_after_chunks
        self.received: list[np.ndarray] = []
        self.prepared: list[str] = []
        self.hints: list[str] = []

    async def prepare(self, locale: str) -> None:
        if self.unavailable:
            raise ResourceUnavailableError(f"No model for {locale}")
        self.prepared.append(locale)

    async def stream(
        self,
        audio: AsyncIterator[np.ndarray],
        sample_rate: int,
        locale: str,
        hints: Sequence[str] = (),
    ) -> AsyncIterator[RecognitionResult]:
        self.hints = list(hints)
        async for chunk in audio:
            self.received.append(chunk)
            if self.fail_after_chunks is not None and len(self.received) >= self.fail_after_chunks:
                raise RuntimeError("decoder crashed")
        for result in self.stream_results:
            yield result

    def transcribe(
        self,
        samples: np.ndarray,
        sample_rate: int,
        locale: str,
        hints: Sequence[str] = (),
    ) -> list[RecognitionResult]:
        self.hints = list(hints)
        return list(self.batch_results)


class FakeCapture(CaptureDevice):
    def __init__(self, sample_rate: int = 16000, permission_denied: bool = False) -> None:
        self._sample_rate = sample_rate
        self.permission_denied = permission_denied
        self.running = False
        self.stop_calls = 0
        self._on_chunk: ChunkCallback | None = None
        self._on_terminated: TerminatedCallback | None = None

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return 1

    def start(self, on_chunk: ChunkCallback, on_terminated: TerminatedCallback) -> None:
        if self.permission_denied:
            raise PermissionDeniedError("Microphone access denied")
        self._on_chunk = on_chunk
        self._on_terminated = on_terminated
        self.running = True

    def stop(self) -> None:
        self.running = False
        self.stop_calls += 1

    def emit(self, samples) -> None:
        assert self._on_chunk is not None
        self._on_chunk(samples)

    def kill(self, reason: str) -> None:
        self.running = False
        assert self._on_terminated is not None
        self._on_terminated(CaptureTerminatedError(reason))


@pytest.fixture
def fake_capture() -> FakeCapture:
    return FakeCapture()
