"""Tests for LiveTranscriptionSession (fake recognizer and capture)."""
import asyncio
import logging
from typing import Sequence
from unittest.mock import AsyncMock

import numpy as np
import pytest

from callscribe.asr.base import RecognitionResult
from callscribe.audio.models import EnergyFrame
from callscribe.diarization.clustering import ClusteringDiarizer
from callscribe.diarization.heuristic import TwoSpeakerDiarizer
from callscribe.pipeline.streaming import LiveTranscriptionSession
from tests.conftest import FakeCapture, FakeRecognizer

LOUD = np.full(16000, 0.5, dtype=np.float32)
QUIET = np.full(16000, 0.01, dtype=np.float32)
TAIL = np.full(1000, 0.01, dtype=np.float32)

RESULTS = [
    RecognitionResult(text="Hello", start=0.0, end=0.7),
    RecognitionResult(text=" there", start=1.3, end=2.0),
    RecognitionResult(text=" more", start=2.0, end=2.2, is_final=False),
]


class RecordingDiarizer(TwoSpeakerDiarizer):
    def __init__(self) -> None:
        super().__init__()
        self.fitted: list[int] = []

    def fit(self, frames: Sequence[EnergyFrame]) -> None:
        self.fitted.append(len(frames))
        super().fit(frames)


class ZcrSpyDiarizer(ClusteringDiarizer):
    def __init__(self) -> None:
        super().__init__()
        self.zcrs: list[float] = []

    def fit(self, frames: Sequence[EnergyFrame]) -> None:
        self.zcrs = [f.zero_crossing_rate for f in frames]
        super().fit(frames)


def _session(recognizer: FakeRecognizer, capture: FakeCapture, **kwargs) -> LiveTranscriptionSession:
    kwargs.setdefault("hints", [])
    return LiveTranscriptionSession(recognizer, capture, "s-test", **kwargs)


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


@pytest.mark.integration
class TestLiveTranscriptionSession:
    @pytest.mark.asyncio
    async def test_full_session(self, fake_capture: FakeCapture) -> None:
        diarizer = RecordingDiarizer()
        session = _session(FakeRecognizer(stream_results=RESULTS), fake_capture, diarizer=diarizer)

        assert await session.start() is True
        assert session.state == "recording"
        assert session.is_recording is True
        fake_capture.emit(LOUD)
        fake_capture.emit(QUIET)
        fake_capture.emit(TAIL)
        snapshot = await session.stop()

        assert [(s.speaker, s.text, s.is_volatile) for s in snapshot] == [
            ("Sales", "Hello", False),
            ("Customer", " there", False),
            ("...", " more", True),
        ]
        # 4 loud + 4 quiet frames of 0.25s, plus the flushed short frame
        assert diarizer.fitted == [9, 9]
        assert session.state == "idle"
        assert session.status_text == "Done"
        assert session.frames == ()
        assert fake_capture.stop_calls == 1

    @pytest.mark.asyncio
    async def test_recognizer_receives_all_audio(self, fake_capture: FakeCapture) -> None:
        recognizer = FakeRecognizer()
        session = _session(recognizer, fake_capture)
        await session.start()
        fake_capture.emit(LOUD)
        fake_capture.emit(np.zeros(0, dtype=np.float32))
        fake_capture.emit(TAIL)
        await session.stop()
        assert sum(chunk.size for chunk in recognizer.received) == 17000
        assert recognizer.prepared == ["en-US"]

    @pytest.mark.asyncio
    async def test_model_unavailable(self, fake_capture: FakeCapture) -> None:
        session = _session(FakeRecognizer(unavailable=True), fake_capture, locale="ja-JP")
        assert await session.start() is False
        assert session.state == "idle"
        assert session.status_text == "Model unavailable"
        assert session.error_text == "No model for ja-JP"
        assert session.is_model_ready is False
        assert fake_capture.running is False

    @pytest.mark.asyncio
    async def test_permission_denied(self) -> None:
        capture = FakeCapture(permission_denied=True)
        session = _session(FakeRecognizer(), capture)
        assert await session.start() is False
        assert session.state == "idle"
        assert session.status_text == "Permission denied"
        assert session.error_text == "Microphone access denied"
        assert session.is_recording is False

    @pytest.mark.asyncio
    async def test_capture_terminated(self, fake_capture: FakeCapture) -> None:
        session = _session(FakeRecognizer(stream_results=RESULTS[:1]), fake_capture)
        await session.start()
        fake_capture.emit(LOUD)
        fake_capture.kill("Device unplugged")

        await _wait_for(lambda: session.status_text.startswith("Recording stopped"))
        assert session.is_recording is False
        assert session.error_text == "Device unplugged"
        assert session.status_text == "Recording stopped: Device unplugged"
        assert [s.text for s in session.reconciler.snapshot()] == ["Hello"]

    @pytest.mark.asyncio
    async def test_failed_stop_after_termination_is_logged(
        self, fake_capture: FakeCapture, caplog: pytest.LogCaptureFixture
    ) -> None:
        session = _session(FakeRecognizer(), fake_capture)
        await session.start()
        session.stop = AsyncMock(side_effect=RuntimeError("finalize exploded"))
        with caplog.at_level(logging.ERROR):
            fake_capture.kill("Device unplugged")
            await _wait_for(lambda: "capture termination failed" in caplog.text)
        assert "finalize exploded" in caplog.text
        assert session.error_text == "Device unplugged"
        del session.stop
        await session.stop()

    @pytest.mark.asyncio
    async def test_bad_chunk_is_dropped(self, fake_capture: FakeCapture, caplog: pytest.LogCaptureFixture) -> None:
        recognizer = FakeRecognizer()
        session = _session(recognizer, fake_capture)
        await session.start()
        with caplog.at_level(logging.WARNING):
            fake_capture.emit("not audio")
        fake_capture.emit(TAIL)
        await session.stop()
        assert "Dropped capture chunk" in caplog.text
        assert [chunk.size for chunk in recognizer.received] == [1000]
        assert session.error_text is None

    @pytest.mark.asyncio
    async def test_recognizer_failure_does_not_hang_stop(self, fake_capture: FakeCapture) -> None:
        session = _session(FakeRecognizer(stream_results=RESULTS, fail_after_chunks=1), fake_capture)
        await session.start()
        fake_capture.emit(LOUD)
        fake_capture.emit(QUIET)
        snapshot = await asyncio.wait_for(session.stop(), timeout=2.0)
        assert snapshot == ()
        assert session.error_text == "Recognition failed: decoder crashed"
        assert session.state == "idle"

    @pytest.mark.asyncio
    async def test_status_sequence(self, fake_capture: FakeCapture) -> None:
        seen: list[tuple[str, str]] = []
        session = _session(
            FakeRecognizer(), fake_capture, on_status=lambda s: seen.append((s.state, s.status_text))
        )
        await session.start()
        await session.stop()
        assert seen == [
            ("preparing", "Checking model..."),
            ("ready", "Ready"),
            ("recording", "Recording (live transcription)"),
            ("finalizing", "Finalizing..."),
            ("idle", "Done"),
        ]

    @pytest.mark.asyncio
    async def test_failing_status_listener_is_logged(self, fake_capture: FakeCapture) -> None:
        def broken(_session) -> None:
            raise RuntimeError("listener bug")

        session = _session(FakeRecognizer(), fake_capture, on_status=broken)
        assert await session.start() is True
        await session.stop()
        assert session.state == "idle"

    @pytest.mark.asyncio
    async def test_hints_and_locale_passed_to_recognizer(self, fake_capture: FakeCapture) -> None:
        recognizer = FakeRecognizer()
        session = _session(recognizer, fake_capture, hints=["quote", "renewal"], locale="en-GB")
        await session.start()
        await session.stop()
        assert recognizer.hints == ["quote", "renewal"]
        assert recognizer.prepared == ["en-GB"]

    @pytest.mark.asyncio
    async def test_stop_when_idle_and_restart(self, fake_capture: FakeCapture) -> None:
        session = _session(FakeRecognizer(stream_results=RESULTS[:1]), fake_capture)
        assert await session.stop() == ()
        await session.start()
        fake_capture.emit(LOUD)
        first = await session.stop()
        assert [s.text for s in first] == ["Hello"]

        assert await session.start() is True
        assert session.reconciler.snapshot() == ()
        fake_capture.emit(LOUD)
        second = await session.stop()
        assert [s.text for s in second] == ["Hello"]
        assert first[0].id != second[0].id

    @pytest.mark.asyncio
    async def test_zcr_collected_only_when_diarizer_needs_it(self, fake_capture: FakeCapture) -> None:
        voiced = (np.sin(np.arange(16000) * 0.3) * 0.5).astype(np.float32)

        heuristic = RecordingDiarizer()
        session = _session(FakeRecognizer(stream_results=RESULTS[:1]), fake_capture, diarizer=heuristic)
        await session.start()
        fake_capture.emit(voiced)
        await session.stop()
        assert heuristic.needs_zcr is False

        clustering = ZcrSpyDiarizer()
        session = _session(FakeRecognizer(stream_results=RESULTS[:1]), fake_capture, diarizer=clustering)
        await session.start()
        fake_capture.emit(voiced)
        snapshot = await session.stop()
        assert len(clustering.zcrs) == 4
        assert all(z > 0 for z in clustering.zcrs)
        assert snapshot[0].speaker == "Speaker 1"
