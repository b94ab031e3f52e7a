"""Tests for the faster-whisper recognizer (model mocked)."""
import logging
from types import SimpleNamespace
from unittest.mock import Mock

import numpy as np
import pytest

from callscribe.asr.base import SegmentTimestamp, language_code
from callscribe.asr.local_whisper import LocalWhisperEngine, StreamCommitter, resample
from callscribe.errors import ResourceUnavailableError


def _model(segments=None, side_effect=None) -> Mock:
    model = Mock()
    model.supported_languages = ["en", "ja"]
    if side_effect is not None:
        model.transcribe.side_effect = side_effect
    else:
        model.transcribe.return_value = (segments or [], SimpleNamespace(language="en"))
    return model


async def _chunks(count: int, seconds: float = 1.0, sample_rate: int = 16000):
    for _ in range(count):
        yield np.zeros(int(seconds * sample_rate), dtype=np.float32)


@pytest.mark.unit
class TestHelpers:
    def test_language_code(self) -> None:
        assert language_code("ja-JP") == "ja"
        assert language_code("en_US") == "en"
        assert language_code("EN") == "en"

    def test_resample_upsamples(self) -> None:
        out = resample(np.linspace(-1, 1, 8000, dtype=np.float32), 8000, 16000)
        assert out.dtype == np.float32
        assert out.size == 16000
        assert out[0] == pytest.approx(-1.0)
        assert out[-1] == pytest.approx(1.0)

    def test_resample_same_rate_and_empty(self) -> None:
        samples = np.ones(100, dtype=np.float32)
        assert np.array_equal(resample(samples, 16000, 16000), samples)
        assert resample(np.zeros(0), 48000, 16000).size == 0


@pytest.mark.unit
class TestStreamCommitter:
    def test_commit_horizon_and_partial(self) -> None:
        committer = StreamCommitter(commit_age=2.0)
        results = committer.commit(
            [
                SegmentTimestamp(0.0, 1.5, "Hello there"),
                SegmentTimestamp(1.5, 2.8, "how are you"),
                SegmentTimestamp(3.2, 4.8, "doing today"),
            ],
            window_start=0.0,
            window_duration=5.0,
        )
        assert [(r.text, r.start, r.end, r.is_final) for r in results] == [
            (" Hello there", 0.0, 1.5, True),
            (" how are you", 1.5, 2.8, True),
            (" doing today", 3.2, 4.8, False),
        ]
        assert committer.committed_until_time == pytest.approx(2.8)

    def test_next_window_skips_committed_and_promotes(self) -> None:
        committer = StreamCommitter(commit_age=2.0)
        committer.commit(
            [SegmentTimestamp(0.0, 1.5, "Hello there"), SegmentTimestamp(1.5, 2.8, "how are you")],
            window_start=0.0,
            window_duration=5.0,
        )
        results = committer.commit(
            [
                SegmentTimestamp(0.5, 1.8, "how are you"),
                SegmentTimestamp(2.2, 3.8, "doing today"),
                SegmentTimestamp(4.0, 4.9, "thanks"),
            ],
            window_start=1.0,
            window_duration=5.0,
        )
        assert [(r.text, r.is_final) for r in results] == [(" doing today", True), (" thanks", False)]
        assert results[0].start == pytest.approx(3.2)

    def test_flush_commits_everything_once(self) -> None:
        committer = StreamCommitter(commit_age=2.0)
        segments = [SegmentTimestamp(4.0, 4.9, "thanks")]
        flushed = committer.commit(segments, window_start=1.0, window_duration=5.0, flushing=True)
        assert [(r.text, r.is_final) for r in flushed] == [(" thanks", True)]
        assert committer.commit(segments, window_start=1.0, window_duration=5.0, flushing=True) == []

    def test_repeated_text_at_new_time_is_not_emitted(self) -> None:
        committer = StreamCommitter(commit_age=0.0)
        committer.commit([SegmentTimestamp(0.0, 1.0, "Hello there")], 0.0, 2.0)
        results = committer.commit([SegmentTimestamp(0.5, 1.5, "hello there.")], 1.0, 2.0)
        assert results == []
        assert committer.committed_until_time == pytest.approx(2.5)
        assert committer.final_text == ["Hello there"]

    def test_unspaced_language_separator(self) -> None:
        committer = StreamCommitter(commit_age=10.0, separator="")
        results = committer.commit(
            [SegmentTimestamp(0.0, 1.0, "お世話に"), SegmentTimestamp(1.0, 2.0, "なります")], 0.0, 3.0
        )
        assert [(r.text, r.is_final) for r in results] == [("お世話になります", False)]


@pytest.mark.unit
class TestLocalWhisperEngine:
    @pytest.mark.asyncio
    async def test_prepare_without_model(self) -> None:
        with pytest.raises(ResourceUnavailableError):
            await LocalWhisperEngine(model=None).prepare("en-US")

    @pytest.mark.asyncio
    async def test_prepare_unsupported_language(self) -> None:
        engine = LocalWhisperEngine(model=_model())
        await engine.prepare("ja-JP")
        with pytest.raises(ResourceUnavailableError) as exc:
            await engine.prepare("xx-YY")
        assert "xx-YY" in exc.value.status_text

    def test_transcribe_word_level(self) -> None:
        words = [
            SimpleNamespace(word=" Hello", start=0.1, end=0.4),
            SimpleNamespace(word=" ", start=0.4, end=0.45),
            SimpleNamespace(word=" there.", start=0.5, end=0.9),
        ]
        model = _model([SimpleNamespace(start=0.1, end=0.9, text=" Hello there.", words=words)])
        engine = LocalWhisperEngine(model=model, beam_size_final=5)
        results = engine.transcribe(np.zeros(16000, dtype=np.float32), 16000, "en-US", hints=["quote", "renewal"])

        assert [(r.text, r.start, r.end, r.is_final) for r in results] == [
            (" Hello", 0.1, 0.4, True),
            (" there.", 0.5, 0.9, True),
        ]
        kwargs = model.transcribe.call_args.kwargs
        assert kwargs["language"] == "en"
        assert kwargs["word_timestamps"] is True
        assert kwargs["beam_size"] == 5
        assert kwargs["initial_prompt"] == "quote, renewal"

    def test_transcribe_without_hints_or_audio(self) -> None:
        model = _model([])
        engine = LocalWhisperEngine(model=model)
        assert engine.transcribe(np.zeros(0, dtype=np.float32), 16000, "en-US") == []
        model.transcribe.assert_not_called()
        engine.transcribe(np.zeros(1600, dtype=np.float32), 16000, "en-US")
        assert model.transcribe.call_args.kwargs["initial_prompt"] is None

    @pytest.mark.asyncio
    async def test_stream_partials_then_final(self) -> None:
        model = _model([SimpleNamespace(start=0.0, end=1.0, text=" Hello there")])
        engine = LocalWhisperEngine(model=model, commit_age=2.0)
        results = [r async for r in engine.stream(_chunks(6), 16000, "en-US")]
        assert [(r.text, r.is_final) for r in results] == [
            (" Hello there", False),
            (" Hello there", False),
            (" Hello there", True),
        ]
        assert model.transcribe.call_args.kwargs["word_timestamps"] is False

    @pytest.mark.asyncio
    async def test_stream_commits_pending_partial_at_end(self) -> None:
        model = _model([SimpleNamespace(start=0.0, end=1.0, text=" Hello there")])
        engine = LocalWhisperEngine(model=model, commit_age=2.0)
        results = [r async for r in engine.stream(_chunks(1), 16000, "en-US")]
        assert [(r.text, r.is_final) for r in results] == [(" Hello there", False), (" Hello there", True)]

    @pytest.mark.asyncio
    async def test_window_failure_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        engine = LocalWhisperEngine(model=_model(side_effect=RuntimeError("cuda out of memory")))
        with caplog.at_level(logging.WARNING):
            results = [r async for r in engine.stream(_chunks(2), 16000, "en-US")]
        assert results == []
        assert "Recognition failed for window" in caplog.text
