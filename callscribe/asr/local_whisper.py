"""
LocalWhisperEngine: Recognizer backed by faster-whisper.

- Model loaded ONCE at startup (singleton, injected at construction).
- Live: rolling windows (e.g. 5s window, 1s step). Whisper returns segments relative to
  each window; only timestamps decide uniqueness, so a segment is never committed twice
  (segment end in session time <= committed_until_time -> skip).
- Commit horizon: a segment becomes FINAL once it starts before
  (current_audio_time - STT_COMMIT_AGE_SECONDS). Later segments stay provisional until a
  following window pushes the horizon forward. At end of stream everything is committed.
- Batch: one decode with word timestamps; each word is one final result.
- Vocabulary hints go to the decoder as initial_prompt.
- Decoding runs in the executor so the event loop stays responsive.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Sequence

import numpy as np

from callscribe.asr.base import RecognitionResult, Recognizer, SegmentTimestamp, language_code
from callscribe.asr.overlap import normalize_commit_text, text_to_append
from callscribe.audio.rolling_buffer import RollingBuffer
from callscribe.config import get_settings
from callscribe.errors import ResourceUnavailableError, StreamFailure

logger = logging.getLogger(__name__)

# Type for shared WhisperModel (loaded at startup)
WhisperModelT = Any

WHISPER_SAMPLE_RATE = 16000

# Epsilon: absorb timestamp jitter so overlapping windows don't commit same segment twice
COMMIT_SKIP_EPSILON = 0.05

# Scripts written without spaces between words
_UNSPACED_LANGUAGES = frozenset({"ja", "zh", "th", "lo", "my", "km"})


def resample(samples: np.ndarray, source_rate: int, target_rate: int = WHISPER_SAMPLE_RATE) -> np.ndarray:
    """Linear-interpolation resample to target_rate (float32)."""
    samples = np.asarray(samples, dtype=np.float32).ravel()
    if source_rate == target_rate or samples.size == 0:
        return samples
    target_len = max(1, int(round(samples.size * target_rate / source_rate)))
    positions = np.linspace(0, samples.size - 1, num=target_len)
    return np.interp(positions, np.arange(samples.size), samples).astype(np.float32)


class StreamCommitter:
    """
    Commit state of one live stream: how far (in session seconds) text is final, and the
    final text so far for overlap de-duplication.
    """

    def __init__(self, commit_age: float, separator: str = " ") -> None:
        self._commit_age = commit_age
        self._separator = separator
        self.committed_until_time = 0.0
        self.final_text: list[str] = []

    def commit(
        self,
        segments: Sequence[SegmentTimestamp],
        window_start: float,
        window_duration: float,
        flushing: bool = False,
    ) -> list[RecognitionResult]:
        """Window segments -> final results (in order) plus at most one trailing provisional."""
        current_audio_time = window_start + window_duration
        commit_horizon = current_audio_time - self._commit_age
        results: list[RecognitionResult] = []
        partial_parts: list[str] = []
        partial_start: float | None = None
        partial_end = 0.0

        for seg in segments:
            start = window_start + seg.start
            end = window_start + seg.end
            if end <= self.committed_until_time + COMMIT_SKIP_EPSILON:
                continue
            # Behind the horizon, straddling it, or end of stream: stable enough to commit
            if flushing or start < commit_horizon:
                raw = normalize_commit_text(seg.text)
                if not raw:
                    continue
                text = text_to_append(self.final_text, raw)
                self.committed_until_time = max(self.committed_until_time, end)
                if text is None:
                    continue
                self.final_text.append(text)
                results.append(RecognitionResult(text=self._separator + text, start=start, end=end, is_final=True))
            else:
                text = (seg.text or "").strip()
                if text:
                    partial_parts.append(text)
                    partial_start = start if partial_start is None else partial_start
                    partial_end = end

        if partial_parts and partial_start is not None:
            joined = " " if self._separator else ""
            results.append(
                RecognitionResult(
                    text=self._separator + joined.join(partial_parts),
                    start=partial_start,
                    end=partial_end,
                    is_final=False,
                )
            )
        return results


class LocalWhisperEngine(Recognizer):
    """
    Local Whisper via faster-whisper. Uses shared model (singleton).
    stream() is async; transcribe() blocks and is meant for the executor.
    """

    def __init__(
        self,
        model: WhisperModelT | None = None,
        beam_size_partial: int | None = None,
        beam_size_final: int | None = None,
        commit_age: float | None = None,
    ) -> None:
        """
        model: shared WhisperModel instance (loaded at app startup).
        If None, prepare() reports the recognizer as unavailable.
        """
        settings = get_settings()
        self._model = model
        self._beam_size_partial = (
            beam_size_partial if beam_size_partial is not None else settings.LOCAL_WHISPER_BEAM_SIZE_PARTIAL
        )
        self._beam_size_final = beam_size_final if beam_size_final is not None else settings.LOCAL_WHISPER_BEAM_SIZE_FINAL
        self._commit_age = commit_age if commit_age is not None else settings.STT_COMMIT_AGE_SECONDS

    @property
    def model(self) -> WhisperModelT | None:
        return self._model

    async def prepare(self, locale: str) -> None:
        if self._model is None:
            raise ResourceUnavailableError("Speech recognition model is not loaded")
        language = language_code(locale)
        supported = getattr(self._model, "supported_languages", None)
        if supported is not None and language not in supported:
            raise ResourceUnavailableError(f"Speech recognition is not available for {locale}")
        logger.info("Recognizer ready (language=%s)", language)

    def _decode(
        self,
        audio: np.ndarray,
        language: str,
        hints: Sequence[str],
        beam_size: int,
        word_timestamps: bool,
    ) -> list[SegmentTimestamp]:
        """
        Synchronous decode; run from executor.
        Segments (or words when word_timestamps) with times relative to audio.
        """
        if self._model is None:
            raise ResourceUnavailableError("Speech recognition model is not loaded")
        segments, _ = self._model.transcribe(
            audio,
            language=language,
            beam_size=beam_size,
            initial_prompt=", ".join(hints) if hints else None,
            vad_filter=True,
            vad_parameters=dict(min_silence_duration_ms=300, speech_pad_ms=100),
            condition_on_previous_text=word_timestamps,
            word_timestamps=word_timestamps,
        )
        out: list[SegmentTimestamp] = []
        for seg in segments:
            if word_timestamps:
                for w in getattr(seg, "words", None) or []:
                    if (w.word or "").strip():
                        out.append(SegmentTimestamp(start=w.start, end=w.end, text=w.word))
            else:
                t = (seg.text or "").strip()
                if t:
                    out.append(SegmentTimestamp(start=seg.start, end=seg.end, text=t))
        return out

    def transcribe(
        self,
        samples: np.ndarray,
        sample_rate: int,
        locale: str,
        hints: Sequence[str] = (),
    ) -> list[RecognitionResult]:
        audio = resample(samples, sample_rate)
        if audio.size == 0:
            return []
        words = self._decode(audio, language_code(locale), hints, self._beam_size_final, word_timestamps=True)
        logger.debug("Batch decode: %d words over %.2fs", len(words), audio.size / WHISPER_SAMPLE_RATE)
        return [RecognitionResult(text=w.text, start=w.start, end=w.end, is_final=True) for w in words]

    async def stream(
        self,
        audio: AsyncIterator[np.ndarray],
        sample_rate: int,
        locale: str,
        hints: Sequence[str] = (),
    ) -> AsyncIterator[RecognitionResult]:
        language = language_code(locale)
        committer = StreamCommitter(self._commit_age, separator="" if language in _UNSPACED_LANGUAGES else " ")
        buffer = RollingBuffer(WHISPER_SAMPLE_RATE)
        loop = asyncio.get_running_loop()

        async def _run(window: np.ndarray, window_start: float, flushing: bool) -> list[RecognitionResult]:
            beam_size = self._beam_size_final if flushing else self._beam_size_partial
            try:
                segments = await loop.run_in_executor(
                    None, self._decode, window, language, hints, beam_size, False
                )
            except ResourceUnavailableError:
                raise
            except Exception as e:
                failure = StreamFailure(f"Recognition failed for window at {window_start:.2f}s: {e}")
                logger.warning("%s", failure.status_text)
                return []
            return committer.commit(segments, window_start, window.size / WHISPER_SAMPLE_RATE, flushing=flushing)

        last: tuple[np.ndarray, float] | None = None
        pending = False
        async for chunk in audio:
            emitted = buffer.push(resample(chunk, sample_rate))
            if emitted is None:
                continue
            last = emitted
            results = await _run(*emitted, flushing=False)
            pending = any(not r.is_final for r in results)
            for result in results:
                yield result

        # End of stream: commit whatever is still provisional
        flushed = buffer.flush()
        if flushed is None and pending:
            flushed = last
        if flushed is not None:
            for result in await _run(*flushed, flushing=True):
                yield result
