"""
BatchTranscriber: a whole recording in two passes.

1. Acoustic pass: decode, frame (energy + ZCR), VAD, speaker clustering.
2. Text pass: word-level recognition; each word goes to the speaker of the speech segment
   containing its start time, then same-speaker turns are merged (batch policy, no gap bound).
Synchronous and O(recording length); the API runs it in the executor.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from callscribe import vocabulary
from callscribe.asr.base import Recognizer
from callscribe.audio.accumulator import frames_from_samples
from callscribe.audio.loader import load_audio_file
from callscribe.audio.models import SpeechSegment
from callscribe.config import get_settings
from callscribe.diarization.base import SpeakerDiarizer, create_diarizer
from callscribe.transcript.merger import merge_turns
from callscribe.transcript.models import TranscriptSegment

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    segments: list[TranscriptSegment]
    duration: float
    speech_segments: list[SpeechSegment] = field(default_factory=list)

    @property
    def speakers(self) -> list[str]:
        """Distinct speaker labels in order of first appearance."""
        seen: list[str] = []
        for s in self.segments:
            if s.speaker not in seen:
                seen.append(s.speaker)
        return seen


class BatchTranscriber:
    def __init__(
        self,
        recognizer: Recognizer,
        diarizer: SpeakerDiarizer | None = None,
        locale: str | None = None,
        hints: Sequence[str] | None = None,
        frame_seconds: float | None = None,
        sample_rate: int | None = None,
    ) -> None:
        settings = get_settings()
        self._recognizer = recognizer
        self._diarizer = diarizer
        self._locale = locale or settings.LOCALE
        self._hints = list(hints) if hints is not None else vocabulary.load_hints()
        self._frame_seconds = frame_seconds
        self._sample_rate = sample_rate or settings.SAMPLE_RATE

    def process(self, path: str) -> BatchResult:
        """Decode and transcribe a file. Raises MalformedAudioError for unreadable input."""
        samples, rate = load_audio_file(path, self._sample_rate)
        return self.process_samples(samples, rate)

    def process_samples(self, samples: np.ndarray, sample_rate: int) -> BatchResult:
        samples = np.asarray(samples, dtype=np.float32).ravel()
        duration = samples.size / sample_rate if sample_rate else 0.0

        frames = frames_from_samples(samples, sample_rate, self._frame_seconds)
        # Fresh diarizer per recording unless one was injected
        diarizer = self._diarizer or create_diarizer(get_settings().BATCH_DIARIZATION_MODE)
        diarizer.fit(frames)
        speech_segments = diarizer.segments

        words = self._recognizer.transcribe(samples, sample_rate, self._locale, self._hints)
        spans = [
            TranscriptSegment(
                start=w.start,
                end=w.end,
                speaker=diarizer.label_for(w.start, w.end),
                text=w.text,
            )
            for w in words
            if w.is_final and w.text.strip()
        ]
        segments = merge_turns(spans)
        logger.info(
            "Batch: %.2fs, %d frames, %d speech segments, %d words -> %d turns",
            duration,
            len(frames),
            len(speech_segments),
            len(spans),
            len(segments),
        )
        return BatchResult(segments=segments, duration=duration, speech_segments=list(speech_segments))
