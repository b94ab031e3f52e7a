"""
Acoustic data owned by the pipeline. Never exposed to clients; only
TranscriptSegment leaves the pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EnergyFrame:
    """
    Acoustic summary of one window of samples.

    start, end: seconds since the first sample of the run.
    energy: mean absolute amplitude.
    zero_crossing_rate: sign changes per sample (batch, or live clustering); 0.0 otherwise.
    """

    start: float
    end: float
    energy: float
    zero_crossing_rate: float = 0.0

    @property
    def center(self) -> float:
        return (self.start + self.end) / 2


@dataclass(frozen=True)
class SpeechSegment:
    """VAD interval; speaker_label is filled in by the clustering diarizer."""

    start: float
    end: float
    speaker_label: str = ""

    @property
    def duration(self) -> float:
        return self.end - self.start
