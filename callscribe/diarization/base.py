"""
SpeakerDiarizer: one capability, two policies.

- two_speaker: TwoSpeakerDiarizer, loudness against the voiced baseline. Streaming friendly;
  assumes exactly two fixed roles (near-mic salesperson vs customer).
- clustering: ClusteringDiarizer, VAD + change points + greedy clustering. Needs the
  whole frame history; unknown (small) number of speakers.
Selected by configuration; callers only see fit() / label_for().
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from callscribe.audio.models import EnergyFrame, SpeechSegment
from callscribe.config import get_settings


class SpeakerDiarizer(ABC):
    """Attributes a time span to a speaker label using energy frames seen so far."""

    #: whether frames must carry zero-crossing rate
    needs_zcr: bool = False

    @property
    def segments(self) -> list[SpeechSegment]:
        """Labelled speech segments from the last fit(). Policies that do not segment return []."""
        return []

    @abstractmethod
    def fit(self, frames: Sequence[EnergyFrame]) -> None:
        """Give the diarizer the frame history. Live sessions call this before each label_for()."""
        ...

    @abstractmethod
    def label_for(self, start: float, end: float) -> str:
        """Speaker label for [start, end). Never raises."""
        ...


def create_diarizer(mode: str | None = None) -> SpeakerDiarizer:
    """Build the diarizer for mode ("two_speaker" | "clustering"); default DIARIZATION_MODE."""
    from callscribe.diarization.clustering import ClusteringDiarizer
    from callscribe.diarization.heuristic import TwoSpeakerDiarizer

    mode = mode or get_settings().DIARIZATION_MODE
    if mode == "clustering":
        return ClusteringDiarizer()
    if mode == "two_speaker":
        return TwoSpeakerDiarizer()
    raise ValueError(f"Unknown diarization mode: {mode}")
