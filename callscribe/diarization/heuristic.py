"""
Two-speaker heuristic for live sessions.

The salesperson holds the phone/mic, so their frames are louder than the customer's.
A span whose nearby frames reach the voiced mean is the primary (loud) role.
Limitation: breaks down if roles swap position or more than two people talk.
"""
from __future__ import annotations

from typing import Sequence

from callscribe.audio.models import EnergyFrame
from callscribe.config import get_settings
from callscribe.diarization.base import SpeakerDiarizer

DEFAULT_ENERGY_FLOOR = 0.008
DEFAULT_MEAN_MULTIPLIER = 1.2
DEFAULT_WINDOW_SECONDS = 0.25


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def classify_speaker(
    start: float,
    end: float,
    frames: Sequence[EnergyFrame],
    *,
    primary: str,
    secondary: str,
    energy_floor: float = DEFAULT_ENERGY_FLOOR,
    mean_multiplier: float = DEFAULT_MEAN_MULTIPLIER,
    window: float = DEFAULT_WINDOW_SECONDS,
) -> str:
    """
    Classify [start, end) as primary (energy >= voiced mean) or secondary.
    With no frames yet the primary role (the app's own user) is assumed.
    """
    if not frames:
        return primary

    mean = _mean([f.energy for f in frames])
    vad_threshold = max(energy_floor, mean * mean_multiplier)
    voiced = [f.energy for f in frames if f.energy >= vad_threshold]
    voiced_mean = _mean(voiced) if voiced else mean

    nearby = [f.energy for f in frames if start - window <= f.center <= end + window]
    if nearby:
        span_energy = _mean(nearby)
    else:
        mid = (start + end) / 2
        span_energy = min(frames, key=lambda f: abs(f.center - mid)).energy

    return primary if span_energy >= voiced_mean else secondary


class TwoSpeakerDiarizer(SpeakerDiarizer):
    """classify_speaker behind the SpeakerDiarizer capability; labels from settings."""

    def __init__(
        self,
        primary_label: str | None = None,
        secondary_label: str | None = None,
        energy_floor: float | None = None,
        mean_multiplier: float | None = None,
        window_seconds: float | None = None,
    ) -> None:
        settings = get_settings()
        self._primary = primary_label or settings.PRIMARY_SPEAKER_LABEL
        self._secondary = secondary_label or settings.SECONDARY_SPEAKER_LABEL
        self._energy_floor = energy_floor if energy_floor is not None else settings.CLASSIFIER_ENERGY_FLOOR
        self._mean_multiplier = mean_multiplier if mean_multiplier is not None else settings.CLASSIFIER_MEAN_MULTIPLIER
        self._window = window_seconds if window_seconds is not None else settings.CLASSIFIER_WINDOW_SECONDS
        self._frames: Sequence[EnergyFrame] = ()

    def fit(self, frames: Sequence[EnergyFrame]) -> None:
        self._frames = frames

    def label_for(self, start: float, end: float) -> str:
        return classify_speaker(
            start,
            end,
            self._frames,
            primary=self._primary,
            secondary=self._secondary,
            energy_floor=self._energy_floor,
            mean_multiplier=self._mean_multiplier,
            window=self._window,
        )
