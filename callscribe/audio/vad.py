"""
VoiceActivityDetector: batch speech detection over a complete EnergyFrame sequence.

Adaptive threshold from the recording itself (no fixed dBFS):
- noise floor = 10th percentile energy; threshold = max(floor * 1.5, max * 5%).
- Hysteresis: enter speech above the threshold, leave only after ~0.3s below half of it.
- Short blips (< 0.3s) are dropped; segments closer than 0.5s are joined.
Thresholds are relative, so they do not depend on the energy metric.
"""
from __future__ import annotations

import logging
from typing import Sequence

from callscribe.audio.models import EnergyFrame, SpeechSegment
from callscribe.config import get_settings

logger = logging.getLogger(__name__)

# Absorbs float error in frame timestamps (e.g. 0.7 - 0.4 < 0.3)
_TIME_EPSILON = 1e-9


def merge_speech_segments(segments: Sequence[SpeechSegment], gap_threshold: float) -> list[SpeechSegment]:
    """Join segments whose gap is <= gap_threshold (earlier end := later end)."""
    if not segments:
        return []
    merged: list[SpeechSegment] = []
    current = segments[0]
    for segment in segments[1:]:
        if segment.start - current.end <= gap_threshold + _TIME_EPSILON:
            current = SpeechSegment(start=current.start, end=segment.end)
        else:
            merged.append(current)
            current = segment
    merged.append(current)
    return merged


class VoiceActivityDetector:
    """Energy VAD with adaptive thresholds and hangover. Works on frames, not raw audio."""

    def __init__(
        self,
        noise_floor_multiplier: float | None = None,
        max_energy_ratio: float | None = None,
        hysteresis_ratio: float | None = None,
        hangover_seconds: float | None = None,
        min_segment_seconds: float | None = None,
        merge_gap_seconds: float | None = None,
    ) -> None:
        settings = get_settings()
        self._noise_floor_multiplier = (
            noise_floor_multiplier if noise_floor_multiplier is not None else settings.VAD_NOISE_FLOOR_MULTIPLIER
        )
        self._max_energy_ratio = max_energy_ratio if max_energy_ratio is not None else settings.VAD_MAX_ENERGY_RATIO
        self._hysteresis_ratio = hysteresis_ratio if hysteresis_ratio is not None else settings.VAD_HYSTERESIS_RATIO
        self._hangover_seconds = hangover_seconds if hangover_seconds is not None else settings.VAD_HANGOVER_SECONDS
        self._min_segment_seconds = (
            min_segment_seconds if min_segment_seconds is not None else settings.VAD_MIN_SEGMENT_SECONDS
        )
        self._merge_gap_seconds = merge_gap_seconds if merge_gap_seconds is not None else settings.VAD_MERGE_GAP_SECONDS

    def thresholds(self, frames: Sequence[EnergyFrame]) -> tuple[float, float]:
        """(high, low) thresholds for this recording."""
        if not frames:
            return (0.0, 0.0)
        energies = sorted(f.energy for f in frames)
        noise_floor = energies[len(energies) // 10]
        high = max(noise_floor * self._noise_floor_multiplier, energies[-1] * self._max_energy_ratio)
        return (high, high * self._hysteresis_ratio)

    def hangover_frames(self, frames: Sequence[EnergyFrame]) -> int:
        """Number of consecutive quiet frames that ends a segment (~hangover_seconds)."""
        nominal = frames[0].end - frames[0].start if frames else 0.0
        if nominal <= 0:
            return 1
        return max(1, round(self._hangover_seconds / nominal))

    def detect(self, frames: Sequence[EnergyFrame]) -> list[SpeechSegment]:
        if not frames:
            return []
        high, low = self.thresholds(frames)
        max_hangover = self.hangover_frames(frames)

        segments: list[SpeechSegment] = []
        in_speech = False
        segment_start = 0.0
        hangover = 0

        for index, frame in enumerate(frames):
            if not in_speech:
                if frame.energy > high:
                    in_speech = True
                    segment_start = frame.start
                    hangover = 0
            elif frame.energy < low:
                hangover += 1
                if hangover >= max_hangover:
                    # Close at the last frame before the quiet run started
                    last_voiced = frames[max(0, index - max_hangover)]
                    segments.append(SpeechSegment(start=segment_start, end=last_voiced.end))
                    in_speech = False
                    hangover = 0
            else:
                hangover = 0

        if in_speech:
            segments.append(SpeechSegment(start=segment_start, end=frames[-1].end))

        kept = [s for s in segments if s.duration >= self._min_segment_seconds - _TIME_EPSILON]
        merged = merge_speech_segments(kept, self._merge_gap_seconds)
        logger.debug(
            "VAD: %d frames, high=%.4f low=%.4f, %d raw -> %d segments",
            len(frames),
            high,
            low,
            len(segments),
            len(merged),
        )
        return merged
