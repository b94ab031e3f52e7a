"""
Multi-speaker clustering for batch transcription.

1. Per VAD segment: mean energy and zero-crossing rate (SpeakerFeature).
2. Change points: compare each segment with the previous one. Similar features mean the
   same speaker no matter how long the pause; a switch needs a large feature jump AND a
   real pause, so one loud word or a short breath does not flip the speaker.
3. Segments between change points form groups; group centroids in min-max normalised
   (energy, zcr) space.
4. Greedy clustering of centroids with a fixed radius; no k needed up front.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Sequence

from callscribe.audio.models import EnergyFrame, SpeechSegment
from callscribe.audio.vad import VoiceActivityDetector
from callscribe.config import Settings, get_settings
from callscribe.diarization.base import SpeakerDiarizer
from callscribe.diarization.models import SpeakerFeature

logger = logging.getLogger(__name__)

# Denominator floor for feature ratios (silent segments have ~0 energy)
_RATIO_FLOOR = 0.001


@dataclass(frozen=True)
class ClusteringThresholds:
    """Empirical constants; tune per recording environment via settings."""

    stable_energy: tuple[float, float] = (0.3, 3.0)
    stable_zcr: tuple[float, float] = (0.4, 2.5)
    strong_energy: tuple[float, float] = (0.2, 5.0)
    strong_min_gap: float = 0.3
    combined_energy: tuple[float, float] = (0.4, 2.5)
    combined_zcr: tuple[float, float] = (0.5, 2.0)
    combined_min_gap: float = 0.5
    cluster_radius: float = 0.4

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClusteringThresholds":
        return cls(
            stable_energy=(settings.CHANGE_STABLE_ENERGY_MIN, settings.CHANGE_STABLE_ENERGY_MAX),
            stable_zcr=(settings.CHANGE_STABLE_ZCR_MIN, settings.CHANGE_STABLE_ZCR_MAX),
            strong_energy=(settings.CHANGE_STRONG_ENERGY_MIN, settings.CHANGE_STRONG_ENERGY_MAX),
            strong_min_gap=settings.CHANGE_STRONG_MIN_GAP_SECONDS,
            combined_energy=(settings.CHANGE_COMBINED_ENERGY_MIN, settings.CHANGE_COMBINED_ENERGY_MAX),
            combined_zcr=(settings.CHANGE_COMBINED_ZCR_MIN, settings.CHANGE_COMBINED_ZCR_MAX),
            combined_min_gap=settings.CHANGE_COMBINED_MIN_GAP_SECONDS,
            cluster_radius=settings.CLUSTER_RADIUS,
        )


def _inside(value: float, band: tuple[float, float]) -> bool:
    return band[0] <= value <= band[1]


def _outside(value: float, band: tuple[float, float]) -> bool:
    return value < band[0] or value > band[1]


def compute_features(segments: Sequence[SpeechSegment], frames: Sequence[EnergyFrame]) -> list[SpeakerFeature]:
    """Mean energy/zcr of frames lying fully inside each segment (zeros if none)."""
    features: list[SpeakerFeature] = []
    for segment in segments:
        inside = [f for f in frames if f.start >= segment.start and f.end <= segment.end]
        if not inside:
            features.append(SpeakerFeature(avg_energy=0.0, avg_zcr=0.0, duration=segment.duration))
            continue
        features.append(
            SpeakerFeature(
                avg_energy=sum(f.energy for f in inside) / len(inside),
                avg_zcr=sum(f.zero_crossing_rate for f in inside) / len(inside),
                duration=segment.duration,
            )
        )
    return features


def detect_speaker_change(
    gap: float,
    current: SpeakerFeature,
    previous: SpeakerFeature,
    thresholds: ClusteringThresholds = ClusteringThresholds(),
) -> bool:
    energy_ratio = current.avg_energy / max(previous.avg_energy, _RATIO_FLOOR)
    zcr_ratio = current.avg_zcr / max(previous.avg_zcr, _RATIO_FLOOR)

    if _inside(energy_ratio, thresholds.stable_energy) and _inside(zcr_ratio, thresholds.stable_zcr):
        return False
    if _outside(energy_ratio, thresholds.strong_energy) and gap >= thresholds.strong_min_gap:
        return True
    if (
        _outside(energy_ratio, thresholds.combined_energy)
        and _outside(zcr_ratio, thresholds.combined_zcr)
        and gap >= thresholds.combined_min_gap
    ):
        return True
    return False


def find_change_points(
    segments: Sequence[SpeechSegment],
    features: Sequence[SpeakerFeature],
    thresholds: ClusteringThresholds = ClusteringThresholds(),
) -> list[int]:
    """Indices where a new speaker turn begins. Always starts with 0 (if any segments)."""
    if not segments:
        return []
    change_points = [0]
    for i in range(1, len(segments)):
        gap = segments[i].start - segments[i - 1].end
        if detect_speaker_change(gap, features[i], features[i - 1], thresholds):
            change_points.append(i)
    return change_points


def cluster_speakers(
    features: Sequence[SpeakerFeature],
    change_points: Sequence[int],
    radius: float = ClusteringThresholds.cluster_radius,
) -> list[int]:
    """Cluster index per segment (0-based, in order of first appearance)."""
    if not features:
        return []

    energies = [f.avg_energy for f in features]
    zcrs = [f.avg_zcr for f in features]
    energy_range = (min(energies), max(energies))
    zcr_range = (min(zcrs), max(zcrs))
    normalized = [f.normalized(energy_range, zcr_range) for f in features]

    # Contiguous groups split at change points
    starts = set(change_points)
    groups: list[list[int]] = []
    for i in range(len(features)):
        if i in starts or not groups:
            groups.append([])
        groups[-1].append(i)

    speaker_ids = [0] * len(features)
    centroids: list[tuple[float, float]] = []
    members: list[int] = []  # groups absorbed per cluster, for the running mean

    for group in groups:
        centroid = (
            sum(normalized[i][0] for i in group) / len(group),
            sum(normalized[i][1] for i in group) / len(group),
        )
        best, best_distance = -1, math.inf
        for index, existing in enumerate(centroids):
            distance = math.dist(centroid, existing)
            if distance < radius and distance < best_distance:
                best, best_distance = index, distance

        if best == -1:
            best = len(centroids)
            centroids.append(centroid)
            members.append(1)
        else:
            n = members[best] + 1
            old = centroids[best]
            centroids[best] = (
                (old[0] * (n - 1) + centroid[0]) / n,
                (old[1] * (n - 1) + centroid[1]) / n,
            )
            members[best] = n

        for i in group:
            speaker_ids[i] = best

    return speaker_ids


def speaker_label(index: int, prefix: str = "Speaker ") -> str:
    """Cluster 0 -> "Speaker 1", 1 -> "Speaker 2", ..."""
    return f"{prefix}{index + 1}"


def find_speaker_for_time(time: float, segments: Sequence[SpeechSegment], default: str) -> str:
    """Label of the segment containing time, else of the segment with the nearest boundary."""
    for segment in segments:
        if segment.start <= time <= segment.end:
            return segment.speaker_label
    if not segments:
        return default
    closest = min(segments, key=lambda s: min(abs(time - s.start), abs(time - s.end)))
    return closest.speaker_label


class ClusteringDiarizer(SpeakerDiarizer):
    """VAD + change points + greedy clustering over the full frame history."""

    needs_zcr = True

    def __init__(
        self,
        thresholds: ClusteringThresholds | None = None,
        vad: VoiceActivityDetector | None = None,
        label_prefix: str | None = None,
    ) -> None:
        settings = get_settings()
        self._thresholds = thresholds or ClusteringThresholds.from_settings(settings)
        self._vad = vad or VoiceActivityDetector()
        self._prefix = label_prefix if label_prefix is not None else settings.SPEAKER_LABEL_PREFIX
        self._segments: list[SpeechSegment] = []
        self._fitted_source: Sequence[EnergyFrame] | None = None
        self._fitted_frames = -1

    @property
    def segments(self) -> list[SpeechSegment]:
        return list(self._segments)

    def assign(self, segments: Sequence[SpeechSegment], frames: Sequence[EnergyFrame]) -> list[SpeechSegment]:
        """Return copies of segments with speaker_label set."""
        if not segments:
            return []
        features = compute_features(segments, frames)
        change_points = find_change_points(segments, features, self._thresholds)
        assignments = cluster_speakers(features, change_points, self._thresholds.cluster_radius)
        logger.info(
            "Diarization: %d segments, %d change points, %d speakers",
            len(segments),
            len(change_points),
            len(set(assignments)),
        )
        return [replace(s, speaker_label=speaker_label(c, self._prefix)) for s, c in zip(segments, assignments)]

    def fit(self, frames: Sequence[EnergyFrame]) -> None:
        # Live sessions call fit() per final result with one growing list; skip recomputation
        # only when it is that same list and nothing was appended
        if frames is self._fitted_source and len(frames) == self._fitted_frames:
            return
        self._segments = self.assign(self._vad.detect(frames), frames)
        self._fitted_source = frames
        self._fitted_frames = len(frames)

    def label_for(self, start: float, end: float) -> str:
        return find_speaker_for_time(start, self._segments, default=speaker_label(0, self._prefix))
