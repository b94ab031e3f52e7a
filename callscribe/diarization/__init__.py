"""
Speaker-aware transcription (diarization only).

- No audio separation; no multi-channel input.
- two_speaker: fixed roles (primary / secondary) from loudness; live sessions.
- clustering: "Speaker 1", "Speaker 2", ... from energy + zero-crossing features; batch.

Limitations (see heuristic.py and clustering.py):
- Overlapping speech is attributed to one speaker.
- Speaker labels are approximate and session-local; no real identity inference.
- Accuracy depends on mic quality and distance.
"""
from __future__ import annotations

from callscribe.diarization.base import SpeakerDiarizer, create_diarizer
from callscribe.diarization.clustering import ClusteringDiarizer, ClusteringThresholds, find_speaker_for_time
from callscribe.diarization.heuristic import TwoSpeakerDiarizer, classify_speaker
from callscribe.diarization.models import SpeakerFeature

__all__ = [
    "SpeakerDiarizer",
    "create_diarizer",
    "ClusteringDiarizer",
    "ClusteringThresholds",
    "find_speaker_for_time",
    "TwoSpeakerDiarizer",
    "classify_speaker",
    "SpeakerFeature",
]
