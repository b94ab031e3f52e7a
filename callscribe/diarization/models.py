"""
Speaker features for clustering.

Limitations (diarization-only, single channel):
- Features are energy and zero-crossing rate only; no embeddings.
- Speaker labels are approximate and session-local; no real identity inference.
- Accuracy depends on mic quality and distance.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SpeakerFeature:
    """Per speech segment: mean frame energy, mean zero-crossing rate, duration (sec)."""

    avg_energy: float
    avg_zcr: float
    duration: float

    def normalized(
        self,
        energy_range: tuple[float, float],
        zcr_range: tuple[float, float],
    ) -> tuple[float, float]:
        """Min-max normalised (energy, zcr); range width floored at 0.001."""
        e_min, e_max = energy_range
        z_min, z_max = zcr_range
        return (
            (self.avg_energy - e_min) / max(e_max - e_min, 0.001),
            (self.avg_zcr - z_min) / max(z_max - z_min, 0.001),
        )
