"""
Audio decoding for batch mode and PCM conversion for live mode.

- Batch: any file pydub can read (WAV natively; mp3/m4a/... via ffmpeg) is
  downmixed to mono, resampled to the recognizer rate and scaled to float32 [-1, 1].
- Live: PCM 16-bit little-endian bytes -> float32.
Unreadable input raises MalformedAudioError (terminal for that request only).
"""
from __future__ import annotations

import logging
import os

import numpy as np
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from callscribe.config import get_settings
from callscribe.errors import MalformedAudioError

logger = logging.getLogger(__name__)

_INT16_SCALE = 32768.0


def pcm_bytes_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """Convert PCM 16-bit mono bytes to float32 [-1.0, 1.0]."""
    samples = np.frombuffer(pcm_bytes, dtype=np.int16)
    return samples.astype(np.float32) / _INT16_SCALE


def downmix(samples: np.ndarray, channels: int) -> np.ndarray:
    """Interleaved multi-channel float samples -> mono (channel mean)."""
    x = np.asarray(samples, dtype=np.float32).ravel()
    if channels <= 1:
        return x
    usable = x.size - (x.size % channels)
    return x[:usable].reshape(-1, channels).mean(axis=1)


def load_audio_file(path: str, sample_rate: int | None = None) -> tuple[np.ndarray, int]:
    """
    Decode an audio file to mono float32 at sample_rate (default SAMPLE_RATE).
    Returns (samples, sample_rate). Raises MalformedAudioError if the file is missing or undecodable.
    """
    target_rate = sample_rate or get_settings().SAMPLE_RATE
    if not os.path.isfile(path):
        raise MalformedAudioError(f"Audio file not found: {os.path.basename(path)}")
    try:
        segment = AudioSegment.from_file(path)
        segment = segment.set_channels(1).set_frame_rate(target_rate).set_sample_width(2)
    except (CouldntDecodeError, OSError, ValueError, EOFError) as e:
        logger.warning("Audio decode failed for %s: %s", path, e)
        raise MalformedAudioError("Unsupported or unreadable audio format.") from e

    samples = np.array(segment.get_array_of_samples(), dtype=np.float32) / _INT16_SCALE
    logger.info("Loaded %s: %.2fs @ %dHz", os.path.basename(path), samples.size / target_rate, target_rate)
    return samples, target_rate
