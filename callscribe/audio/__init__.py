"""Audio pipeline: capture, energy framing, batch VAD, file decoding, rolling window."""
from .models import EnergyFrame, SpeechSegment
from .energy import compute_energy, zero_crossing_rate
from .accumulator import FrameAccumulator, frames_from_samples
from .vad import VoiceActivityDetector
from .capture import CaptureDevice, WebSocketCapture
from .rolling_buffer import RollingBuffer

__all__ = [
    "EnergyFrame",
    "SpeechSegment",
    "compute_energy",
    "zero_crossing_rate",
    "FrameAccumulator",
    "frames_from_samples",
    "VoiceActivityDetector",
    "CaptureDevice",
    "WebSocketCapture",
    "RollingBuffer",
]
