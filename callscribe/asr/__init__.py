"""ASR: the Recognizer interface and the faster-whisper engine."""
from .base import RecognitionResult, Recognizer, SegmentTimestamp, language_code
from .local_whisper import LocalWhisperEngine, StreamCommitter

__all__ = [
    "RecognitionResult",
    "Recognizer",
    "SegmentTimestamp",
    "language_code",
    "LocalWhisperEngine",
    "StreamCommitter",
]
