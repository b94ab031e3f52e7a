"""Live and batch pipelines built from the audio, diarization and transcript stages."""
from .batch import BatchResult, BatchTranscriber
from .streaming import LiveTranscriptionSession

__all__ = ["BatchResult", "BatchTranscriber", "LiveTranscriptionSession"]
