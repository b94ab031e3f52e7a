"""Pydantic schemas for API request/response and WebSocket messages."""
from callscribe.schemas.transcript import (
    BatchTranscribeResponse,
    SessionStatus,
    TranscriptMessage,
    TranscriptResponse,
    TranscriptSegmentOut,
    VocabularyResponse,
    segments_out,
)

__all__ = [
    "BatchTranscribeResponse",
    "SessionStatus",
    "TranscriptMessage",
    "TranscriptResponse",
    "TranscriptSegmentOut",
    "VocabularyResponse",
    "segments_out",
]
