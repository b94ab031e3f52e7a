"""
Schemas for transcript payloads (WebSocket messages and HTTP responses).

Segments leave the pipeline as immutable TranscriptSegment values; these models are the
wire form. Text is presented trimmed (recognizers deliver a leading separator space).
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Sequence

from pydantic import BaseModel, Field

from callscribe.transcript.models import TranscriptSegment

if TYPE_CHECKING:
    from callscribe.pipeline.batch import BatchResult
    from callscribe.pipeline.streaming import LiveTranscriptionSession


class TranscriptSegmentOut(BaseModel):
    """One speaker-attributed segment."""

    id: str
    start: float = Field(..., description="Seconds from session start")
    end: float = Field(..., description="Seconds from session start")
    speaker: str = Field(..., description="Role label (Sales / Customer), cluster label (Speaker N) or '...' while provisional")
    text: str
    is_volatile: bool = Field(False, description="Provisional text; replaced by the next update")

    @classmethod
    def from_segment(cls, segment: TranscriptSegment) -> "TranscriptSegmentOut":
        return cls(
            id=segment.id,
            start=round(segment.start, 3),
            end=round(segment.end, 3),
            speaker=segment.speaker,
            text=segment.text.strip(),
            is_volatile=segment.is_volatile,
        )


def segments_out(segments: Sequence[TranscriptSegment]) -> list[TranscriptSegmentOut]:
    return [TranscriptSegmentOut.from_segment(s) for s in segments]


class SessionStatus(BaseModel):
    """WebSocket status message; sent on every state change."""

    type: Literal["status"] = "status"
    session_id: str
    state: str
    status_text: str
    error_text: str | None = None
    is_recording: bool = False

    @classmethod
    def from_session(cls, session: "LiveTranscriptionSession") -> "SessionStatus":
        return cls(
            session_id=session.session_id,
            state=session.state,
            status_text=session.status_text,
            error_text=session.error_text,
            is_recording=session.is_recording,
        )


class TranscriptMessage(BaseModel):
    """WebSocket transcript update (type=transcript) or the finalized transcript (type=final)."""

    type: Literal["transcript", "final"] = "transcript"
    session_id: str
    segments: list[TranscriptSegmentOut] = Field(default_factory=list)
    transcript_path: str | None = Field(None, description="Saved file (final message only)")


class TranscriptResponse(BaseModel):
    """Response body for GET /api/sessions/{session_id}/transcript."""

    session_id: str
    state: str
    is_recording: bool
    error_text: str | None = None
    segments: list[TranscriptSegmentOut]
    transcript_path: str | None = None


class BatchTranscribeResponse(BaseModel):
    """Response body for POST /api/transcribe."""

    filename: str | None = None
    duration: float = Field(..., description="Recording length in seconds")
    speakers: list[str] = Field(default_factory=list, description="Labels in order of first appearance")
    segments: list[TranscriptSegmentOut]

    @classmethod
    def from_result(cls, result: "BatchResult", filename: str | None = None) -> "BatchTranscribeResponse":
        return cls(
            filename=filename,
            duration=round(result.duration, 3),
            speakers=result.speakers,
            segments=segments_out(result.segments),
        )


class VocabularyResponse(BaseModel):
    """Response body for GET /api/vocabulary[/{category}]."""

    category: str | None = None
    categories: list[str] = Field(default_factory=list)
    words: list[str] = Field(default_factory=list)
