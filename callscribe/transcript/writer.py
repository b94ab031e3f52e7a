"""
TranscriptWriter: persists the finalized transcript of a live session.

Why write once on stop instead of appending per final result:
- Final results are still merged into the previous segment (same speaker, small gap),
  so a line written early would be rewritten later.
- Volatile spans are never written; the file holds only stable, merged text.
write() blocks on file I/O; callers run it in the executor.
"""
from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from callscribe.config import get_settings
from callscribe.transcript.models import TranscriptSegment

logger = logging.getLogger(__name__)


def _format_speaker_line(text: str, start_sec: float, add_timestamps: bool, speaker: Optional[str]) -> str:
    """One line with optional [MM:SS.ss] and [Speaker] prefix; inner line breaks become spaces."""
    parts: list[str] = []
    if add_timestamps:
        mm = int(start_sec // 60)
        ss = start_sec % 60
        parts.append(f"[{mm:02d}:{ss:05.2f}]")
    if speaker:
        parts.append(f"[{speaker}]")
    parts.append(" ".join(text.split()))
    return " ".join(parts)


class TranscriptWriterBase(ABC):
    """Base for session transcript sink. Only final segments are written."""

    @abstractmethod
    def write(self, segments: Sequence[TranscriptSegment]) -> Optional[str]:
        """Write the finalized transcript. Returns file path or None. Never raises on I/O errors."""
        ...


class NoOpTranscriptWriter(TranscriptWriterBase):
    """When transcript saving is disabled. No file I/O."""

    def write(self, segments: Sequence[TranscriptSegment]) -> Optional[str]:
        return None


class TranscriptWriter(TranscriptWriterBase):
    """One file per session: transcripts/{session_id}.txt, one line per segment."""

    def __init__(
        self,
        session_id: str,
        transcript_dir: Optional[str] = None,
        add_timestamps: Optional[bool] = None,
    ) -> None:
        settings = get_settings()
        self._session_id = session_id
        self._transcript_dir = transcript_dir or settings.TRANSCRIPT_DIR
        self._add_timestamps = add_timestamps if add_timestamps is not None else settings.TRANSCRIPT_ADD_TIMESTAMPS
        self._path = os.path.join(self._transcript_dir, f"{session_id}.txt")

    @property
    def path(self) -> str:
        return self._path

    def write(self, segments: Sequence[TranscriptSegment]) -> Optional[str]:
        lines = [
            _format_speaker_line(s.text, s.start, self._add_timestamps, s.speaker)
            for s in segments
            if not s.is_volatile and s.text.strip()
        ]
        if not lines:
            logger.debug("Transcript for %s is empty; nothing written", self._session_id)
            return None
        try:
            os.makedirs(self._transcript_dir, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as f:
                f.write("\n".join(lines) + "\n")
        except OSError as e:
            logger.warning("Transcript write failed for %s: %s", self._path, e)
            return None
        logger.info("Transcript saved: %s (%d segments)", self._path, len(lines))
        return self._path


def create_transcript_writer(session_id: str) -> TranscriptWriterBase:
    """Create writer when TRANSCRIPT_SAVE_ENABLED is true; else no-op."""
    settings = get_settings()
    if not getattr(settings, "TRANSCRIPT_SAVE_ENABLED", True):
        return NoOpTranscriptWriter()
    return TranscriptWriter(session_id=session_id)
