"""
TranscriptReconciler: the live transcript list and its only writer.

- PARTIAL (volatile) result: replaces the previous volatile tail; labelled with the
  pending speaker label because diarization waits for the final span.
- FINAL result: drops the volatile tail, then either extends the last final segment
  (same speaker, gap <= tolerance) in place, keeping its id, or is appended.
- Readers (WebSocket sender, HTTP snapshot endpoint) get immutable tuples; they can read
  at any time, including mid-session.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable

from callscribe.config import get_settings
from callscribe.transcript.merger import absorb, can_merge, merge_adjacent
from callscribe.transcript.models import TranscriptSegment

logger = logging.getLogger(__name__)

Snapshot = tuple[TranscriptSegment, ...]
SnapshotCallback = Callable[[Snapshot], None]


class TranscriptReconciler:
    """Serialises every mutation under one lock; observers get the snapshot after each change."""

    def __init__(self, gap_tolerance: float | None = None, pending_label: str | None = None) -> None:
        settings = get_settings()
        self._gap_tolerance = gap_tolerance if gap_tolerance is not None else settings.STREAM_GAP_TOLERANCE_SECONDS
        self._pending_label = pending_label if pending_label is not None else settings.PENDING_SPEAKER_LABEL
        self._segments: list[TranscriptSegment] = []
        self._lock = threading.Lock()
        self._observers: list[SnapshotCallback] = []

    @property
    def gap_tolerance(self) -> float:
        return self._gap_tolerance

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register an observer. Returns a function that unsubscribes it."""
        self._observers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return _unsubscribe

    def snapshot(self) -> Snapshot:
        with self._lock:
            return tuple(self._segments)

    def reset(self) -> None:
        with self._lock:
            self._segments = []
            snapshot: Snapshot = ()
        self._notify(snapshot)

    def apply(self, text: str, start: float, end: float, is_final: bool, speaker: str | None = None) -> None:
        """Fold one recognizer result into the transcript. Empty text is ignored."""
        if not text or not text.strip():
            return
        with self._lock:
            if self._segments and self._segments[-1].is_volatile:
                self._segments.pop()

            if is_final:
                segment = TranscriptSegment(start=start, end=end, speaker=speaker or self._pending_label, text=text)
                last = self._segments[-1] if self._segments else None
                if last is not None and can_merge(last, segment, self._gap_tolerance):
                    self._segments[-1] = absorb(last, segment)
                else:
                    self._segments.append(segment)
            else:
                self._segments.append(
                    TranscriptSegment(start=start, end=end, speaker=self._pending_label, text=text, is_volatile=True)
                )
            snapshot = tuple(self._segments)
        self._notify(snapshot)

    def finalize(self) -> Snapshot:
        """Final readability pass at session end (streaming merge policy)."""
        with self._lock:
            self._segments = merge_adjacent(self._segments, self._gap_tolerance)
            snapshot = tuple(self._segments)
        self._notify(snapshot)
        return snapshot

    def _notify(self, snapshot: Snapshot) -> None:
        for callback in list(self._observers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Transcript observer failed")
