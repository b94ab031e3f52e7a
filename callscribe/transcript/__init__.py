"""Transcript handling: volatile vs final spans, merging, persistence."""
from .models import TranscriptSegment
from .merger import merge_adjacent, merge_turns, reflow_text
from .reconciler import TranscriptReconciler
from .writer import TranscriptWriterBase, create_transcript_writer

__all__ = [
    "TranscriptSegment",
    "merge_adjacent",
    "merge_turns",
    "reflow_text",
    "TranscriptReconciler",
    "TranscriptWriterBase",
    "create_transcript_writer",
]
