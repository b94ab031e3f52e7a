"""
Segment merging for readability.

- Streaming policy (merge_adjacent): join same-speaker finals that are close in time
  (gap <= tolerance). Text is concatenated as-is; recognizers deliver their own spacing.
- Batch policy (merge_turns): a speaker's turn is never split by silence. Line breaks go
  after sentence-ending punctuation so long turns stay readable.
Volatile (provisional) spans are never merged under either policy.
Both functions are idempotent on their own output.
"""
from __future__ import annotations

import re
from dataclasses import replace
from typing import Sequence

from callscribe.transcript.models import TranscriptSegment

TERMINAL_PUNCTUATION = ("。", "？", "！", ".", "?", "!")

_FULLWIDTH_TERMINAL_RUN = re.compile(r"[。？！]+")
# ASCII only before whitespace so "3.5" or "e.g.x" stay intact
_ASCII_TERMINAL_RUN = re.compile(r"[.?!]+(?=\s)")
_SPACES_AROUND_NEWLINE = re.compile(r"[ \t　]*\n[ \t　]*")
_REPEATED_NEWLINES = re.compile(r"\n{2,}")


def can_merge(current: TranscriptSegment, following: TranscriptSegment, gap_tolerance: float | None) -> bool:
    """Same speaker, both final, and (when a tolerance is given) close enough in time."""
    if current.is_volatile or following.is_volatile:
        return False
    if current.speaker != following.speaker:
        return False
    if gap_tolerance is None:
        return True
    return following.start - current.end <= gap_tolerance


def absorb(current: TranscriptSegment, following: TranscriptSegment, text: str | None = None) -> TranscriptSegment:
    """current extended to following.end; keeps current.id. text defaults to direct concatenation."""
    return replace(
        current,
        end=following.end,
        text=current.text + following.text if text is None else text,
        is_volatile=False,
    )


def merge_adjacent(segments: Sequence[TranscriptSegment], gap_tolerance: float) -> list[TranscriptSegment]:
    """Streaming policy: merge consecutive same-speaker finals with gap <= gap_tolerance."""
    if not segments:
        return []
    merged: list[TranscriptSegment] = []
    current = segments[0]
    for segment in segments[1:]:
        if can_merge(current, segment, gap_tolerance):
            current = absorb(current, segment)
        else:
            merged.append(current)
            current = segment
    merged.append(current)
    return merged


def combine_text(left: str, right: str) -> str:
    """Line break after a finished sentence, otherwise direct concatenation."""
    if left.rstrip().endswith(TERMINAL_PUNCTUATION):
        return left.rstrip() + "\n" + right.lstrip()
    return left + right


def reflow_text(text: str) -> str:
    """Line break after every run of terminal punctuation; collapse blank lines; trim."""
    text = _FULLWIDTH_TERMINAL_RUN.sub(lambda m: m.group(0) + "\n", text)
    text = _ASCII_TERMINAL_RUN.sub(lambda m: m.group(0) + "\n", text)
    text = _SPACES_AROUND_NEWLINE.sub("\n", text)
    text = _REPEATED_NEWLINES.sub("\n", text)
    return text.strip()


def merge_turns(segments: Sequence[TranscriptSegment]) -> list[TranscriptSegment]:
    """Batch policy: merge consecutive same-speaker finals regardless of gap, then reflow text."""
    if not segments:
        return []
    merged: list[TranscriptSegment] = []
    current = segments[0]
    for segment in segments[1:]:
        if can_merge(current, segment, None):
            current = absorb(current, segment, combine_text(current.text, segment.text))
        else:
            merged.append(current)
            current = segment
    merged.append(current)
    return [s if s.is_volatile else replace(s, text=reflow_text(s.text)) for s in merged]
