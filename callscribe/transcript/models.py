"""Speaker-attributed transcript span: the only data the pipeline hands to clients."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class TranscriptSegment:
    """
    One speaker-tagged transcript segment.

    start, end: seconds, session-relative.
    speaker: role label ("Sales" / "Customer") or cluster label ("Speaker 1").
    is_volatile: provisional recognizer output; replaced by the next result, never merged.
    id: stable across merges (a merge keeps the earlier segment's id).
    """

    start: float
    end: float
    speaker: str
    text: str
    is_volatile: bool = False
    id: str = field(default_factory=_new_id)
