"""
Text de-duplication for overlapping rolling windows.

Each window re-transcribes audio the previous window already covered, so segment
boundaries drift and the same words come back. Timestamps skip most repeats; these
helpers catch the rest by comparing new text with the end of what was committed.
"""
from __future__ import annotations

import re

# Min overlap length (chars) so we don't match tiny fragments like " the " across segments
MIN_OVERLAP_CHARS = 12


def normalize_commit_text(text: str) -> str:
    """Strip repeated whitespace, remove duplicated punctuation."""
    if not text:
        return ""
    text = text.strip()
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"([.!?,;:。、？！])\1+", r"\1", text)
    return text.strip()


def _normalize_for_overlap(s: str) -> str:
    """Lowercase, collapse spaces, drop punctuation so '. then' and ', then' match."""
    s = re.sub(r"\s+", " ", s.strip()).lower()
    s = re.sub(r"[.,;:!?。、？！]", " ", s)
    return re.sub(r"\s+", " ", s).strip()


def text_to_append(committed: list[str], new_segment: str) -> str | None:
    """
    Part of new_segment not already at the end of the committed text.
    Returns the suffix to append, the full text if there is no overlap, or None for a duplicate.
    """
    new = normalize_commit_text(new_segment)
    if not new:
        return None
    acc_norm = _normalize_for_overlap(" ".join(committed))
    new_norm = _normalize_for_overlap(new)
    if not acc_norm:
        return new
    if not new_norm or new_norm in acc_norm:
        return None
    if new_norm.startswith(acc_norm):
        suffix = new_norm[len(acc_norm) :].strip()
        return normalize_commit_text(suffix) or None

    # Longest suffix of committed text equal to a prefix of the new text
    for length in range(min(len(acc_norm), len(new_norm)), MIN_OVERLAP_CHARS - 1, -1):
        if acc_norm[-length:] != new_norm[:length]:
            continue
        if not new_norm[length:].strip():
            return None
        # Keep original casing: drop as many words as the overlap covered
        overlap_words = len(new_norm[:length].split())
        rest = new.split()[overlap_words:]
        return normalize_commit_text(" ".join(rest)) or None

    # The decoder sometimes restarts mid-sentence: prefix of new text found anywhere in committed
    for length in range(min(len(new_norm), len(acc_norm)), MIN_OVERLAP_CHARS - 1, -1):
        if length < len(new_norm) and new_norm[length] != " ":
            continue
        if new_norm[:length] in acc_norm:
            overlap_words = len(new_norm[:length].split())
            new_words = new.split()
            if overlap_words >= len(new_words):
                return None
            return normalize_commit_text(" ".join(new_words[overlap_words:])) or None
    return new
