"""
Recognizer: abstract interface for the speech-to-text collaborator.

Implementations: LocalWhisperEngine (faster-whisper).
stream() is async and keeps the event loop responsive; transcribe() is the blocking
batch entry point and is itself called from the executor.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator, Sequence

if TYPE_CHECKING:
    import numpy as np


@dataclass
class SegmentTimestamp:
    """One decoder segment (or word): start/end in seconds relative to the decoded audio."""

    start: float
    end: float
    text: str


@dataclass
class RecognitionResult:
    """
    One recognized span in session time.

    is_final=False: provisional, will be replaced by the next result.
    is_final=True: stable; handed to diarization and merged into the transcript.
    """

    text: str
    start: float
    end: float
    is_final: bool = True


class Recognizer(ABC):
    """Speech-to-text engine. Accepts float32 mono audio (normalized [-1, 1])."""

    @abstractmethod
    async def prepare(self, locale: str) -> None:
        """Check model and locale. Raises ResourceUnavailableError when recognition cannot run."""
        ...

    @abstractmethod
    def stream(
        self,
        audio: AsyncIterator["np.ndarray"],
        sample_rate: int,
        locale: str,
        hints: Sequence[str] = (),
    ) -> AsyncIterator[RecognitionResult]:
        """
        Live recognition. Consumes chunks until the iterator ends and yields provisional
        and final results in session time. Per-window failures are logged and skipped.
        """
        ...

    @abstractmethod
    def transcribe(
        self,
        samples: "np.ndarray",
        sample_rate: int,
        locale: str,
        hints: Sequence[str] = (),
    ) -> list[RecognitionResult]:
        """Blocking whole-recording recognition; word-level final results."""
        ...


def language_code(locale: str) -> str:
    """'ja-JP' / 'en_US' -> 'ja' / 'en'."""
    return locale.replace("_", "-").split("-")[0].lower()
