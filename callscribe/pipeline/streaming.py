"""
LiveTranscriptionSession: one live recording, from capture chunks to a labelled transcript.

Stages (all on one event loop except the capture callback):
- capture callback (_on_chunk): may run on a driver thread; converts the chunk and hands it
  to the loop with call_soon_threadsafe. Never blocks, never awaits.
- feature consumer: drains the sample queue through the FrameAccumulator. Only writer of
  the frame list.
- result consumer: feeds the recognizer from the audio queue, labels each final span with
  the diarizer, and applies it to the TranscriptReconciler (single transcript writer).
- notification: reconciler observers (WebSocket sender, snapshot endpoint).

stop() order matters: capture stops first, queued callbacks drain, the sample stream ends
and its consumer flushes the last partial frame BEFORE the audio stream ends, so the last
final results are labelled against the complete frame history.
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, Literal, Sequence

import numpy as np

from callscribe import vocabulary
from callscribe.asr.base import RecognitionResult, Recognizer
from callscribe.audio.accumulator import FrameAccumulator
from callscribe.audio.capture import CaptureDevice
from callscribe.audio.models import EnergyFrame
from callscribe.config import get_settings
from callscribe.diarization.base import SpeakerDiarizer, create_diarizer
from callscribe.errors import (
    CaptureTerminatedError,
    PermissionDeniedError,
    ResourceUnavailableError,
    StreamFailure,
)
from callscribe.transcript.reconciler import Snapshot, TranscriptReconciler

logger = logging.getLogger(__name__)

SessionState = Literal["idle", "preparing", "ready", "recording", "finalizing"]
StatusCallback = Callable[["LiveTranscriptionSession"], None]


class LiveTranscriptionSession:
    """Owns the queues and consumer tasks of one recording. Reusable: start() after stop()."""

    def __init__(
        self,
        recognizer: Recognizer,
        capture: CaptureDevice,
        session_id: str,
        diarizer: SpeakerDiarizer | None = None,
        reconciler: TranscriptReconciler | None = None,
        locale: str | None = None,
        hints: Sequence[str] | None = None,
        frame_seconds: float | None = None,
        on_status: StatusCallback | None = None,
    ) -> None:
        settings = get_settings()
        self.session_id = session_id
        self._recognizer = recognizer
        self._capture = capture
        self._diarizer = diarizer or create_diarizer(settings.DIARIZATION_MODE)
        self.reconciler = reconciler or TranscriptReconciler()
        self._locale = locale or settings.LOCALE
        self._hints = list(hints) if hints is not None else vocabulary.load_hints()
        self._frame_seconds = frame_seconds
        self._on_status = on_status

        self.state: SessionState = "idle"
        self.status_text = "Idle"
        self.error_text: str | None = None
        self.is_model_ready = False

        self._loop: asyncio.AbstractEventLoop | None = None
        self._accumulator: FrameAccumulator | None = None
        self._frames: list[EnergyFrame] = []
        self._sample_queue: asyncio.Queue[np.ndarray | None] | None = None
        self._audio_queue: asyncio.Queue[np.ndarray | None] | None = None
        self._feature_task: asyncio.Task[None] | None = None
        self._result_task: asyncio.Task[None] | None = None
        self._termination_task: asyncio.Task[None] | None = None
        self._accepting = False
        self._audio_ended = False

    @property
    def is_recording(self) -> bool:
        return self.state in ("recording", "finalizing")

    @property
    def frames(self) -> tuple[EnergyFrame, ...]:
        return tuple(self._frames)

    @property
    def locale(self) -> str:
        return self._locale

    def _set_status(self, state: SessionState, text: str) -> None:
        self.state = state
        self.status_text = text
        logger.info("Session %s: %s", self.session_id, text)
        if self._on_status is not None:
            try:
                self._on_status(self)
            except Exception:
                logger.exception("Status listener failed")

    async def prepare(self) -> bool:
        """Check the recognizer for this locale. False (with error_text set) when unavailable."""
        self._set_status("preparing", "Checking model...")
        try:
            await self._recognizer.prepare(self._locale)
        except ResourceUnavailableError as e:
            self.error_text = e.status_text
            self.is_model_ready = False
            self._set_status("idle", "Model unavailable")
            return False
        self.is_model_ready = True
        self.error_text = None
        self._set_status("ready", "Ready")
        return True

    async def start(self) -> bool:
        """Start capture and both consumers. False (with error_text set) when it cannot start."""
        if self.is_recording:
            return True
        self.error_text = None
        if not self.is_model_ready and not await self.prepare():
            return False

        self._loop = asyncio.get_running_loop()
        self.reconciler.reset()
        self._frames = []
        self._accumulator = FrameAccumulator(
            self._capture.sample_rate,
            frame_seconds=self._frame_seconds,
            with_zcr=self._diarizer.needs_zcr,
        )
        self._sample_queue = asyncio.Queue()
        self._audio_queue = asyncio.Queue()
        self._audio_ended = False
        self._feature_task = asyncio.create_task(self._consume_samples())
        self._result_task = asyncio.create_task(self._consume_results())
        self._accepting = True

        try:
            self._capture.start(self._on_chunk, self._on_terminated)
        except PermissionDeniedError as e:
            self.error_text = e.status_text
            await self._close_streams()
            self._set_status("idle", "Permission denied")
            return False

        self._set_status("recording", "Recording (live transcription)")
        return True

    async def stop(self) -> Snapshot:
        """Stop capture, drain both stages, finalize the transcript, return to idle."""
        if not self.is_recording or self.state == "finalizing":
            return self.reconciler.snapshot()
        self._set_status("finalizing", "Finalizing...")
        self._capture.stop()
        # Chunks already scheduled via call_soon_threadsafe run before the sentinels
        await asyncio.sleep(0)
        await self._close_streams()
        snapshot = self.reconciler.finalize()
        frame_count = len(self._frames)
        self._frames = []
        self._set_status("idle", "Done")
        logger.info(
            "Session %s finalized: %d segments, %d frames", self.session_id, len(snapshot), frame_count
        )
        return snapshot

    async def _close_streams(self) -> None:
        self._accepting = False
        if self._sample_queue is not None and self._feature_task is not None:
            self._sample_queue.put_nowait(None)
            await self._feature_task
        if self._audio_queue is not None and self._result_task is not None:
            self._audio_queue.put_nowait(None)
            await self._result_task
        self._feature_task = None
        self._result_task = None

    # Capture side

    def _on_chunk(self, samples: np.ndarray) -> None:
        try:
            chunk = np.asarray(samples, dtype=np.float32).ravel()
        except (TypeError, ValueError) as e:
            logger.warning("%s", StreamFailure(f"Dropped capture chunk: {e}").status_text)
            return
        if self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._enqueue, chunk)
        except RuntimeError:
            logger.debug("Event loop closed; chunk dropped")

    def _enqueue(self, chunk: np.ndarray) -> None:
        if not self._accepting or chunk.size == 0:
            return
        self._sample_queue.put_nowait(chunk)
        self._audio_queue.put_nowait(chunk)

    def _on_terminated(self, error: CaptureTerminatedError) -> None:
        if self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._schedule_termination, error)

    def _schedule_termination(self, error: CaptureTerminatedError) -> None:
        self._termination_task = asyncio.create_task(self._terminate(error))
        self._termination_task.add_done_callback(self._log_termination_failure)

    def _log_termination_failure(self, task: asyncio.Task[None]) -> None:
        if task.cancelled() or task.exception() is None:
            return
        logger.error(
            "Session %s: stopping after capture termination failed",
            self.session_id,
            exc_info=task.exception(),
        )

    async def _terminate(self, error: CaptureTerminatedError) -> None:
        self.error_text = error.status_text
        if self.state != "recording":
            return
        await self.stop()
        self._set_status("idle", f"Recording stopped: {error.status_text}")

    # Consumers

    async def _consume_samples(self) -> None:
        while True:
            chunk = await self._sample_queue.get()
            if chunk is None:
                break
            self._frames.extend(self._accumulator.push(chunk))
        last = self._accumulator.flush()
        if last is not None:
            self._frames.append(last)

    async def _audio_chunks(self) -> AsyncIterator[np.ndarray]:
        while True:
            chunk = await self._audio_queue.get()
            if chunk is None:
                self._audio_ended = True
                return
            yield chunk

    async def _consume_results(self) -> None:
        try:
            async for result in self._recognizer.stream(
                self._audio_chunks(), self._capture.sample_rate, self._locale, self._hints
            ):
                self._handle_result(result)
        except ResourceUnavailableError as e:
            logger.error("Recognizer unavailable during session %s: %s", self.session_id, e.status_text)
            self.error_text = e.status_text
        except Exception as e:
            logger.exception("Recognition stream failed for session %s", self.session_id)
            self.error_text = f"Recognition failed: {e}"
        # Recognizer gave up early: consume up to the sentinel so stop() completes
        while not self._audio_ended:
            if await self._audio_queue.get() is None:
                self._audio_ended = True

    def _handle_result(self, result: RecognitionResult) -> None:
        speaker = None
        if result.is_final:
            self._diarizer.fit(self._frames)
            speaker = self._diarizer.label_for(result.start, result.end)
        self.reconciler.apply(result.text, result.start, result.end, result.is_final, speaker)
