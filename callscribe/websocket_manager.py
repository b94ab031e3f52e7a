"""
WebSocketManager: one WebSocket = one live transcription session.

- Binary messages are PCM 16-bit mono at SAMPLE_RATE and go to the WebSocketCapture.
- A text message {"type": "stop"} ends the recording normally. A disconnect without it is an
  unexpected capture termination (status change, session back to idle).
- Every transcript change is sent as the full snapshot {"type": "transcript", "segments": [...]}
  so the client can simply re-render; the volatile tail is included with speaker "...".
- Sends go through an outbox queue drained by one sender task: reconciler observers are
  synchronous and must never await the socket.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from callscribe.asr.base import Recognizer
from callscribe.audio.capture import WebSocketCapture
from callscribe.config import get_settings
from callscribe.pipeline.streaming import LiveTranscriptionSession
from callscribe.schemas.transcript import SessionStatus, TranscriptMessage, segments_out
from callscribe.session_store import finish_session, generate_session_id, register_session
from callscribe.transcript.reconciler import Snapshot
from callscribe.transcript.writer import create_transcript_writer

logger = logging.getLogger(__name__)


def _is_stop_message(text: str) -> bool:
    try:
        payload = json.loads(text)
    except ValueError:
        return text.strip().lower() == "stop"
    return isinstance(payload, dict) and payload.get("type") == "stop"


class WebSocketManager:
    def __init__(self, websocket: WebSocket, recognizer: Recognizer, locale: str | None = None) -> None:
        settings = get_settings()
        self._ws = websocket
        self._session_id = generate_session_id()
        self._capture = WebSocketCapture(settings.SAMPLE_RATE, settings.CHANNELS)
        self._outbox: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False
        self._session = LiveTranscriptionSession(
            recognizer,
            self._capture,
            self._session_id,
            locale=locale,
            on_status=self._on_status,
        )

    @property
    def session(self) -> LiveTranscriptionSession:
        return self._session

    def _post(self, message: BaseModel | dict[str, Any]) -> None:
        if self._closed:
            return
        text = message.model_dump_json() if isinstance(message, BaseModel) else json.dumps(message)
        self._outbox.put_nowait(text)

    def _on_status(self, session: LiveTranscriptionSession) -> None:
        self._post(SessionStatus.from_session(session))

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        self._post(TranscriptMessage(session_id=self._session_id, segments=segments_out(snapshot)))

    async def _sender(self) -> None:
        while True:
            text = await self._outbox.get()
            if text is None:
                break
            if self._closed:
                continue
            try:
                await self._ws.send_text(text)
            except Exception as e:
                logger.debug("Send failed for session %s: %s", self._session_id, e)
                self._closed = True

    async def _receive_until_stop(self) -> bool:
        """Feed audio until the client asks to stop (True) or goes away (False)."""
        while True:
            try:
                msg = await self._ws.receive()
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug("Receive ended for session %s: %s", self._session_id, e)
                return False
            if msg.get("type") == "websocket.disconnect":
                return False
            data = msg.get("bytes")
            if data is not None:
                self._capture.feed(data)
                continue
            text = msg.get("text")
            if text and _is_stop_message(text):
                return True

    async def run(self) -> None:
        register_session(self._session)
        sender_task = asyncio.create_task(self._sender())
        self._post({"type": "session", "session_id": self._session_id})
        unsubscribe = self._session.reconciler.subscribe(self._on_snapshot)
        started = False
        try:
            started = await self._session.start()
            if not started:
                return
            stopped_by_client = await self._receive_until_stop()
            if not stopped_by_client:
                self._closed = True
                self._capture.terminate("Client disconnected")
        finally:
            snapshot = await self._session.stop()
            path = None
            if started:
                writer = create_transcript_writer(self._session_id)
                loop = asyncio.get_running_loop()
                path = await loop.run_in_executor(None, writer.write, snapshot)
                self._post(
                    TranscriptMessage(
                        type="final",
                        session_id=self._session_id,
                        segments=segments_out(snapshot),
                        transcript_path=path,
                    )
                )
            unsubscribe()
            finish_session(self._session_id, snapshot, self._session.error_text, path)
            self._outbox.put_nowait(None)
            await sender_task
