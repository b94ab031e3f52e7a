"""
FastAPI app: live call transcription over WebSocket, batch transcription of uploads.

Live: client sends binary PCM 16-bit mono 16kHz on /ws/transcribe. Server responds with JSON:
  {"type": "session", "session_id": "..."}
  {"type": "status", "state": "...", "status_text": "...", "error_text": null, ...}
  {"type": "transcript", "segments": [{"speaker": "Sales", "text": "...", ...}]}
  {"type": "final", "segments": [...], "transcript_path": "..."}
Client sends {"type": "stop"} to finish; disconnecting also ends the session.
"""
from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Form, HTTPException, UploadFile, WebSocket, WebSocketDisconnect

from callscribe import vocabulary
from callscribe.asr.base import Recognizer
from callscribe.asr.local_whisper import LocalWhisperEngine
from callscribe.config import get_settings
from callscribe.errors import (
    CallscribeError,
    MalformedAudioError,
    PermissionDeniedError,
    ResourceUnavailableError,
)
from callscribe.pipeline.batch import BatchTranscriber
from callscribe.schemas.transcript import (
    BatchTranscribeResponse,
    TranscriptResponse,
    VocabularyResponse,
    segments_out,
)
from callscribe.session_store import delete_session, get_session
from callscribe.websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)

# Set in lifespan so WebSocket route can get the recognizer without Request
_current_app: FastAPI | None = None

_ERROR_STATUS = {
    ResourceUnavailableError: 503,
    PermissionDeniedError: 403,
    MalformedAudioError: 400,
}


def configure_logging() -> None:
    """Root logging from LOG_LEVEL / LOG_FILE. Console always; file when LOG_FILE is set."""
    settings = get_settings()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.LOG_FILE:
        log_dir = os.path.dirname(settings.LOG_FILE)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(settings.LOG_FILE, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )
    logging.getLogger("faster_whisper").setLevel(logging.WARNING)


def get_recognizer(app: FastAPI | None = None) -> Recognizer:
    """faster-whisper recognizer over the singleton model in app.state (None -> unavailable)."""
    a = app or _current_app
    if a is None:
        raise RuntimeError("App not initialized (lifespan not run?)")
    model = getattr(a.state, "whisper_model", None)
    return LocalWhisperEngine(model=model)


def _load_whisper_model():
    """Load faster-whisper model once. None when it cannot be loaded (reported per request as 503)."""
    settings = get_settings()
    try:
        from faster_whisper import WhisperModel

        return WhisperModel(
            settings.LOCAL_WHISPER_MODEL,
            device=settings.LOCAL_WHISPER_DEVICE,
            compute_type=settings.LOCAL_WHISPER_COMPUTE_TYPE,
        )
    except (ImportError, OSError, RuntimeError, ValueError) as e:
        logger.error("Whisper model %s could not be loaded: %s", settings.LOCAL_WHISPER_MODEL, e)
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _current_app
    _current_app = app
    configure_logging()
    # Load Whisper model once at startup (singleton)
    loop = asyncio.get_running_loop()
    app.state.whisper_model = await loop.run_in_executor(None, _load_whisper_model)
    if app.state.whisper_model is not None:
        logger.info("Whisper model %s loaded", get_settings().LOCAL_WHISPER_MODEL)
    yield
    app.state.whisper_model = None
    _current_app = None


app = FastAPI(
    title="Call transcription",
    description="Live and batch speaker-attributed transcription of two-party calls",
    lifespan=lifespan,
)


def _http_error(error: CallscribeError) -> HTTPException:
    status = next((code for cls, code in _ERROR_STATUS.items() if isinstance(error, cls)), 500)
    return HTTPException(status_code=status, detail={"status_text": error.status_text, "retryable": error.retryable})


@app.websocket("/ws/transcribe")
async def websocket_transcribe(websocket: WebSocket, locale: str | None = None) -> None:
    await websocket.accept()
    manager = WebSocketManager(websocket, get_recognizer(), locale=locale)
    try:
        await manager.run()
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WebSocket session %s failed", manager.session.session_id)
        try:
            await websocket.close(code=1011)
        except RuntimeError:
            pass


@app.get("/health")
async def health() -> dict:
    model_loaded = _current_app is not None and getattr(_current_app.state, "whisper_model", None) is not None
    return {"status": "ok", "model_loaded": model_loaded}


@app.post("/api/transcribe", response_model=BatchTranscribeResponse)
async def transcribe_file(
    file: UploadFile = File(...),
    locale: str | None = Form(None),
) -> BatchTranscribeResponse:
    """
    Batch mode: the whole recording in two passes (speaker clustering, then word-level
    recognition). Runs in the executor; unreadable audio -> 400, no model/locale -> 503.
    """
    recognizer = get_recognizer()
    locale = locale or get_settings().LOCALE
    try:
        await recognizer.prepare(locale)
    except CallscribeError as e:
        raise _http_error(e) from e

    suffix = os.path.splitext(file.filename or "")[1] or ".wav"
    with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
        shutil.copyfileobj(file.file, tmp)
        tmp_path = tmp.name
    try:
        transcriber = BatchTranscriber(recognizer, locale=locale)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, transcriber.process, tmp_path)
    except CallscribeError as e:
        raise _http_error(e) from e
    finally:
        os.remove(tmp_path)
    return BatchTranscribeResponse.from_result(result, filename=file.filename)


@app.get("/api/sessions/{session_id}/transcript", response_model=TranscriptResponse)
async def session_transcript(session_id: str) -> TranscriptResponse:
    """Current snapshot of a live session (finalized once the session stopped)."""
    entry = get_session(session_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Session not found")
    session = entry["session"]
    if session is None:
        return TranscriptResponse(
            session_id=session_id,
            state="idle",
            is_recording=False,
            error_text=entry["error_text"],
            segments=segments_out(entry["segments"]),
            transcript_path=entry["transcript_path"],
        )
    return TranscriptResponse(
        session_id=session_id,
        state=session.state,
        is_recording=session.is_recording,
        error_text=session.error_text,
        segments=segments_out(session.reconciler.snapshot()),
        transcript_path=entry["transcript_path"],
    )


@app.delete("/api/sessions/{session_id}")
async def remove_session(session_id: str) -> dict:
    """Forget a finished session. A session whose socket is still open cannot be removed."""
    entry = get_session(session_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Session not found")
    if entry["session"] is not None:
        raise HTTPException(status_code=409, detail="Session is still live")
    delete_session(session_id)
    return {"session_id": session_id, "deleted": True}


@app.get("/api/vocabulary", response_model=VocabularyResponse)
async def vocabulary_all() -> VocabularyResponse:
    return VocabularyResponse(categories=vocabulary.list_categories(), words=vocabulary.load_all())


@app.get("/api/vocabulary/{category}", response_model=VocabularyResponse)
async def vocabulary_category(category: str) -> VocabularyResponse:
    categories = vocabulary.list_categories()
    if category not in categories:
        raise HTTPException(status_code=404, detail=f"Unknown vocabulary category: {category}")
    return VocabularyResponse(category=category, categories=categories, words=vocabulary.load(category))
