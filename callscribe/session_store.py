"""
In-memory registry of live sessions. session_id is generated on the backend (WebSocket).

While the socket is open the entry holds the LiveTranscriptionSession itself. When it closes,
finish_session() swaps it for the finalized snapshot so recognizer, capture and queues can be
released. Finished entries are purged after SESSION_RETENTION_SECONDS or via delete_session().
"""
from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING, Any

from callscribe.config import get_settings

if TYPE_CHECKING:
    from callscribe.pipeline.streaming import LiveTranscriptionSession
    from callscribe.transcript.reconciler import Snapshot

logger = logging.getLogger(__name__)

# session_id -> {
#   "session": LiveTranscriptionSession | None,  # None once finished
#   "created_at": float,
#   "finished_at": float | None,
#   "segments": Snapshot,                        # finalized transcript (set by finish_session)
#   "error_text": str | None,
#   "transcript_path": str | None,               # set when the finalized transcript was written
# }
_session_store: dict[str, dict[str, Any]] = {}


def generate_session_id() -> str:
    """Generate a new session_id (UUID hex, 12 chars). Backend only."""
    return uuid.uuid4().hex[:12]


def register_session(session: "LiveTranscriptionSession") -> None:
    purge_finished()
    _session_store[session.session_id] = {
        "session": session,
        "created_at": time.time(),
        "finished_at": None,
        "segments": (),
        "error_text": None,
        "transcript_path": None,
    }


def get_session(session_id: str) -> dict[str, Any] | None:
    """Return session entry or None if not found."""
    return _session_store.get(session_id)


def finish_session(
    session_id: str,
    snapshot: "Snapshot",
    error_text: str | None = None,
    transcript_path: str | None = None,
) -> None:
    """Drop the live session object and keep only its finalized transcript."""
    entry = _session_store.get(session_id)
    if entry is None:
        return
    entry.update(
        session=None,
        finished_at=time.time(),
        segments=snapshot,
        error_text=error_text,
        transcript_path=transcript_path,
    )


def delete_session(session_id: str) -> bool:
    """Remove session from store. Return True if it existed."""
    if session_id in _session_store:
        del _session_store[session_id]
        return True
    return False


def purge_finished(max_age_seconds: float | None = None, now: float | None = None) -> int:
    """Remove finished sessions older than max_age_seconds. Returns how many were removed."""
    max_age = max_age_seconds if max_age_seconds is not None else get_settings().SESSION_RETENTION_SECONDS
    now = now if now is not None else time.time()
    expired = [
        session_id
        for session_id, entry in _session_store.items()
        if entry["finished_at"] is not None and now - entry["finished_at"] >= max_age
    ]
    for session_id in expired:
        del _session_store[session_id]
    if expired:
        logger.info("Purged %d finished sessions", len(expired))
    return len(expired)
