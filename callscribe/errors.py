"""
Error taxonomy surfaced to clients.

- ResourceUnavailableError: recognizer/model/locale missing. Retry after installing.
- PermissionDeniedError: capture or recognition authorization refused. Needs a settings change.
- MalformedAudioError: uploaded file cannot be decoded. Fails that request only.
- StreamFailure: one chunk/window failed. Logged and skipped; the session continues.
- CaptureTerminatedError: capture stopped on its own. Session goes back to idle.

Pure helpers (energy, VAD, classification, merging) never raise.
"""
from __future__ import annotations


class CallscribeError(Exception):
    """Base error. status_text is what a client shows; retryable hints whether retry can help."""

    retryable: bool = False

    def __init__(self, status_text: str) -> None:
        super().__init__(status_text)
        self.status_text = status_text


class ResourceUnavailableError(CallscribeError):
    retryable = True


class PermissionDeniedError(CallscribeError):
    retryable = False


class MalformedAudioError(CallscribeError):
    retryable = False


class StreamFailure(CallscribeError):
    retryable = True


class CaptureTerminatedError(CallscribeError):
    retryable = True
