"""Errors raised while handling a single call turn.

Every error here is recoverable: the call flow controller turns it into a
valid TwiML response so the caller never hears dead air.
"""
from typing import Optional


class CallTurnError(Exception):
    """Base exception for failures within one call turn."""

    pass


class SessionNotFound(CallTurnError):
    """Raised when no session exists for a call SID."""

    def __init__(self, call_sid: str):
        super().__init__(f"No call session for {call_sid}")
        self.call_sid = call_sid


class MissingInput(CallTurnError):
    """Raised when an input event carries neither speech nor a recording."""

    pass


class RecordingError(CallTurnError):
    """Base exception for recording retrieval failures."""

    pass


class RecordingUnavailable(RecordingError):
    """Raised when a recording never became fetchable within the poll policy."""

    def __init__(self, recording_url: str, attempts: int):
        super().__init__(
            f"Recording {recording_url} unavailable after {attempts} attempts"
        )
        self.recording_url = recording_url
        self.attempts = attempts


class DownloadError(RecordingError):
    """Raised when an available recording could not be downloaded."""

    pass


class TranscriptionError(RecordingError):
    """Raised when the transcription service fails or returns nothing."""

    pass


class ConversationError(CallTurnError):
    """Base exception for chat completion failures."""

    pass


class UpstreamEmpty(ConversationError):
    """Raised when the chat completion returns no content."""

    pass


class UpstreamError(ConversationError):
    """Raised when the chat completion request itself fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SynthesisError(CallTurnError):
    """Raised when text-to-speech synthesis or artifact storage fails."""

    pass
