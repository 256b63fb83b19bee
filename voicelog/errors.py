"""Exception hierarchy for the voice pipeline.

Only ``TransportError`` and ``ResourceError`` end the current attempt. The
rest are caught where they happen, logged, reported through the session's
``ErrorHandler`` and the session keeps running.
"""

from typing import Optional


class VoiceLogError(Exception):
    """Base class for all voicelog errors."""


class TransportError(VoiceLogError):
    """Connecting, sending or receiving on the realtime transport failed."""


class SessionBootstrapError(TransportError):
    """The session configuration could not be fetched."""


class CaptureStartError(TransportError):
    """Capture could not start because the connection never came up."""


class CodecError(VoiceLogError):
    """An audio payload could not be converted."""


class InvalidEncodingError(CodecError):
    """A base64 audio payload was malformed."""


class ParseError(VoiceLogError):
    """A JSON message, command payload or function argument string was malformed."""


class RemoteError(VoiceLogError):
    """An ``error`` event sent by the realtime service."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code:
            return f"{self.message} (code={self.code})"
        return self.message


class ResourceError(VoiceLogError):
    """The microphone or output device is unavailable or already in use."""
