"""
Typed inbound events.

Every JSON frame received from the realtime endpoint becomes exactly one of
these models. Event kinds the assistant does not act on become
``UnknownEvent`` and are ignored by the session.
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict


class StreamEventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: Optional[str] = None


class SessionCreated(StreamEventBase):
    session: Dict[str, Any] = {}


class SessionUpdated(StreamEventBase):
    session: Dict[str, Any] = {}


class SpeechStarted(StreamEventBase):
    pass


class SpeechStopped(StreamEventBase):
    pass


class TranscriptionCompleted(StreamEventBase):
    """Final transcript of one user utterance."""

    text: str


class ResponseTextDelta(StreamEventBase):
    """A fragment of assistant text (or the transcript of assistant audio)."""

    delta: str


class ResponseAudioDelta(StreamEventBase):
    """A fragment of assistant audio, already base64-decoded to PCM16 bytes."""

    delta: bytes


class ResponseAudioDone(StreamEventBase):
    pass


class ResponseDone(StreamEventBase):
    response: Dict[str, Any] = {}


class FunctionCallArgumentsDone(StreamEventBase):
    """The model finished streaming the arguments of a function call."""

    call_id: str
    name: str
    args_json: str


class RemoteErrorEvent(StreamEventBase):
    message: str
    code: Optional[str] = None


class UnknownEvent(StreamEventBase):
    type: str = ""
    raw: Dict[str, Any] = {}


StreamEvent = Union[
    SessionCreated,
    SessionUpdated,
    SpeechStarted,
    SpeechStopped,
    TranscriptionCompleted,
    ResponseTextDelta,
    ResponseAudioDelta,
    ResponseAudioDone,
    ResponseDone,
    FunctionCallArgumentsDone,
    RemoteErrorEvent,
    UnknownEvent,
]
