"""
Deserialization of realtime server frames into ``StreamEvent`` values.
"""

import json
from typing import Any, Callable, Dict, Union

from pydantic import ValidationError

from voicelog.audio.codec import from_base64
from voicelog.errors import ParseError
from voicelog.models.openai_api import ServerEventType
from voicelog.models.stream_events import (
    FunctionCallArgumentsDone,
    RemoteErrorEvent,
    ResponseAudioDelta,
    ResponseAudioDone,
    ResponseDone,
    ResponseTextDelta,
    SessionCreated,
    SessionUpdated,
    SpeechStarted,
    SpeechStopped,
    StreamEvent,
    TranscriptionCompleted,
    UnknownEvent,
)


def _error_event(data: Dict[str, Any]) -> RemoteErrorEvent:
    # The error body is nested under "error", flattened into the event, or a bare string
    if isinstance(data.get("error"), str):
        error = {"message": data["error"]}
    elif isinstance(data.get("error"), dict):
        error = data["error"]
    else:
        error = data
    message = error.get("message") or "Unknown error from realtime service"
    code = error.get("code")
    return RemoteErrorEvent(
        event_id=data.get("event_id"),
        message=str(message),
        code=str(code) if code is not None else None,
    )


def _function_args_done(data: Dict[str, Any]) -> FunctionCallArgumentsDone:
    arguments = data.get("arguments")
    if arguments is None:
        arguments = ""
    elif not isinstance(arguments, str):
        # Arguments should be a JSON string; keep other values so the call still runs
        arguments = json.dumps(arguments)
    return FunctionCallArgumentsDone(
        event_id=data.get("event_id"),
        call_id=str(data.get("call_id") or ""),
        name=str(data.get("name") or ""),
        args_json=arguments,
    )


_BUILDERS: Dict[ServerEventType, Callable[[Dict[str, Any]], StreamEvent]] = {
    ServerEventType.SESSION_CREATED: lambda d: SessionCreated(
        event_id=d.get("event_id"), session=d.get("session") or {}
    ),
    ServerEventType.SESSION_UPDATED: lambda d: SessionUpdated(
        event_id=d.get("event_id"), session=d.get("session") or {}
    ),
    ServerEventType.INPUT_AUDIO_BUFFER_SPEECH_STARTED: lambda d: SpeechStarted(
        event_id=d.get("event_id")
    ),
    ServerEventType.INPUT_AUDIO_BUFFER_SPEECH_STOPPED: lambda d: SpeechStopped(
        event_id=d.get("event_id")
    ),
    ServerEventType.CONVERSATION_ITEM_INPUT_AUDIO_TRANSCRIPTION_COMPLETED: lambda d: TranscriptionCompleted(
        event_id=d.get("event_id"), text=d.get("transcript") or ""
    ),
    ServerEventType.RESPONSE_TEXT_DELTA: lambda d: ResponseTextDelta(
        event_id=d.get("event_id"), delta=d.get("delta") or ""
    ),
    ServerEventType.RESPONSE_AUDIO_TRANSCRIPT_DELTA: lambda d: ResponseTextDelta(
        event_id=d.get("event_id"), delta=d.get("delta") or ""
    ),
    ServerEventType.RESPONSE_AUDIO_DELTA: lambda d: ResponseAudioDelta(
        event_id=d.get("event_id"), delta=from_base64(d.get("delta") or "")
    ),
    ServerEventType.RESPONSE_AUDIO_DONE: lambda d: ResponseAudioDone(
        event_id=d.get("event_id")
    ),
    ServerEventType.RESPONSE_DONE: lambda d: ResponseDone(
        event_id=d.get("event_id"), response=d.get("response") or {}
    ),
    ServerEventType.RESPONSE_FUNCTION_CALL_ARGUMENTS_DONE: _function_args_done,
    ServerEventType.ERROR: _error_event,
}


def parse_stream_event(raw: Union[str, bytes]) -> StreamEvent:
    """
    Parse one transport message.

    Args:
        raw: JSON text frame (bytes are decoded as UTF-8)

    Returns:
        StreamEvent: The typed event. Unrecognised types become ``UnknownEvent``.

    Raises:
        ParseError: If the frame is not a JSON object
        InvalidEncodingError: If an audio delta is not valid base64
    """
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(f"Malformed realtime message: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}")

    event_type = data.get("type")
    try:
        builder = _BUILDERS.get(ServerEventType(event_type))
    except ValueError:
        builder = None
    if builder is None:
        return UnknownEvent(
            event_id=data.get("event_id"), type=str(event_type or ""), raw=data
        )
    try:
        return builder(data)
    except ValidationError as e:
        raise ParseError(f"Malformed {event_type} event: {e}") from e
