"""
Pydantic models for OpenAI Realtime API message structures.

Only the part of the protocol the voice assistant uses is modelled here:

- the ``session.update`` payload (``SessionConfig``)
- the client events the session sends (audio append, function output,
  response request)
- the names of the server events it understands (``ServerEventType``)

Inbound events are turned into typed values by
``voicelog.handlers.event_parser``.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from voicelog.config.constants import (
    DEFAULT_TEMPERATURE,
    DEFAULT_TRANSCRIPTION_MODEL,
    DEFAULT_VAD_PREFIX_PADDING_MS,
    DEFAULT_VAD_SILENCE_DURATION_MS,
    DEFAULT_VAD_THRESHOLD,
    DEFAULT_VAD_TYPE,
    VOICE,
    WIRE_AUDIO_FORMAT,
)


class ClientEventType(str, Enum):
    """Types of events sent to the server."""

    SESSION_UPDATE = "session.update"
    INPUT_AUDIO_BUFFER_APPEND = "input_audio_buffer.append"
    CONVERSATION_ITEM_CREATE = "conversation.item.create"
    RESPONSE_CREATE = "response.create"


class ServerEventType(str, Enum):
    """Types of events received from the server."""

    ERROR = "error"
    SESSION_CREATED = "session.created"
    SESSION_UPDATED = "session.updated"
    INPUT_AUDIO_BUFFER_SPEECH_STARTED = "input_audio_buffer.speech_started"
    INPUT_AUDIO_BUFFER_SPEECH_STOPPED = "input_audio_buffer.speech_stopped"
    CONVERSATION_ITEM_INPUT_AUDIO_TRANSCRIPTION_COMPLETED = (
        "conversation.item.input_audio_transcription.completed"
    )
    RESPONSE_TEXT_DELTA = "response.text.delta"
    RESPONSE_AUDIO_TRANSCRIPT_DELTA = "response.audio_transcript.delta"
    RESPONSE_AUDIO_DELTA = "response.audio.delta"
    RESPONSE_AUDIO_DONE = "response.audio.done"
    RESPONSE_DONE = "response.done"
    RESPONSE_FUNCTION_CALL_ARGUMENTS_DONE = "response.function_call_arguments.done"


# Session-related models


class TurnDetection(BaseModel):
    """Server-side voice activity detection settings."""

    model_config = ConfigDict(frozen=True)

    type: str = DEFAULT_VAD_TYPE
    threshold: float = DEFAULT_VAD_THRESHOLD
    prefix_padding_ms: int = DEFAULT_VAD_PREFIX_PADDING_MS
    silence_duration_ms: int = DEFAULT_VAD_SILENCE_DURATION_MS


class InputAudioTranscription(BaseModel):
    """Transcription of the user's speech, delivered as transcription events."""

    model_config = ConfigDict(frozen=True)

    model: str = DEFAULT_TRANSCRIPTION_MODEL


class SessionConfig(BaseModel):
    """Configuration for a Realtime API session.

    Sent once per connection as the ``session.update`` payload. Both audio
    directions are 24 kHz mono PCM16.
    """

    model_config = ConfigDict(frozen=True)

    modalities: List[str] = Field(default_factory=lambda: ["text", "audio"])
    instructions: Optional[str] = None
    voice: str = VOICE
    input_audio_format: str = WIRE_AUDIO_FORMAT
    output_audio_format: str = WIRE_AUDIO_FORMAT
    input_audio_transcription: Optional[InputAudioTranscription] = Field(
        default_factory=InputAudioTranscription
    )
    turn_detection: Optional[TurnDetection] = Field(default_factory=TurnDetection)
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Literal["auto", "none"]] = None
    temperature: float = DEFAULT_TEMPERATURE


# Event models for client-server communication


class ClientEvent(BaseModel):
    """Base model for events sent to the server."""

    type: str
    event_id: Optional[str] = None

    def to_json(self) -> str:
        """Serialize for the wire, leaving out unset optional fields."""
        return self.model_dump_json(exclude_none=True)


class SessionUpdateEvent(ClientEvent):
    """Apply the session configuration. The first frame of every connection."""

    type: str = ClientEventType.SESSION_UPDATE.value
    session: SessionConfig


class InputAudioBufferAppendEvent(ClientEvent):
    """Append one captured frame to the server's input audio buffer."""

    type: str = ClientEventType.INPUT_AUDIO_BUFFER_APPEND.value
    audio: str  # Base64 encoded PCM16


class FunctionCallOutputItem(BaseModel):
    """Conversation item carrying a function's result back to the model."""

    type: Literal["function_call_output"] = "function_call_output"
    call_id: str
    output: str


class ConversationItemCreateEvent(ClientEvent):
    type: str = ClientEventType.CONVERSATION_ITEM_CREATE.value
    item: FunctionCallOutputItem


class ResponseCreateEvent(ClientEvent):
    """Ask the model to continue the conversation."""

    type: str = ClientEventType.RESPONSE_CREATE.value
