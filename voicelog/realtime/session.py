"""
Realtime voice session.

``RealtimeSession`` owns one WebSocket connection to the realtime endpoint and
the three loops that run on it:

- capture loop: microphone frames -> PCM16 -> base64 ->
  ``input_audio_buffer.append``
- receive loop: server frames -> ``StreamEvent`` -> dispatch, in arrival order
- playback drain loop (inside ``PlaybackQueue``): decoded assistant audio ->
  speaker, in arrival order

Connection lifecycle:

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED
                         \\             \\
                          -> ERROR       -> ERROR (abnormal close)

A fresh bootstrap is fetched on every ``connect()``. Failed connections are
not retried automatically; the caller decides.

Usage:
    session = RealtimeSession(provider, host, source, sink)
    async with session:
        await session.start_capture()
        ...
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from voicelog.audio.codec import decode_from_wire, encode_for_wire, to_base64
from voicelog.audio.devices import AudioSink, AudioSource, MicrophoneLease
from voicelog.audio.playback_queue import PlaybackQueue
from voicelog.config.logging_config import configure_logging
from voicelog.config.models import AudioConfig, RealtimeConfig
from voicelog.errors import (
    CaptureStartError,
    CodecError,
    ParseError,
    RemoteError,
    ResourceError,
    TransportError,
)
from voicelog.handlers.command_interpreter import CommandInterpreter
from voicelog.handlers.error_handler import ErrorContext, ErrorHandler, ErrorSeverity
from voicelog.handlers.event_parser import parse_stream_event
from voicelog.handlers.function_handler import FunctionHandler
from voicelog.handlers.host_bridge import FunctionCall, FunctionResult, HostBridge
from voicelog.models.openai_api import (
    ClientEvent,
    InputAudioBufferAppendEvent,
    SessionUpdateEvent,
)
from voicelog.models.stream_events import (
    FunctionCallArgumentsDone,
    RemoteErrorEvent,
    ResponseAudioDelta,
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
from voicelog.realtime.config_provider import SessionBootstrap, SessionConfigProvider

logger = configure_logging("voicelog.session")

Connector = Callable[[str, Dict[str, str]], Awaitable[Any]]


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


async def websockets_connector(url: str, headers: Dict[str, str]):
    """Open the realtime WebSocket."""
    return await websockets.connect(url, additional_headers=headers, max_size=None)


class RealtimeSession:
    """
    One voice conversation with the realtime model.

    Attributes:
        state: Current ``ConnectionState``
        bootstrap: Bootstrap used for the current connection
        interpreter: Turns assistant output into commands for the host
        playback_queue: Ordered playback of assistant audio
        function_handler: Lifecycle of model-invoked functions
        error_handler: Error callbacks; register one to show errors to the user
        frames_sent: Microphone frames sent on the current connection
    """

    def __init__(
        self,
        config_provider: SessionConfigProvider,
        host_bridge: HostBridge,
        audio_source: AudioSource,
        audio_sink: AudioSink,
        interpreter: Optional[CommandInterpreter] = None,
        playback_queue: Optional[PlaybackQueue] = None,
        error_handler: Optional[ErrorHandler] = None,
        connector: Optional[Connector] = None,
        audio_config: Optional[AudioConfig] = None,
        realtime_config: Optional[RealtimeConfig] = None,
        on_user_transcript: Optional[Callable[[str], Any]] = None,
        on_assistant_text: Optional[Callable[[str], Any]] = None,
        on_state_change: Optional[Callable[[ConnectionState], Any]] = None,
        on_function_result: Optional[
            Callable[[FunctionCall, FunctionResult], Any]
        ] = None,
    ):
        self.config_provider = config_provider
        self.host_bridge = host_bridge
        self.audio_source = audio_source
        self.audio_config = audio_config or AudioConfig()
        self.realtime_config = realtime_config or RealtimeConfig()
        self.connector = connector or websockets_connector
        self.error_handler = error_handler or ErrorHandler(logger)

        self.interpreter = interpreter or CommandInterpreter(
            pending_ttl_seconds=self.realtime_config.pending_command_ttl,
            slot_duration_minutes=self.realtime_config.slot_duration_minutes,
        )
        if self.interpreter.host_bridge is None:
            self.interpreter.host_bridge = host_bridge
        if self.interpreter.error_handler is None:
            self.interpreter.error_handler = self.error_handler

        self.playback_queue = playback_queue or PlaybackQueue(audio_sink)
        if self.audio_config.start_muted:
            self.playback_queue.set_muted(True)

        self.function_handler = FunctionHandler(
            self.send_event,
            host_bridge,
            self.interpreter,
            error_handler=self.error_handler,
            on_function_result=on_function_result,
        )

        self.on_user_transcript = on_user_transcript
        self.on_assistant_text = on_assistant_text
        self.on_state_change = on_state_change

        self.state = ConnectionState.DISCONNECTED
        self.bootstrap: Optional[SessionBootstrap] = None
        self.frames_sent = 0
        self._ws = None
        self._connect_task: Optional[asyncio.Task] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._capture_task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "RealtimeSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def is_capturing(self) -> bool:
        return self._capture_task is not None and not self._capture_task.done()

    @property
    def is_muted(self) -> bool:
        return self.playback_queue.is_muted

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        logger.info(f"Connection state: {self.state.value} -> {state.value}")
        self.state = state
        if self.on_state_change is not None:
            try:
                self.on_state_change(state)
            except Exception as e:
                logger.error(f"Error in state change callback: {e}")

    # Connection

    async def connect(self) -> None:
        """
        Open the realtime connection and apply the session configuration.

        Concurrent callers share one attempt.

        Raises:
            TransportError: If bootstrap, connection or handshake failed
        """
        if self.state == ConnectionState.CONNECTED:
            return
        if self._connect_task is None or self._connect_task.done():
            self._connect_task = asyncio.create_task(self._connect())
        await asyncio.shield(self._connect_task)

    async def _connect(self) -> None:
        self._set_state(ConnectionState.CONNECTING)
        try:
            bootstrap = await self.config_provider.fetch()
            self._ws = await asyncio.wait_for(
                self.connector(bootstrap.url, bootstrap.headers()),
                timeout=self.realtime_config.connect_timeout,
            )
            self.bootstrap = bootstrap
            await self.send_event(SessionUpdateEvent(session=bootstrap.session))
        except asyncio.CancelledError:
            await self._close_transport()
            self._set_state(ConnectionState.DISCONNECTED)
            raise
        except Exception as e:
            await self._close_transport()
            self._set_state(ConnectionState.ERROR)
            if isinstance(e, TransportError):
                error = e
            elif isinstance(e, asyncio.TimeoutError):
                error = TransportError(
                    f"Connection timed out after {self.realtime_config.connect_timeout}s"
                )
            else:
                error = TransportError(f"Could not connect to realtime service: {e}")
            await self.error_handler.handle_error(
                error, ErrorContext.TRANSPORT, ErrorSeverity.HIGH, operation="connect"
            )
            if error is e:
                raise
            raise error from e

        self.frames_sent = 0
        self.function_handler.reopen()
        self._set_state(ConnectionState.CONNECTED)
        self._receive_task = asyncio.create_task(self._receive_loop())

    async def send_event(self, event: ClientEvent) -> None:
        """
        Send one client event.

        Raises:
            TransportError: If there is no open connection or the send failed
        """
        if self._ws is None:
            raise TransportError("Not connected to the realtime service")
        try:
            await self._ws.send(event.to_json())
        except ConnectionClosed as e:
            raise TransportError(f"Connection closed while sending {event.type}: {e}") from e

    async def _close_transport(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except Exception as e:
            logger.warning(f"Error closing realtime connection: {e}")

    async def disconnect(self) -> None:
        """Stop everything and close the connection. Safe to call repeatedly."""
        connect_task = self._connect_task
        self._connect_task = None
        if (
            connect_task is not None
            and connect_task is not asyncio.current_task()
            and not connect_task.done()
        ):
            connect_task.cancel()
            try:
                await connect_task
            except asyncio.CancelledError:
                pass

        await self._teardown()

        receive_task = self._receive_task
        self._receive_task = None
        if (
            receive_task is not None
            and receive_task is not asyncio.current_task()
            and not receive_task.done()
        ):
            receive_task.cancel()
            try:
                await receive_task
            except asyncio.CancelledError:
                pass

        await self._close_transport()
        self._set_state(ConnectionState.DISCONNECTED)

    async def _teardown(self) -> None:
        await self.stop_capture()
        await self.playback_queue.close()
        await self.function_handler.abandon_all()
        # Completed commands still reach the host; unfinished ones are dropped
        await self.interpreter.flush()
        self.interpreter.reset()

    # Capture

    async def start_capture(self) -> None:
        """
        Start streaming the microphone, connecting first if needed.

        Raises:
            CaptureStartError: If the connection was not ready in time
            ResourceError: If the microphone is unavailable
        """
        if self.is_capturing:
            return

        if self.state != ConnectionState.CONNECTED:
            timeout = self.realtime_config.capture_start_timeout
            try:
                await asyncio.wait_for(self.connect(), timeout=timeout)
            except asyncio.TimeoutError as e:
                await self._abort_connect()
                error = CaptureStartError(f"Connection not ready after {timeout}s")
                await self.error_handler.handle_error(
                    error,
                    ErrorContext.TRANSPORT,
                    ErrorSeverity.HIGH,
                    operation="start_capture",
                )
                raise error from e
            except TransportError as e:
                raise CaptureStartError(f"Could not start capture: {e}") from e

        try:
            MicrophoneLease.acquire(self)
            try:
                self.audio_source.start(
                    self.audio_config.sample_rate, self.audio_config.frame_size
                )
            except ResourceError:
                raise
            except Exception as e:
                raise ResourceError(f"Could not open microphone: {e}") from e
        except ResourceError as e:
            MicrophoneLease.release(self)
            await self.error_handler.handle_error(
                e, ErrorContext.RESOURCE, ErrorSeverity.HIGH, operation="start_capture"
            )
            raise

        logger.info("Microphone capture started")
        self._capture_task = asyncio.create_task(self._capture_loop())

    async def _abort_connect(self) -> None:
        task = self._connect_task
        self._connect_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._close_transport()
        self._set_state(ConnectionState.ERROR)

    async def _capture_loop(self) -> None:
        try:
            async for frame in self.audio_source.frames():
                if self.state != ConnectionState.CONNECTED:
                    break
                payload = to_base64(encode_for_wire(frame))
                await self.send_event(InputAudioBufferAppendEvent(audio=payload))
                self.frames_sent += 1
        except TransportError as e:
            await self.error_handler.handle_error(
                e, ErrorContext.TRANSPORT, ErrorSeverity.MEDIUM, operation="capture"
            )
        finally:
            self.audio_source.stop()
            MicrophoneLease.release(self)
            logger.info(f"Microphone capture stopped after {self.frames_sent} frames")

    async def stop_capture(self) -> None:
        """Stop streaming and release the microphone. Safe to call repeatedly."""
        task = self._capture_task
        self._capture_task = None
        # Called from the capture loop itself, the loop ends on its next state check
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.audio_source.stop()
        MicrophoneLease.release(self)

    def set_muted(self, muted: bool) -> None:
        """Mute or unmute assistant audio locally."""
        self.playback_queue.set_muted(muted)

    # Receiving

    async def _receive_loop(self) -> None:
        ws = self._ws
        error: Optional[Exception] = None
        try:
            async for message in ws:
                await self.on_event(message)
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as e:
            error = TransportError(f"Realtime connection closed abnormally: {e}")
        except Exception as e:
            error = TransportError(f"Error receiving from realtime service: {e}")

        if self._ws is not ws:
            # disconnect() already owns the teardown
            return

        if error is None:
            logger.info("Realtime connection closed by server")
        await self._teardown()
        await self._close_transport()
        self._receive_task = None
        if error is None:
            self._set_state(ConnectionState.DISCONNECTED)
            return
        self._set_state(ConnectionState.ERROR)
        await self.error_handler.handle_error(
            error, ErrorContext.TRANSPORT, ErrorSeverity.HIGH, operation="receive"
        )

    async def on_event(self, raw) -> Optional[StreamEvent]:
        """
        Parse and dispatch one server frame.

        Malformed frames and audio payloads are reported and dropped.

        Returns:
            The dispatched event, or None if the frame was dropped
        """
        try:
            event = parse_stream_event(raw)
        except ParseError as e:
            await self.error_handler.handle_error(
                e, ErrorContext.PARSE, ErrorSeverity.LOW, operation="parse_event"
            )
            return None
        except CodecError as e:
            await self.error_handler.handle_error(
                e, ErrorContext.CODEC, ErrorSeverity.LOW, operation="parse_event"
            )
            return None

        await self._dispatch(event)
        return event

    async def _dispatch(self, event: StreamEvent) -> None:
        if isinstance(event, TranscriptionCompleted):
            logger.info(f"User: {event.text}")
            self.interpreter.note_user_transcript(event.text)
            await self._notify(self.on_user_transcript, event.text)

        elif isinstance(event, ResponseTextDelta):
            self.interpreter.feed_text(event.delta)
            await self._notify(self.on_assistant_text, event.delta)

        elif isinstance(event, ResponseAudioDelta):
            try:
                samples = decode_from_wire(event.delta)
            except CodecError as e:
                await self.error_handler.handle_error(
                    e, ErrorContext.CODEC, ErrorSeverity.LOW, operation="decode_audio"
                )
                return
            self.playback_queue.enqueue(samples)

        elif isinstance(event, ResponseDone):
            await self.interpreter.flush()

        elif isinstance(event, FunctionCallArgumentsDone):
            await self.function_handler.handle_arguments_done(event)

        elif isinstance(event, RemoteErrorEvent):
            await self.error_handler.handle_error(
                RemoteError(event.message, event.code),
                ErrorContext.REMOTE,
                ErrorSeverity.MEDIUM,
                operation="remote",
            )

        elif isinstance(event, (SessionCreated, SessionUpdated)):
            logger.info(f"Realtime session ready ({type(event).__name__})")

        elif isinstance(event, (SpeechStarted, SpeechStopped)):
            logger.debug(type(event).__name__)

        elif isinstance(event, UnknownEvent):
            logger.debug(f"Ignoring event {event.type}")

    async def _notify(self, callback: Optional[Callable[[str], Any]], text: str) -> None:
        if callback is None:
            return
        try:
            result = callback(text)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error(f"Error in session callback: {e}")
