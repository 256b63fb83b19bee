"""
Tests for the realtime voice session.

The WebSocket, microphone, speaker, bootstrap provider and host are in-memory
doubles (see conftest.py); every test drives the session through the same
wire protocol the realtime service speaks.
"""

import asyncio
import base64
import json

import numpy as np
import pytest
from websockets.exceptions import ConnectionClosedError

from voicelog.audio.codec import encode_for_wire, to_base64
from voicelog.audio.devices import MicrophoneLease
from voicelog.config.models import AudioConfig, RealtimeConfig
from voicelog.errors import (
    CaptureStartError,
    RemoteError,
    ResourceError,
    SessionBootstrapError,
    TransportError,
)
from voicelog.handlers.command_interpreter import PendingState
from voicelog.handlers.error_handler import ErrorContext, ErrorHandler
from voicelog.handlers.host_bridge import FunctionCallStatus
from voicelog.models.openai_api import ResponseCreateEvent
from voicelog.models.records import CommandKind
from voicelog.realtime.session import ConnectionState, RealtimeSession

LUNCH_JSON = json.dumps(
    {
        "type": "expense",
        "amount": 500,
        "category": "FOOD & DINING",
        "description": "Lunch",
        "paymentMode": "UPI",
    }
)


@pytest.fixture
def error_handler():
    return ErrorHandler()


@pytest.fixture
def make_session(provider, host, fake_source, fake_sink, connector, error_handler):
    """Build a session wired to the doubles; keyword arguments override them."""

    def _make(**overrides):
        kwargs = dict(
            config_provider=provider,
            host_bridge=host,
            audio_source=fake_source,
            audio_sink=fake_sink,
            connector=connector,
            error_handler=error_handler,
        )
        kwargs.update(overrides)
        session = RealtimeSession(**kwargs)
        return session

    return _make


def errors_in(error_handler, context):
    return error_handler.get_error_stats()["error_counts"][context.value]


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_sends_session_update_first(self, make_session, connector):
        session = make_session()
        await session.connect()

        assert session.state == ConnectionState.CONNECTED
        call = connector.calls[0]
        assert call["url"] == "wss://realtime.test/v1/realtime?attempt=1"
        assert call["headers"]["Authorization"] == "Bearer key-1"
        assert call["headers"]["OpenAI-Beta"] == "realtime=v1"

        first = connector.last.sent_events()[0]
        assert first["type"] == "session.update"
        assert first["session"]["instructions"] == "attempt 1"
        assert first["session"]["input_audio_format"] == "pcm16"

        await session.disconnect()

    @pytest.mark.asyncio
    async def test_state_transitions_are_reported(self, make_session):
        states = []
        session = make_session(on_state_change=states.append)

        await session.connect()
        await session.disconnect()

        assert states == [
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.DISCONNECTED,
        ]

    @pytest.mark.asyncio
    async def test_concurrent_connects_share_one_attempt(self, make_session, connector, fakes):
        session = make_session(connector=fakes.Connector(delay=0.02))

        await asyncio.gather(session.connect(), session.connect())

        assert len(session.connector.calls) == 1
        await session.disconnect()

    @pytest.mark.asyncio
    async def test_bootstrap_is_fetched_on_every_connect(self, make_session, provider, connector):
        session = make_session()
        await session.connect()
        await session.disconnect()
        await session.connect()

        assert provider.fetch_count == 2
        assert connector.calls[1]["headers"]["Authorization"] == "Bearer key-2"
        assert connector.last.sent_events()[0]["session"]["instructions"] == "attempt 2"

        await session.disconnect()

    @pytest.mark.asyncio
    async def test_connector_failure_sets_error(self, make_session, fakes, error_handler):
        session = make_session(connector=fakes.Connector(error=OSError("refused")))

        with pytest.raises(TransportError):
            await session.connect()

        assert session.state == ConnectionState.ERROR
        assert errors_in(error_handler, ErrorContext.TRANSPORT) == 1

    @pytest.mark.asyncio
    async def test_bootstrap_failure_sets_error(self, make_session, fakes, connector):
        session = make_session(
            config_provider=fakes.Provider(error=SessionBootstrapError("no key"))
        )

        with pytest.raises(SessionBootstrapError):
            await session.connect()

        assert session.state == ConnectionState.ERROR
        assert connector.calls == []

    @pytest.mark.asyncio
    async def test_connect_timeout(self, make_session, fakes):
        session = make_session(
            connector=fakes.Connector(delay=1.0),
            realtime_config=RealtimeConfig(connect_timeout=0.02),
        )

        with pytest.raises(TransportError, match="timed out"):
            await session.connect()

        assert session.state == ConnectionState.ERROR

    @pytest.mark.asyncio
    async def test_can_reconnect_after_error(self, make_session, fakes):
        flaky = fakes.Connector(error=OSError("refused"))
        session = make_session(connector=flaky)
        with pytest.raises(TransportError):
            await session.connect()

        flaky.error = None
        await session.connect()

        assert session.is_connected
        await session.disconnect()

    @pytest.mark.asyncio
    async def test_send_without_connection_raises(self, make_session):
        session = make_session()

        with pytest.raises(TransportError):
            await session.send_event(ResponseCreateEvent())

    @pytest.mark.asyncio
    async def test_context_manager(self, make_session):
        session = make_session()
        async with session:
            assert session.is_connected
        assert session.state == ConnectionState.DISCONNECTED


class TestCapture:
    @pytest.mark.asyncio
    async def test_capture_streams_encoded_frames(self, make_session, fake_source, connector, eventually):
        session = make_session(audio_config=AudioConfig(frame_size=4))
        await session.start_capture()

        assert session.is_connected
        assert fake_source.started_with == (24000, 4)
        assert MicrophoneLease.holder() is session

        frame = [0.0, 0.5, -0.5, 1.0]
        fake_source.push(frame)
        await eventually(lambda: session.frames_sent == 1)

        append = connector.last.sent_events()[-1]
        assert append["type"] == "input_audio_buffer.append"
        assert base64.b64decode(append["audio"]) == encode_for_wire(frame)

        await session.stop_capture()
        assert session.is_capturing is False
        assert fake_source.is_active is False
        assert MicrophoneLease.holder() is None

        await session.disconnect()

    @pytest.mark.asyncio
    async def test_start_capture_twice_is_a_no_op(self, make_session, fake_source):
        session = make_session()
        await session.start_capture()
        await session.start_capture()

        assert fake_source.start_count == 1
        await session.disconnect()

    @pytest.mark.asyncio
    async def test_unavailable_microphone(self, make_session, unavailable_microphone, error_handler):
        session = make_session(audio_source=unavailable_microphone)

        with pytest.raises(ResourceError):
            await session.start_capture()

        assert session.is_capturing is False
        assert MicrophoneLease.holder() is None
        assert errors_in(error_handler, ErrorContext.RESOURCE) == 1
        await session.disconnect()

    @pytest.mark.asyncio
    async def test_device_failure_is_wrapped(self, make_session, fakes):
        session = make_session(audio_source=fakes.Source(error=OSError("PortAudio")))

        with pytest.raises(ResourceError):
            await session.start_capture()
        await session.disconnect()

    @pytest.mark.asyncio
    async def test_microphone_held_by_another_session(self, make_session):
        MicrophoneLease.acquire(object())
        session = make_session()

        with pytest.raises(ResourceError):
            await session.start_capture()
        await session.disconnect()

    @pytest.mark.asyncio
    async def test_capture_start_timeout(self, make_session, fakes, error_handler):
        session = make_session(
            connector=fakes.Connector(delay=1.0),
            realtime_config=RealtimeConfig(capture_start_timeout=0.05),
        )

        with pytest.raises(CaptureStartError):
            await session.start_capture()

        assert session.state == ConnectionState.ERROR
        assert session.is_capturing is False
        assert MicrophoneLease.holder() is None
        assert errors_in(error_handler, ErrorContext.TRANSPORT) == 1

    @pytest.mark.asyncio
    async def test_capture_connect_failure(self, make_session, fakes):
        session = make_session(connector=fakes.Connector(error=OSError("refused")))

        with pytest.raises(CaptureStartError):
            await session.start_capture()
        assert session.state == ConnectionState.ERROR

    @pytest.mark.asyncio
    async def test_disconnect_during_capture(self, make_session, fake_source, eventually):
        session = make_session()
        await session.start_capture()
        fake_source.push(np.zeros(2400, dtype=np.float32))
        await eventually(lambda: session.frames_sent == 1)

        await session.disconnect()

        assert session.state == ConnectionState.DISCONNECTED
        assert session.is_capturing is False
        assert fake_source.is_active is False
        assert MicrophoneLease.holder() is None
        assert len(session.playback_queue) == 0

    @pytest.mark.asyncio
    async def test_disconnect_from_capture_error_callback(
        self, make_session, fake_source, connector, error_handler, eventually
    ):
        session = make_session()

        async def hang_up(error_info):
            await session.disconnect()

        error_handler.register_handler(hang_up, ErrorContext.TRANSPORT)
        await session.start_capture()
        ws = connector.last

        async def broken_send(message):
            raise ConnectionClosedError(None, None)

        ws.send = broken_send
        fake_source.push(np.zeros(2400, dtype=np.float32))
        await eventually(lambda: session.state == ConnectionState.DISCONNECTED)

        assert ws.closed is True
        assert session.is_capturing is False
        await eventually(lambda: MicrophoneLease.holder() is None)
        assert fake_source.is_active is False


class TestReceive:
    @pytest.mark.asyncio
    async def test_audio_deltas_are_played_in_order(self, make_session, connector, fake_sink, eventually):
        session = make_session()
        await session.connect()

        for value in (0.25, 0.5, 0.75):
            connector.last.feed(
                {
                    "type": "response.audio.delta",
                    "delta": to_base64(encode_for_wire([value] * 8)),
                }
            )
        await eventually(lambda: len(fake_sink.played) == 3)

        firsts = [round(float(chunk[0]), 2) for chunk in fake_sink.played]
        assert firsts == [0.25, 0.5, 0.75]
        await session.disconnect()

    @pytest.mark.asyncio
    async def test_muted_session_drops_audio(self, make_session, connector, fake_sink, eventually):
        session = make_session()
        await session.connect()
        session.set_muted(True)

        connector.last.feed(
            {"type": "response.audio.delta", "delta": to_base64(encode_for_wire([0.1] * 8))}
        )
        connector.last.feed({"type": "response.done"})
        await eventually(lambda: session.playback_queue.chunks_dropped == 1)

        assert session.is_muted
        assert fake_sink.played == []
        await session.disconnect()

    @pytest.mark.asyncio
    async def test_start_muted_from_config(self, make_session):
        session = make_session(audio_config=AudioConfig(start_muted=True))
        assert session.is_muted

    @pytest.mark.asyncio
    async def test_transcripts_reach_callbacks(self, make_session, connector, eventually):
        user, assistant = [], []
        session = make_session(on_user_transcript=user.append, on_assistant_text=assistant.append)
        await session.connect()

        connector.last.feed(
            {
                "type": "conversation.item.input_audio_transcription.completed",
                "transcript": "kal 200 ka petrol",
            }
        )
        connector.last.feed({"type": "response.audio_transcript.delta", "delta": "Which payment mode?"})
        await eventually(lambda: assistant == ["Which payment mode?"])

        assert user == ["kal 200 ka petrol"]
        assert session.interpreter.last_user_transcript == "kal 200 ka petrol"
        await session.disconnect()

    @pytest.mark.asyncio
    async def test_command_fires_on_response_done(self, make_session, connector, host, eventually):
        session = make_session()
        await session.connect()

        connector.last.feed({"type": "response.text.delta", "delta": LUNCH_JSON[:20]})
        connector.last.feed({"type": "response.text.delta", "delta": LUNCH_JSON[20:]})
        connector.last.feed({"type": "response.done", "response": {}})
        await eventually(lambda: len(host.commands) == 1)

        kind, fields = host.commands[0]
        assert kind == CommandKind.EXPENSE
        assert fields["needWant"] == "NEED"

        await session.disconnect()
        assert len(host.commands) == 1

    @pytest.mark.asyncio
    async def test_malformed_frame_is_reported_and_skipped(
        self, make_session, connector, host, error_handler, eventually
    ):
        session = make_session()
        await session.connect()

        connector.last.feed("{broken")
        connector.last.feed({"type": "response.audio.delta", "delta": "%%%"})
        connector.last.feed({"type": "response.text.delta", "delta": LUNCH_JSON})
        connector.last.feed({"type": "response.done"})
        await eventually(lambda: len(host.commands) == 1)

        assert errors_in(error_handler, ErrorContext.PARSE) == 1
        assert errors_in(error_handler, ErrorContext.CODEC) == 1
        assert session.is_connected
        await session.disconnect()

    @pytest.mark.asyncio
    async def test_remote_error_keeps_session_open(self, make_session, connector, error_handler, eventually):
        reported = []
        error_handler.register_handler(lambda info: reported.append(info.error), ErrorContext.REMOTE)
        session = make_session()
        await session.connect()

        connector.last.feed(
            {"type": "error", "error": {"message": "Rate limited", "code": "rate_limit_exceeded"}}
        )
        await eventually(lambda: len(reported) == 1)

        assert isinstance(reported[0], RemoteError)
        assert reported[0].code == "rate_limit_exceeded"
        assert session.state == ConnectionState.CONNECTED
        await session.disconnect()

    @pytest.mark.asyncio
    async def test_server_close_disconnects(self, make_session, connector, eventually):
        session = make_session()
        await session.start_capture()

        connector.last.close_from_server()
        await eventually(lambda: session.state == ConnectionState.DISCONNECTED)

        assert session.is_capturing is False
        assert MicrophoneLease.holder() is None
        await session.disconnect()

    @pytest.mark.parametrize(
        "failure", [ConnectionClosedError(None, None), RuntimeError("socket reset")]
    )
    @pytest.mark.asyncio
    async def test_abnormal_close_sets_error(self, make_session, connector, error_handler, eventually, failure):
        session = make_session()
        await session.start_capture()

        connector.last.fail(failure)
        await eventually(lambda: session.state == ConnectionState.ERROR)

        assert session.is_capturing is False
        assert MicrophoneLease.holder() is None
        assert errors_in(error_handler, ErrorContext.TRANSPORT) == 1
        await session.disconnect()
        assert session.state == ConnectionState.DISCONNECTED


class TestFunctionCalls:
    @pytest.mark.asyncio
    async def test_function_result_goes_back_over_the_wire(self, make_session, fakes, connector, host, eventually):
        results = []
        session = make_session(
            config_provider=fakes.Provider(tools=True),
            on_function_result=lambda call, result: results.append(result),
        )
        await session.connect()
        assert connector.last.sent_events()[0]["session"]["tool_choice"] == "auto"

        connector.last.feed(
            {
                "type": "response.function_call_arguments.done",
                "call_id": "call_42",
                "name": "log_expense",
                "arguments": LUNCH_JSON,
            }
        )
        await eventually(lambda: "response.create" in connector.last.sent_types())

        types = connector.last.sent_types()
        item = connector.last.sent_events()[types.index("conversation.item.create")]["item"]
        assert item["type"] == "function_call_output"
        assert item["call_id"] == "call_42"
        assert json.loads(item["output"]) == {"success": True, "message": "Logged"}
        assert types.index("conversation.item.create") < types.index("response.create")
        assert host.calls[0].arguments["amount"] == 500
        assert len(results) == 1

        await session.disconnect()

    @pytest.mark.asyncio
    async def test_pending_call_is_abandoned_on_disconnect(self, make_session, connector, host, eventually):
        host.release.clear()
        session = make_session()
        await session.connect()

        connector.last.feed(
            {
                "type": "response.function_call_arguments.done",
                "call_id": "call_1",
                "name": "log_income",
                "arguments": "{}",
            }
        )
        await eventually(lambda: len(host.calls) == 1)
        ws = connector.last

        await session.disconnect()

        assert "conversation.item.create" not in ws.sent_types()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "arguments,expected",
        [({"amount": 5}, {"amount": 5}), (42, {}), (["x"], {})],
    )
    async def test_non_string_arguments_still_get_a_result(
        self, make_session, connector, host, eventually, arguments, expected
    ):
        session = make_session()
        await session.connect()

        connector.last.feed(
            {
                "type": "response.function_call_arguments.done",
                "call_id": "call_7",
                "name": "log_expense",
                "arguments": arguments,
            }
        )
        await eventually(lambda: "response.create" in connector.last.sent_types())

        assert len(host.calls) == 1
        assert host.calls[0].arguments == expected
        assert "conversation.item.create" in connector.last.sent_types()

        await session.disconnect()

    @pytest.mark.asyncio
    async def test_disconnect_from_result_callback(self, make_session, connector, host, eventually):
        sessions = []

        async def hang_up(call, result):
            await sessions[0].disconnect()

        session = make_session(on_function_result=hang_up)
        sessions.append(session)
        await session.connect()
        ws = connector.last

        ws.feed(
            {
                "type": "response.function_call_arguments.done",
                "call_id": "call_9",
                "name": "log_expense",
                "arguments": LUNCH_JSON,
            }
        )
        await eventually(lambda: session.state == ConnectionState.DISCONNECTED)

        assert ws.closed is True
        assert session.function_handler.calls["call_9"].status == FunctionCallStatus.RESULT_SENT
        assert session.function_handler.active_calls == 0


@pytest.mark.asyncio
async def test_expense_conversation_end_to_end(make_session, connector, host, eventually):
    """Connect, hear the request, receive the command JSON, then hang up."""
    transcripts = []
    session = make_session(on_user_transcript=transcripts.append)
    await session.start_capture()
    assert session.state == ConnectionState.CONNECTED

    connector.last.feed(
        {
            "type": "conversation.item.input_audio_transcription.completed",
            "transcript": "add expense 500 for lunch",
        }
    )
    connector.last.feed({"type": "response.text.delta", "delta": LUNCH_JSON})
    await eventually(
        lambda: session.interpreter.pending(CommandKind.EXPENSE).state == PendingState.COMPLETE
    )

    await session.disconnect()

    assert transcripts == ["add expense 500 for lunch"]
    assert host.commands == [
        (
            CommandKind.EXPENSE,
            {
                "amount": 500.0,
                "category": "FOOD & DINING",
                "description": "Lunch",
                "paymentMode": "UPI",
                "needWant": "NEED",
            },
        )
    ]
    assert session.state == ConnectionState.DISCONNECTED
    assert len(session.playback_queue) == 0
    assert MicrophoneLease.holder() is None
