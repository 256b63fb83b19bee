"""
In-memory doubles for the voice pipeline: transport, audio devices, bootstrap
provider and host.
"""

import asyncio
import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import numpy as np
import pytest

from voicelog.audio.devices import AudioSink, AudioSource, MicrophoneLease
from voicelog.errors import ResourceError
from voicelog.handlers.host_bridge import FunctionCall, FunctionResult, HostBridge
from voicelog.models.openai_api import SessionConfig
from voicelog.realtime.config_provider import SessionBootstrap, SessionConfigProvider

_CLOSE = object()


class FakeWebSocket:
    """Realtime transport double. Inbound frames are fed by the test."""

    def __init__(self):
        self.sent: List[str] = []
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.closed:
            raise RuntimeError("send on closed socket")
        self.sent.append(message)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._incoming.put_nowait(_CLOSE)

    def feed(self, event: Any) -> None:
        """Queue an inbound frame (dicts are serialized to JSON)."""
        self._incoming.put_nowait(event if isinstance(event, (str, bytes)) else json.dumps(event))

    def fail(self, error: BaseException) -> None:
        """Make the receive iteration raise."""
        self._incoming.put_nowait(error)

    def close_from_server(self) -> None:
        self._incoming.put_nowait(_CLOSE)

    def sent_events(self) -> List[Dict[str, Any]]:
        return [json.loads(message) for message in self.sent]

    def sent_types(self) -> List[str]:
        return [event["type"] for event in self.sent_events()]

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class FakeConnector:
    """Stands in for ``websockets.connect``; hands out FakeWebSockets."""

    def __init__(self, error: Optional[BaseException] = None, delay: float = 0.0):
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []
        self.sockets: List[FakeWebSocket] = []

    async def __call__(self, url: str, headers: Dict[str, str]) -> FakeWebSocket:
        self.calls.append({"url": url, "headers": headers})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws

    @property
    def last(self) -> FakeWebSocket:
        return self.sockets[-1]


class FakeSource(AudioSource):
    """Microphone double. Frames are pushed by the test."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.started_with = None
        self.start_count = 0
        self.stop_count = 0
        self._active = False
        self._frames: asyncio.Queue = asyncio.Queue()

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self, sample_rate: int, frame_size: int) -> None:
        if self.error is not None:
            raise self.error
        self.started_with = (sample_rate, frame_size)
        self.start_count += 1
        self._active = True

    def push(self, frame) -> None:
        self._frames.put_nowait(np.asarray(frame, dtype=np.float32))

    async def read_frame(self) -> Optional[np.ndarray]:
        if not self._active:
            return None
        frame = await self._frames.get()
        return frame if self._active else None

    def stop(self) -> None:
        self.stop_count += 1
        if self._active:
            self._active = False
            self._frames.put_nowait(None)


class FakeSink(AudioSink):
    """Speaker double that records every played chunk."""

    def __init__(self, delay: float = 0.0, error: Optional[Exception] = None):
        self.delay = delay
        self.error = error
        self.played: List[np.ndarray] = []
        self.stop_count = 0
        self.playing_now = 0
        self.max_concurrent = 0

    async def play_chunk(self, samples: np.ndarray) -> None:
        self.playing_now += 1
        self.max_concurrent = max(self.max_concurrent, self.playing_now)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            self.played.append(samples)
        finally:
            self.playing_now -= 1

    def stop(self) -> None:
        self.stop_count += 1


class FakeProvider(SessionConfigProvider):
    """Returns a distinct bootstrap on every fetch."""

    def __init__(self, error: Optional[Exception] = None, tools: bool = False):
        self.error = error
        self.tools = tools
        self.fetch_count = 0

    async def fetch(self) -> SessionBootstrap:
        self.fetch_count += 1
        if self.error is not None:
            raise self.error
        session = SessionConfig(
            instructions=f"attempt {self.fetch_count}",
            tools=[{"type": "function", "name": "log_expense"}] if self.tools else [],
            tool_choice="auto" if self.tools else "none",
        )
        return SessionBootstrap(
            url=f"wss://realtime.test/v1/realtime?attempt={self.fetch_count}",
            credential=f"key-{self.fetch_count}",
            session=session,
        )


class RecordingHost(HostBridge):
    """Host double that records what the session hands it."""

    def __init__(self, result: Optional[FunctionResult] = None, error: Optional[Exception] = None):
        self.commands: List[Any] = []
        self.calls: List[FunctionCall] = []
        self.result = result or FunctionResult(True, "Logged")
        self.error = error
        self.release = asyncio.Event()
        self.release.set()

    async def on_command_ready(self, kind, fields) -> None:
        self.commands.append((kind, fields))

    async def execute_function(self, call: FunctionCall) -> FunctionResult:
        self.calls.append(call)
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.result


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll until ``predicate()`` is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture(autouse=True)
def release_microphone():
    yield
    MicrophoneLease._holder = None


@pytest.fixture
def eventually():
    return wait_until


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def fake_sink():
    return FakeSink()


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def host():
    return RecordingHost()


@pytest.fixture
def unavailable_microphone():
    return FakeSource(error=ResourceError("No input device"))


@pytest.fixture
def fakes():
    """The double classes, for tests that need non-default construction."""
    return SimpleNamespace(
        WebSocket=FakeWebSocket,
        Connector=FakeConnector,
        Source=FakeSource,
        Sink=FakeSink,
        Provider=FakeProvider,
        Host=RecordingHost,
    )
