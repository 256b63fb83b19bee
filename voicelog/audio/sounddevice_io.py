"""
PortAudio implementations of ``AudioSource`` and ``AudioSink``.

Frames recorded in the PortAudio callback thread are handed to the event
loop with ``call_soon_threadsafe``. Playback uses a blocking stream write
run in a worker thread, so ``play_chunk`` returns once the chunk has been
written to the device.
"""

import asyncio
from typing import Any, Optional

import numpy as np
import sounddevice as sd

from voicelog.audio.devices import AudioSink, AudioSource
from voicelog.config.constants import DEFAULT_CHANNELS, DEFAULT_SAMPLE_RATE
from voicelog.config.logging_config import configure_logging
from voicelog.errors import ResourceError

logger = configure_logging("voicelog.sounddevice")

# Frames buffered between the callback thread and the capture loop
MAX_QUEUED_FRAMES = 50


class SoundDeviceSource(AudioSource):
    """Microphone input through ``sounddevice.InputStream``."""

    def __init__(self, device: Optional[Any] = None, channels: int = DEFAULT_CHANNELS):
        self.device = device
        self.channels = channels
        self.input_stream: Optional[sd.InputStream] = None
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.frames_dropped = 0

    @property
    def is_active(self) -> bool:
        return self.input_stream is not None

    def start(self, sample_rate: int, frame_size: int) -> None:
        if self.input_stream is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=MAX_QUEUED_FRAMES)
        try:
            stream = sd.InputStream(
                samplerate=sample_rate,
                channels=self.channels,
                dtype=np.float32,
                blocksize=frame_size,
                device=self.device,
                callback=self._recording_callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            raise ResourceError(f"Microphone unavailable: {e}") from e
        self.input_stream = stream
        logger.info(f"Recording at {sample_rate} Hz, {frame_size} samples per frame")

    def _recording_callback(self, indata: np.ndarray, frames: int, time, status) -> None:
        if status:
            logger.warning(f"Recording status: {status}")
        # First channel only; the wire format is mono
        frame = indata[:, 0].copy()
        self._loop.call_soon_threadsafe(self._enqueue, frame)

    def _enqueue(self, frame: Optional[np.ndarray]) -> None:
        if self._queue is None:
            return
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            self.frames_dropped += 1
            logger.warning("Capture queue full, dropping microphone frame")

    async def read_frame(self) -> Optional[np.ndarray]:
        if self._queue is None:
            return None
        return await self._queue.get()

    def stop(self) -> None:
        stream, self.input_stream = self.input_stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            logger.warning(f"Error closing input stream: {e}")
        # Wake a reader blocked in read_frame
        queue, self._queue = self._queue, None
        if queue is not None:
            try:
                queue.put_nowait(None)
            except asyncio.QueueFull:
                pass
        logger.info("Audio recording stopped")


class SoundDeviceSink(AudioSink):
    """Speaker output through ``sounddevice.OutputStream``.

    The stream is opened on the first chunk and reopened after ``stop()``.
    """

    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        device: Optional[Any] = None,
        channels: int = DEFAULT_CHANNELS,
    ):
        self.sample_rate = sample_rate
        self.device = device
        self.channels = channels
        self.output_stream: Optional[sd.OutputStream] = None

    def _ensure_stream(self) -> sd.OutputStream:
        if self.output_stream is None:
            try:
                stream = sd.OutputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype=np.float32,
                    device=self.device,
                )
                stream.start()
            except (sd.PortAudioError, ValueError) as e:
                raise ResourceError(f"Speaker unavailable: {e}") from e
            self.output_stream = stream
        return self.output_stream

    async def play_chunk(self, samples: np.ndarray) -> None:
        stream = self._ensure_stream()
        data = np.asarray(samples, dtype=np.float32).reshape(-1, 1)
        if self.channels > 1:
            data = np.repeat(data, self.channels, axis=1)
        await asyncio.to_thread(stream.write, data)

    def stop(self) -> None:
        stream, self.output_stream = self.output_stream, None
        if stream is None:
            return
        try:
            stream.abort()
            stream.close()
        except sd.PortAudioError as e:
            logger.warning(f"Error closing output stream: {e}")
