"""Ordered playback of streamed assistant audio.

Chunks are decoded by the dispatch loop and enqueued here; a single drain
task plays them back to back through an ``AudioSink``. Chunks never overlap
and never change order. While muted, new chunks are dropped on arrival.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional, Union

import numpy as np

from voicelog.audio.devices import AudioSink
from voicelog.config.logging_config import configure_logging

logger = configure_logging("voicelog.playback")


@dataclass(frozen=True)
class AudioChunk:
    """A block of decoded samples and its position in the playback order."""

    samples: np.ndarray
    sequence: int

    @property
    def num_samples(self) -> int:
        return int(self.samples.shape[0])


class PlaybackQueue:
    """FIFO audio buffer with one consumer loop.

    Attributes:
        sink: Device the chunks are played on
        is_playing: True while the drain loop is running
        is_muted: While True, ``enqueue`` drops chunks
        chunks_played: Number of chunks handed to the sink
        chunks_dropped: Number of chunks dropped while muted
    """

    def __init__(self, sink: AudioSink):
        self.sink = sink
        self.is_playing = False
        self.is_muted = False
        self.chunks_played = 0
        self.chunks_dropped = 0
        self._queue: Deque[AudioChunk] = deque()
        self._drain_task: Optional[asyncio.Task] = None
        self._next_sequence = 0

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def is_speaking(self) -> bool:
        return self.is_playing

    def enqueue(self, chunk: Union[AudioChunk, np.ndarray]) -> bool:
        """Append a chunk and make sure the drain loop is running.

        Returns:
            False if the chunk was dropped because playback is muted
        """
        if self.is_muted:
            self.chunks_dropped += 1
            logger.debug("Playback muted, dropping audio chunk")
            return False

        if not isinstance(chunk, AudioChunk):
            chunk = AudioChunk(samples=np.asarray(chunk, dtype=np.float32), sequence=0)
        chunk = AudioChunk(samples=chunk.samples, sequence=self._next_sequence)
        self._next_sequence += 1
        self._queue.append(chunk)

        if not self.is_playing:
            self.is_playing = True
            self._drain_task = asyncio.get_running_loop().create_task(
                self._drain_loop()
            )
        return True

    def set_muted(self, muted: bool) -> None:
        """Mute or unmute local playback. The chunk playing now is not interrupted."""
        self.is_muted = muted
        logger.info(f"Playback {'muted' if muted else 'unmuted'}")

    async def _drain_loop(self) -> None:
        try:
            while self._queue:
                chunk = self._queue.popleft()
                try:
                    await self.sink.play_chunk(chunk.samples)
                    self.chunks_played += 1
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Playback of chunk {chunk.sequence} failed: {e}")
        finally:
            self.is_playing = False

    async def wait_idle(self) -> None:
        """Wait until every queued chunk has been played."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    def clear(self) -> int:
        """Discard queued chunks without playing them. Returns how many were dropped."""
        dropped = len(self._queue)
        self._queue.clear()
        return dropped

    async def close(self) -> None:
        """Discard everything, stop the drain loop and the output device."""
        dropped = self.clear()
        task = self._drain_task
        self._drain_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.is_playing = False
        self.sink.stop()
        if dropped:
            logger.info(f"Discarded {dropped} queued audio chunks")
