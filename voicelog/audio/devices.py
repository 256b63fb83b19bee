"""Audio device capabilities used by the realtime session.

The session never talks to a sound API directly. It needs two capabilities:

- ``AudioSource``: acquire the microphone, deliver fixed-size float frames,
  release the microphone.
- ``AudioSink``: play one block of float samples and return when it has
  finished playing.

``voicelog.audio.sounddevice_io`` binds them to PortAudio; tests bind them to
in-memory doubles.
"""

import threading
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

import numpy as np

from voicelog.errors import ResourceError


class AudioSource(ABC):
    """Microphone capability.

    ``start`` acquires the device and must raise ``ResourceError`` when it is
    unavailable. ``stop`` releases it and must be safe to call repeatedly.
    """

    @abstractmethod
    def start(self, sample_rate: int, frame_size: int) -> None:
        """Acquire the microphone and begin producing frames."""

    @abstractmethod
    async def read_frame(self) -> Optional[np.ndarray]:
        """Return the next frame, or None once the source has stopped."""

    @abstractmethod
    def stop(self) -> None:
        """Release the microphone."""

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """Whether the microphone is currently held."""

    async def frames(self) -> AsyncIterator[np.ndarray]:
        """Iterate frames until the source stops."""
        while True:
            frame = await self.read_frame()
            if frame is None:
                return
            yield frame


class AudioSink(ABC):
    """Speaker capability."""

    @abstractmethod
    async def play_chunk(self, samples: np.ndarray) -> None:
        """Play samples to completion."""

    @abstractmethod
    def stop(self) -> None:
        """Abort playback and release the output device."""


class MicrophoneLease:
    """Process-wide guard: one holder of the microphone at a time."""

    _lock = threading.Lock()
    _holder: Optional[object] = None

    @classmethod
    def acquire(cls, owner: object) -> None:
        with cls._lock:
            if cls._holder is not None and cls._holder is not owner:
                raise ResourceError("Microphone is already in use by another session")
            cls._holder = owner

    @classmethod
    def release(cls, owner: object) -> None:
        with cls._lock:
            if cls._holder is owner:
                cls._holder = None

    @classmethod
    def holder(cls) -> Optional[object]:
        return cls._holder
