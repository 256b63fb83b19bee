"""
Audio for the voice session: wire codec, device interfaces and ordered playback.

The PortAudio binding lives in ``voicelog.audio.sounddevice_io`` and is not
imported here, so the rest of the package works without audio hardware.
"""

from .codec import decode_from_wire, encode_for_wire, from_base64, to_base64
from .devices import AudioSink, AudioSource, MicrophoneLease
from .playback_queue import AudioChunk, PlaybackQueue

__all__ = [
    "AudioChunk",
    "AudioSink",
    "AudioSource",
    "MicrophoneLease",
    "PlaybackQueue",
    "decode_from_wire",
    "encode_for_wire",
    "from_base64",
    "to_base64",
]
