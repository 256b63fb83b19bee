"""Conversions between microphone samples and the realtime wire format.

The realtime endpoint speaks 16-bit little-endian mono PCM at 24 kHz, carried
as base64 text inside JSON frames. Microphones deliver normalized floats in
[-1, 1]. All functions here are pure.
"""

import base64
import binascii
from typing import Sequence, Union

import numpy as np

from voicelog.errors import CodecError, InvalidEncodingError

PCM16_DTYPE = np.dtype("<i2")

# Asymmetric full-scale values of signed 16-bit audio
_NEGATIVE_SCALE = 32768.0
_POSITIVE_SCALE = 32767.0

Samples = Union[Sequence[float], np.ndarray]


def encode_for_wire(samples: Samples) -> bytes:
    """Convert float samples to little-endian PCM16 bytes.

    Samples are clamped to [-1, 1] (NaN becomes silence), negatives are
    scaled by 32768 and the rest by 32767, then truncated toward zero.
    """
    arr = np.asarray(samples, dtype=np.float64).ravel()
    if arr.size == 0:
        return b""
    arr = np.clip(np.nan_to_num(arr, nan=0.0), -1.0, 1.0)
    scaled = np.where(arr < 0, arr * _NEGATIVE_SCALE, arr * _POSITIVE_SCALE)
    return scaled.astype(PCM16_DTYPE).tobytes()


def decode_from_wire(data: bytes) -> np.ndarray:
    """Convert little-endian PCM16 bytes back to float32 samples in [-1, 1]."""
    if len(data) % 2:
        raise CodecError(f"PCM16 payload has odd length {len(data)}")
    if not data:
        return np.zeros(0, dtype=np.float32)
    ints = np.frombuffer(data, dtype=PCM16_DTYPE).astype(np.float32)
    return np.where(ints < 0, ints / _NEGATIVE_SCALE, ints / _POSITIVE_SCALE).astype(
        np.float32
    )


def to_base64(data: bytes) -> str:
    """Encode bytes as standard base64 text without line wrapping."""
    return base64.b64encode(data).decode("ascii")


def from_base64(text: str) -> bytes:
    """Decode standard base64 text.

    Raises:
        InvalidEncodingError: If the text is not valid base64.
    """
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise InvalidEncodingError(f"Invalid base64 audio payload: {e}") from e
