"""PCM16 WAV encoding and loudness helpers for captured float audio."""

from __future__ import annotations

import io
import wave

import numpy as np

WAV_HEADER_SIZE = 44


def to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Scale float samples in [-1, 1] to little-endian int16.

    Negative values scale by 32768 and non-negative values by 32767, rounding
    half up, after clamping to [-1, 1].
    """
    clamped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(clamped < 0, clamped * 32768.0, clamped * 32767.0)
    return np.floor(scaled + 0.5).astype("<i2")


def encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    """Encode mono float samples as a 44-byte-header RIFF/WAVE PCM16 payload."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(int(sample_rate))
        wf.writeframes(to_pcm16(samples).tobytes())
    return buf.getvalue()


def rms_level(samples: np.ndarray) -> float:
    """Root-mean-square of a time-domain buffer, clamped to [0, 1]."""
    data = np.asarray(samples, dtype=np.float64)
    if data.size == 0:
        return 0.0
    rms = float(np.sqrt(np.mean(np.square(data))))
    return min(1.0, max(0.0, rms))


def is_wav_payload(payload: object) -> bool:
    """True for a non-empty RIFF/WAVE byte string carrying at least one sample."""
    if not isinstance(payload, (bytes, bytearray, memoryview)):
        return False
    data = bytes(payload)
    if len(data) <= WAV_HEADER_SIZE:
        return False
    return data[0:4] == b"RIFF" and data[8:12] == b"WAVE"
