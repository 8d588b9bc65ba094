from __future__ import annotations

import numpy as np

# Segment boundaries 0x80 << e for e = 0..7, i.e. 0x80 .. 0x4000.
_SEGMENT_COUNT = 8
_BIAS = 33
_CLIP = 32767


def ulaw_decode(ulaw_bytes: bytes) -> np.ndarray:
    """Decode G.711 mu-law bytes to PCM16 int16 array at 8 kHz."""

    data = np.frombuffer(ulaw_bytes, dtype=np.uint8)
    if data.size == 0:
        return np.zeros(0, dtype=np.int16)

    mu = np.bitwise_not(data).astype(np.int32)
    sign = mu & 0x80
    exponent = (mu >> 4) & 0x07
    mantissa = mu & 0x0F

    magnitude = ((mantissa << 1) + _BIAS) << (exponent + 2)
    pcm = np.where(sign != 0, -magnitude, magnitude)

    return pcm.astype(np.int16)


def ulaw_encode(pcm16: np.ndarray) -> bytes:
    """Encode PCM16 int16 array to G.711 mu-law bytes.

    The magnitude is clamped to 32767 and biased by 33 before the segment
    search; the stored byte is the bitwise complement of sign|exponent|mantissa.
    """

    if pcm16.size == 0:
        return b""

    x = np.asarray(pcm16).astype(np.int32)
    sign = (x < 0).astype(np.int32)
    x = np.minimum(np.abs(x), _CLIP) + _BIAS

    exponent = np.zeros_like(x)
    for exp in range(_SEGMENT_COUNT):
        exponent = np.where(x >= (0x80 << exp), exp, exponent)

    # Values below the first boundary land in segment 0 with mantissa 0; the
    # clipped top of segment 7 saturates at mantissa 15.
    mantissa = np.clip((x >> (exponent + 3)) - 16, 0, 15)

    ulaw = np.bitwise_not((sign << 7) | (exponent << 4) | mantissa) & 0xFF
    return ulaw.astype(np.uint8).tobytes()
