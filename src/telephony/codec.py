from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from relay.errors import AudioDecodeError
from telephony.g711 import ulaw_decode, ulaw_encode
from telephony.resample import DOWNSAMPLERS, UPSAMPLERS, default_strategies, resample_down, resample_up

PCM16_DTYPE = np.dtype("<i2")


def decode_telephony_frame(mulaw: bytes) -> np.ndarray:
    """mu-law 8 kHz bytes -> int16 samples at 8 kHz."""

    return ulaw_decode(mulaw)


def encode_to_telephony_frame(pcm8k: np.ndarray) -> bytes:
    """int16 samples at 8 kHz -> mu-law 8 kHz bytes."""

    return ulaw_encode(pcm8k)


def pcm16_from_bytes(data: bytes) -> np.ndarray:
    """Parse little-endian PCM16 bytes, failing on a dangling half sample."""

    if len(data) % PCM16_DTYPE.itemsize:
        raise AudioDecodeError(f"PCM16 payload has odd length ({len(data)} bytes)")
    return np.frombuffer(data, dtype=PCM16_DTYPE).astype(np.int16)


def pcm16_to_bytes(samples: np.ndarray) -> bytes:
    return samples.astype(PCM16_DTYPE).tobytes()


def telephony_to_upstream(
    mulaw: bytes,
    target_rate: int,
    *,
    strategy: str | None = None,
) -> bytes:
    return pcm16_to_bytes(resample_up(decode_telephony_frame(mulaw), target_rate, strategy=strategy))


def upstream_to_telephony(
    pcm: bytes,
    target_rate: int,
    *,
    strategy: str | None = None,
) -> bytes:
    return encode_to_telephony_frame(resample_down(pcm16_from_bytes(pcm), target_rate, strategy=strategy))


@dataclass(frozen=True, slots=True)
class TelephonyCodec:
    """Both transcoding directions bound to one target rate and strategy pair."""

    target_rate: int
    upsample_strategy: str
    downsample_strategy: str

    @classmethod
    def for_rate(
        cls,
        target_rate: int,
        *,
        upsample_strategy: str | None = None,
        downsample_strategy: str | None = None,
    ) -> TelephonyCodec:
        up, down = default_strategies(target_rate)
        up = upsample_strategy or up
        down = downsample_strategy or down
        if up not in UPSAMPLERS:
            raise ValueError(f"Unknown upsample strategy: {up}")
        if down not in DOWNSAMPLERS:
            raise ValueError(f"Unknown downsample strategy: {down}")
        return cls(target_rate=target_rate, upsample_strategy=up, downsample_strategy=down)

    def to_upstream(self, mulaw: bytes) -> bytes:
        return telephony_to_upstream(mulaw, self.target_rate, strategy=self.upsample_strategy)

    def to_telephony(self, pcm: bytes) -> bytes:
        return upstream_to_telephony(pcm, self.target_rate, strategy=self.downsample_strategy)
