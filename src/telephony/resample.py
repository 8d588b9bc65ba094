"""Integer-ratio PCM16 resampling between 8 kHz telephony audio and the session rate.

Up- and down-conversion strategies are chosen per ratio. The two observed
profiles are not symmetric: 16 kHz interpolates on the way up and averages on
the way down, 24 kHz holds samples on the way up and decimates on the way down.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Final

import numpy as np

from config.settings import TELEPHONY_SAMPLE_RATE

INT16_MIN: Final[int] = -32768
INT16_MAX: Final[int] = 32767

# ratio -> (upsample strategy, downsample strategy)
DEFAULT_STRATEGIES: Final[dict[int, tuple[str, str]]] = {
    2: ("interpolate", "average"),
    3: ("hold", "decimate"),
}


def _round_div(numerator: np.ndarray, denominator: int) -> np.ndarray:
    # floor(n / d + 0.5) on integers, i.e. halves round towards +inf.
    return (2 * numerator + denominator) // (2 * denominator)


def upsample_interpolate(samples: np.ndarray, ratio: int) -> np.ndarray:
    """Insert ratio-1 linearly interpolated samples after every input sample.

    The last sample has no successor and is interpolated towards itself.
    """

    x = samples.astype(np.int32)
    nxt = np.empty_like(x)
    nxt[:-1] = x[1:]
    nxt[-1:] = x[-1:]

    steps = np.arange(ratio, dtype=np.int32)
    out = x[:, None] + _round_div((nxt - x)[:, None] * steps[None, :], ratio)
    return np.clip(out.reshape(-1), INT16_MIN, INT16_MAX).astype(np.int16)


def upsample_hold(samples: np.ndarray, ratio: int) -> np.ndarray:
    """Repeat every sample ratio times (nearest-neighbour hold)."""

    return np.repeat(samples.astype(np.int16), ratio)


def downsample_average(samples: np.ndarray, ratio: int) -> np.ndarray:
    """Average each group of ratio consecutive samples; a trailing partial group is dropped."""

    usable = (samples.size // ratio) * ratio
    groups = samples[:usable].astype(np.int32).reshape(-1, ratio)
    out = _round_div(groups.sum(axis=1), ratio)
    return np.clip(out, INT16_MIN, INT16_MAX).astype(np.int16)


def downsample_decimate(samples: np.ndarray, ratio: int) -> np.ndarray:
    """Keep the first sample of each group of ratio samples and discard the rest."""

    usable = (samples.size // ratio) * ratio
    return samples[:usable:ratio].astype(np.int16)


UPSAMPLERS: Final[dict[str, Callable[[np.ndarray, int], np.ndarray]]] = {
    "interpolate": upsample_interpolate,
    "hold": upsample_hold,
}

DOWNSAMPLERS: Final[dict[str, Callable[[np.ndarray, int], np.ndarray]]] = {
    "average": downsample_average,
    "decimate": downsample_decimate,
}


def resample_ratio(target_rate: int) -> int:
    if target_rate <= 0 or target_rate % TELEPHONY_SAMPLE_RATE:
        raise ValueError(f"Target rate {target_rate} is not an integer multiple of {TELEPHONY_SAMPLE_RATE} Hz")
    return target_rate // TELEPHONY_SAMPLE_RATE


def default_strategies(target_rate: int) -> tuple[str, str]:
    ratio = resample_ratio(target_rate)
    try:
        return DEFAULT_STRATEGIES[ratio]
    except KeyError:
        raise ValueError(f"No resampling strategy configured for ratio {ratio} ({target_rate} Hz)") from None


def resample_up(samples: np.ndarray, target_rate: int, *, strategy: str | None = None) -> np.ndarray:
    """Convert 8 kHz samples to target_rate; output has exactly ratio * N samples."""

    ratio = resample_ratio(target_rate)
    if ratio == 1 or samples.size == 0:
        return samples.astype(np.int16)
    name = strategy or default_strategies(target_rate)[0]
    return UPSAMPLERS[name](samples, ratio)


def resample_down(samples: np.ndarray, target_rate: int, *, strategy: str | None = None) -> np.ndarray:
    """Convert target_rate samples to 8 kHz; output has floor(N / ratio) samples."""

    ratio = resample_ratio(target_rate)
    if ratio == 1 or samples.size == 0:
        return samples.astype(np.int16)
    name = strategy or default_strategies(target_rate)[1]
    return DOWNSAMPLERS[name](samples, ratio)
