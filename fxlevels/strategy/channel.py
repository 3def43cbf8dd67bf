"""Standard-deviation channel and directional bias — pure functions, no I/O.

The channel is a Bollinger-style envelope: a middle line with bands at
``band_width`` standard deviations on each side.  Direction comes from where
price sits inside the channel combined with a momentum scalar in [-1, 1].
"""

from collections.abc import Sequence

import numpy as np

from fxlevels.strategy.models import (
    DEFAULT_THRESHOLDS,
    Channel,
    ChannelDirection,
    SignalThresholds,
)


_FLAT_TOLERANCE = 1e-12


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def position_in_channel(price: float, lower_band: float, upper_band: float) -> float:
    """Where *price* sits between the bands, clamped to [0, 1].

    Returns 0.5 for a zero-width channel.
    """
    width = upper_band - lower_band
    if width == 0:
        return 0.5
    return _clamp((price - lower_band) / width, 0.0, 1.0)


def classify_channel(
    middle: float,
    std_dev: float,
    price: float,
    momentum: float,
    thresholds: SignalThresholds = DEFAULT_THRESHOLDS,
) -> Channel:
    """Build the channel around *middle* and classify its direction.

    Rules (first match wins):
        1. Zero-width channel → sideways.
        2. Position in channel above ``bullish_position`` and momentum above
           ``momentum_trigger`` → bullish.
        3. Position below ``bearish_position`` and momentum below
           ``-momentum_trigger`` → bearish.
        4. ``|momentum|`` below ``sideways_momentum`` → sideways.
        5. Otherwise the sign of momentum decides.
    """
    half_width = thresholds.band_width * abs(std_dev)
    upper = middle + half_width
    lower = middle - half_width
    m = _clamp(momentum, -1.0, 1.0)

    if upper - lower == 0:
        direction = ChannelDirection.SIDEWAYS
    else:
        pos = position_in_channel(price, lower, upper)
        if pos > thresholds.bullish_position and m > thresholds.momentum_trigger:
            direction = ChannelDirection.BULLISH
        elif pos < thresholds.bearish_position and m < -thresholds.momentum_trigger:
            direction = ChannelDirection.BEARISH
        elif abs(m) < thresholds.sideways_momentum:
            direction = ChannelDirection.SIDEWAYS
        elif m > 0:
            direction = ChannelDirection.BULLISH
        else:
            direction = ChannelDirection.BEARISH

    return Channel(
        direction=direction,
        upper_band=upper,
        lower_band=lower,
        middle_line=middle,
    )


def channel_inputs(
    closes: Sequence[float],
    window: int = 20,
    band_width: float = DEFAULT_THRESHOLDS.band_width,
) -> tuple[float, float, float]:
    """Derive ``(middle, std_dev, momentum)`` from a close series.

    Middle  = SMA of the last *window* closes
    Std dev = population σ of the same window
    Momentum = least-squares slope × (window − 1), i.e. the fitted travel
               across the window, as a fraction of the full channel width
               (2 × band_width × σ), clamped to [-1, 1].  0 when σ is 0.

    Raises ``ValueError`` if fewer than *window* closes are provided.
    """
    if window < 2:
        raise ValueError(f"window must be at least 2, got {window}")
    if len(closes) < window:
        raise ValueError(
            f"Need at least {window} closes for a channel, got {len(closes)}"
        )

    recent = np.asarray(closes[-window:], dtype=float)
    middle = float(recent.mean())
    std_dev = float(recent.std())
    # σ at rounding-noise level means a flat series
    if std_dev <= _FLAT_TOLERANCE * max(1.0, abs(middle)):
        return middle, 0.0, 0.0

    slope = float(np.polyfit(np.arange(window, dtype=float), recent, 1)[0])
    travel = slope * (window - 1)
    momentum = _clamp(travel / (2 * band_width * std_dev), -1.0, 1.0)
    return middle, std_dev, momentum


def range_channel_inputs(
    high: float, low: float, pivot: float, price: float
) -> tuple[float, float, float]:
    """Fallback channel inputs from a single daily range.

    Middle is the daily pivot, σ is a quarter of the range (so the ±2σ bands
    span the day's range) and momentum maps the price's position in the
    range onto [-1, 1].
    """
    span = high - low
    if span <= 0:
        return pivot, 0.0, 0.0
    momentum = _clamp(2 * (price - low) / span - 1, -1.0, 1.0)
    return pivot, span / 4, momentum
