"""Trade signal classification — pure functions, no I/O.

A directional signal needs three things to agree: the channel direction,
the side of the daily pivot the price is on, and enough signal strength.
Everything else is neutral.  There is no randomness here; any cosmetic
variation belongs to the presentation layer.
"""

from fxlevels.strategy.models import (
    DEFAULT_THRESHOLDS,
    ChannelDirection,
    Signal,
    SignalThresholds,
)


def signal_strength(change_percent: float, momentum: float) -> float:
    """Combined strength scalar: ``|change_percent| + |momentum|``."""
    return abs(change_percent) + abs(momentum)


def classify_signal(
    direction: ChannelDirection,
    price: float,
    daily_pivot: float,
    strength: float,
    thresholds: SignalThresholds = DEFAULT_THRESHOLDS,
) -> Signal:
    """Classify BUY / SELL / NEUTRAL.

    * **BUY**: bullish channel, price above the daily pivot and
      *strength* above ``min_signal_strength``.
    * **SELL**: bearish channel, price below the daily pivot and
      *strength* above ``min_signal_strength``.
    * **NEUTRAL**: everything else.
    """
    strong = strength > thresholds.min_signal_strength  # False for NaN
    if strong and direction == ChannelDirection.BULLISH and price > daily_pivot:
        return Signal.BUY
    if strong and direction == ChannelDirection.BEARISH and price < daily_pivot:
        return Signal.SELL
    return Signal.NEUTRAL
