"""Pip-based entry/target/stop zones — pure math, no I/O.

Distances are fixed per instrument category (see ``CATEGORY_SPECS``):

    Buy:   entry  = [price − entry, price]
           target = [price + 0.8 × target, price + target]
           stop   = price − stop                       (below)
    Sell:  mirror image (entry above, target below, stop above)

Key levels for a directional signal are two supports and two resistances:
at ``entry`` and ``stop`` pips against the trade, and at half and full
``target`` pips with it.
"""

import math
from typing import Optional

from fxlevels.strategy.instruments import (
    Instrument,
    InstrumentCategory,
    category_spec,
    format_price,
)
from fxlevels.strategy.models import KeyLevel, Signal, TradeZone


TARGET_ZONE_FRACTION = 0.8  # target zone starts at 80 % of the full target


def calculate_trade_zone(
    price: float,
    category: InstrumentCategory,
    signal: Signal,
) -> TradeZone:
    """Compute entry, target and stop zones for *signal* at *price*.

    Args:
        price: Current price in instrument-native units.
        category: Instrument category (selects pip size and distances).
        signal: ``BUY``, ``SELL`` or ``NEUTRAL``.

    Returns:
        ``TradeZone`` with prices rounded one digit past display precision.
        Neutral signals get no entry/stop and a range-bound target at price.

    Raises:
        ValueError: If *price* is NaN, infinite or negative.
    """
    if not math.isfinite(price) or price < 0:
        raise ValueError(f"price must be a finite non-negative number, got {price}")

    spec = category_spec(category)
    pip = spec.pip

    def _r(value: float) -> float:
        return round(value, spec.price_precision)

    entry = spec.entry_pips * pip
    target = spec.target_pips * pip
    stop = spec.stop_pips * pip

    if signal == Signal.BUY:
        return TradeZone(
            signal=signal,
            entry_low=_r(price - entry),
            entry_high=_r(price),
            target_low=_r(price + TARGET_ZONE_FRACTION * target),
            target_high=_r(price + target),
            stop_level=_r(price - stop),
            stop_side="below",
            key_levels=(
                KeyLevel("support", _r(price - entry)),
                KeyLevel("support", _r(price - stop)),
                KeyLevel("resistance", _r(price + 0.5 * target)),
                KeyLevel("resistance", _r(price + target)),
            ),
        )
    if signal == Signal.SELL:
        return TradeZone(
            signal=signal,
            entry_low=_r(price),
            entry_high=_r(price + entry),
            target_low=_r(price - target),
            target_high=_r(price - TARGET_ZONE_FRACTION * target),
            stop_level=_r(price + stop),
            stop_side="above",
            key_levels=(
                KeyLevel("resistance", _r(price + entry)),
                KeyLevel("resistance", _r(price + stop)),
                KeyLevel("support", _r(price - 0.5 * target)),
                KeyLevel("support", _r(price - target)),
            ),
        )
    if signal == Signal.NEUTRAL:
        return TradeZone(
            signal=signal,
            entry_low=None,
            entry_high=None,
            target_low=_r(price),
            target_high=_r(price),
            stop_level=None,
            stop_side=None,
            key_levels=(KeyLevel("pivot", _r(price)),),
        )
    raise ValueError(f"signal must be BUY, SELL or NEUTRAL, got '{signal}'")


def format_trade_zone(zone: TradeZone, instrument: Instrument) -> dict[str, str]:
    """Render a zone as display strings at the instrument's precision.

    Returns a dict with ``entry``, ``target``, ``stop`` and ``key_levels``.
    """

    def _f(value: Optional[float]) -> str:
        return format_price(instrument, value) if value is not None else "N/A"

    if not zone.signal.is_directional:
        return {
            "entry": "N/A",
            "target": f"Range-bound around {_f(zone.target_low)}",
            "stop": "N/A",
            "key_levels": _f(zone.target_low),
        }
    return {
        "entry": f"{_f(zone.entry_low)} - {_f(zone.entry_high)}",
        "target": f"{_f(zone.target_low)} - {_f(zone.target_high)}",
        "stop": f"{zone.stop_side} {_f(zone.stop_level)}",
        "key_levels": ", ".join(
            f"{kl.kind.capitalize()} {_f(kl.price)}" for kl in zone.key_levels
        ),
    }
