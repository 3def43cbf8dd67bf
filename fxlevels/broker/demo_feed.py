"""Demo price feed — synthetic snapshots for demos and local runs.

This is the only place in the project that generates random prices.  It
draws from an explicit, seeded ``numpy.random.Generator`` so a given seed
always produces the same sequence of snapshots.
"""

from __future__ import annotations

import numpy as np

from fxlevels.strategy.instruments import Instrument, InstrumentCategory
from fxlevels.strategy.models import MarketSnapshot, OhlcSample, Period


# (low, span) of the base-price draw per category
_BASE_RANGES: dict[InstrumentCategory, tuple[float, float]] = {
    InstrumentCategory.STANDARD_PAIR: (0.5, 2.0),
    InstrumentCategory.JPY_CROSS: (80.0, 120.0),
    InstrumentCategory.METAL_OR_COMMODITY: (70.0, 20.0),
    InstrumentCategory.MXN_PAIR: (16.0, 4.0),
}

_SYMBOL_BASE_RANGES: dict[str, tuple[float, float]] = {
    "XAU_USD": (2000.0, 100.0),
    "WTICO_USD": (70.0, 20.0),
}

# range multiplier of each period relative to the daily range
_PERIOD_SCALE = {Period.DAILY: 1.0, Period.WEEKLY: 2.0, Period.MONTHLY: 4.0}


class DemoPriceFeed:
    """Seeded synthetic snapshot generator.

    Args:
        seed: Seed for the generator.  Same seed → same snapshots.
        series_length: Number of intraday closes per snapshot.
    """

    def __init__(self, seed: int = 42, series_length: int = 40) -> None:
        self._rng = np.random.default_rng(seed)
        self._series_length = series_length

    def _sample(self, base: float, scale: float) -> OhlcSample:
        rng = self._rng
        high = base + rng.random() * 0.02 * base * scale
        low = base - rng.random() * 0.02 * base * scale
        close = base + (rng.random() - 0.5) * 0.01 * base * scale
        return OhlcSample(
            high=float(max(high, close)), low=float(min(low, close)), close=float(close)
        )

    def snapshot(self, instrument: Instrument) -> MarketSnapshot:
        rng = self._rng
        start, span = _SYMBOL_BASE_RANGES.get(
            instrument.symbol, _BASE_RANGES[instrument.category]
        )
        base = start + rng.random() * span

        samples = {p: self._sample(base, _PERIOD_SCALE[p]) for p in Period}
        price = samples[Period.DAILY].close * (1 + (rng.random() - 0.5) * 0.004)

        steps = rng.normal(0.0, 0.001 * base, self._series_length)
        walk = np.cumsum(steps)
        closes = price - walk[-1] + walk

        return MarketSnapshot(
            symbol=instrument.symbol,
            price=float(price),
            samples=samples,
            closes=tuple(float(c) for c in closes),
            change_percent=float((rng.random() - 0.5) * 4),
        )

    async def fetch_snapshots(
        self, instruments: list[Instrument]
    ) -> list[MarketSnapshot]:
        return [self.snapshot(i) for i in instruments]
