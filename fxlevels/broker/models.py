"""Broker-side records parsed from OANDA v20 responses."""

from dataclasses import dataclass

from fxlevels.strategy.models import OhlcSample


@dataclass(frozen=True)
class Candle:
    """One candlestick from the candles endpoint (single price component)."""

    time: str
    open: float
    high: float
    low: float
    close: float
    volume: int
    complete: bool

    def as_sample(self) -> OhlcSample:
        """High/low/close of this candle as a pivot input."""
        return OhlcSample(high=self.high, low=self.low, close=self.close)
