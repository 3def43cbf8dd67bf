"""Price feeds — turn provider data into ``MarketSnapshot`` values.

The engine never fetches data itself; a feed is called first and its
snapshots are handed to the heat-map aggregator.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Callable, Optional, Protocol, runtime_checkable

import httpx

from fxlevels.broker.models import Candle
from fxlevels.broker.oanda_client import OandaClient
from fxlevels.strategy.instruments import Instrument
from fxlevels.strategy.models import MarketSnapshot, OhlcSample, Period

logger = logging.getLogger("fxlevels.broker")

PERIOD_GRANULARITY: dict[Period, str] = {
    Period.DAILY: "D",
    Period.WEEKLY: "W",
    Period.MONTHLY: "M",
}


@runtime_checkable
class PriceFeed(Protocol):
    """Interface every price provider satisfies."""

    async def fetch_snapshots(
        self, instruments: list[Instrument]
    ) -> list[MarketSnapshot]:
        """Return one snapshot per instrument, in the same order."""
        ...


def last_complete_sample(candles: list[Candle]) -> Optional[OhlcSample]:
    """High/low/close of the most recent *complete* candle, or ``None``."""
    for candle in reversed(candles):
        if candle.complete:
            return candle.as_sample()
    return None


class OandaPriceFeed:
    """Snapshot provider backed by the OANDA v20 REST API.

    Period samples come from the last complete D / W / M candle.  The
    channel series and current price come from recent M15 candles (the
    still-forming last candle's close is the current price).

    Each granularity is fetched independently: a failed period fetch leaves
    that period absent, and a failed M15 fetch leaves the price as NaN, so
    the aggregator reports the gap instead of the whole batch failing.

    With *cache_ttl_seconds* > 0 the last good M15 series per instrument is
    kept; when a later M15 fetch fails within the TTL the cached price and
    closes are used instead, and the snapshot carries their age in
    ``price_age_seconds``.
    """

    def __init__(
        self,
        client: OandaClient,
        channel_window: int = 20,
        series_granularity: str = "M15",
        cache_ttl_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._channel_window = channel_window
        self._series_granularity = series_granularity
        self._cache_ttl = cache_ttl_seconds
        self._clock = clock
        self._last_good: dict[str, tuple[float, tuple[float, ...]]] = {}

    async def _period_sample(
        self, symbol: str, period: Period
    ) -> Optional[OhlcSample]:
        try:
            candles = await self._client.fetch_candles(
                symbol, PERIOD_GRANULARITY[period], count=3
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s candles unavailable: %s", symbol, period.value, exc)
            return None
        return last_complete_sample(candles)

    async def _series(self, symbol: str) -> Optional[list[Candle]]:
        try:
            return await self._client.fetch_candles(
                symbol, self._series_granularity, count=self._channel_window + 1
            )
        except httpx.HTTPError as exc:
            logger.warning("%s price series unavailable: %s", symbol, exc)
            return None

    def _cached_closes(self, symbol: str) -> Optional[tuple[float, tuple[float, ...]]]:
        """(age, closes) of the last good series if still within the TTL."""
        entry = self._last_good.get(symbol)
        if entry is None:
            return None
        fetched_at, closes = entry
        age = self._clock() - fetched_at
        if age >= self._cache_ttl:
            del self._last_good[symbol]
            return None
        return age, closes

    async def fetch_snapshot(self, instrument: Instrument) -> MarketSnapshot:
        symbol = instrument.symbol
        series, *samples = await asyncio.gather(
            self._series(symbol),
            *(self._period_sample(symbol, p) for p in Period),
        )
        closes = tuple(c.close for c in series or ())
        age = None
        if series is not None and closes:
            if self._cache_ttl > 0:
                self._last_good[symbol] = (self._clock(), closes)
        elif self._cache_ttl > 0:
            cached = self._cached_closes(symbol)
            if cached is not None:
                age, closes = cached
                logger.warning("%s: using cached price from %.0fs ago", symbol, age)
        price = closes[-1] if closes else math.nan
        return MarketSnapshot(
            symbol=symbol,
            price=price,
            samples=dict(zip(Period, samples)),
            closes=closes,
            price_age_seconds=age,
        )

    async def fetch_snapshots(
        self, instruments: list[Instrument]
    ) -> list[MarketSnapshot]:
        return list(
            await asyncio.gather(*(self.fetch_snapshot(i) for i in instruments))
        )
