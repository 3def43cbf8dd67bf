"""Read-only OANDA v20 candle client.

Only the instrument candles endpoint is used: period samples and the
intraday close series for the heat map both come from it.
"""

import asyncio
import logging
from typing import Optional

import httpx

from fxlevels.broker.models import Candle
from fxlevels.config import Config

logger = logging.getLogger("fxlevels.broker")

_ATTEMPTS = 3
_BACKOFF_SECONDS = 2.0  # first retry delay, doubled per attempt
_TRANSIENT_STATUS = frozenset({429, 502, 503, 504})

# candle price component → key of the OHLC block in the response
PRICE_COMPONENTS = {"M": "mid", "B": "bid", "A": "ask"}


def parse_candle(raw: dict, component: str = "M") -> Candle:
    """Build a ``Candle`` from one element of a v20 ``candles`` array."""
    ohlc = raw[PRICE_COMPONENTS[component]]
    return Candle(
        time=raw["time"],
        open=float(ohlc["o"]),
        high=float(ohlc["h"]),
        low=float(ohlc["l"]),
        close=float(ohlc["c"]),
        volume=int(raw.get("volume", 0)),
        complete=bool(raw.get("complete", False)),
    )


class OandaClient:
    """Async client for ``GET /v3/instruments/{instrument}/candles``."""

    def __init__(self, config: Config, retry_base_delay: float = _BACKOFF_SECONDS) -> None:
        self._base_url = config.oanda_base_url
        self._retry_base_delay = retry_base_delay
        self._headers = {
            "Authorization": f"Bearer {config.oanda_api_token}",
            "Accept-Datetime-Format": "RFC3339",
        }

    def _backoff(self, attempt: int, resp: Optional[httpx.Response] = None) -> float:
        """Delay before the next attempt; a numeric Retry-After wins."""
        if resp is not None:
            retry_after = resp.headers.get("Retry-After", "")
            if retry_after.isdigit():
                return float(retry_after)
        return self._retry_base_delay * (2 ** attempt)

    async def _get(self, url: str, params: dict) -> httpx.Response:
        """GET *url*, retrying transport failures and transient statuses.

        Any other non-2xx response raises ``httpx.HTTPStatusError`` straight
        away.  After the last attempt the most recent failure is raised.
        """
        failure: Optional[Exception] = None

        for attempt in range(_ATTEMPTS):
            resp: Optional[httpx.Response] = None
            try:
                async with httpx.AsyncClient() as client:
                    resp = await client.get(
                        url, headers=self._headers, params=params, timeout=30.0,
                    )
            except httpx.TransportError as exc:
                failure = exc
            else:
                if resp.status_code not in _TRANSIENT_STATUS:
                    resp.raise_for_status()
                    return resp
                failure = httpx.HTTPStatusError(
                    f"Transient status {resp.status_code} from {url}",
                    request=resp.request,
                    response=resp,
                )

            if attempt == _ATTEMPTS - 1:
                logger.warning(
                    "Candles %s: %s, giving up after %d attempts",
                    params.get("granularity"), failure, _ATTEMPTS,
                )
                break
            delay = self._backoff(attempt, resp)
            logger.warning(
                "Candles %s: %s, attempt %d/%d, next in %.1fs",
                params.get("granularity"), failure, attempt + 1, _ATTEMPTS, delay,
            )
            await asyncio.sleep(delay)

        raise failure  # type: ignore[misc]

    async def fetch_candles(
        self,
        instrument: str,
        granularity: str,
        count: int = 50,
        price: str = "M",
    ) -> list[Candle]:
        """Fetch the most recent *count* candles, oldest first.

        Args:
            instrument: OANDA name, e.g. ``"EUR_USD"``
            granularity: ``"M15"``, ``"D"``, ``"W"``, ``"M"``, ...
            count: number of candles (the API caps this at 5000)
            price: ``"M"`` (mid), ``"B"`` (bid) or ``"A"`` (ask)

        The last candle may still be forming (``complete`` is ``False``).
        """
        if price not in PRICE_COMPONENTS:
            raise ValueError(f"price must be one of M, B, A, got '{price}'")
        resp = await self._get(
            f"{self._base_url}/v3/instruments/{instrument}/candles",
            {"granularity": granularity, "count": count, "price": price},
        )
        return [parse_candle(raw, price) for raw in resp.json().get("candles", [])]
