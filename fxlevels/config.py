"""fxlevels — application configuration.

Loads .env variables into a typed config object.
Validates variables on startup; OANDA credentials are required only when
the OANDA price feed is selected.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from fxlevels.strategy.instruments import INSTRUMENTS, get_instrument
from fxlevels.strategy.models import SignalThresholds


DATA_SOURCES = ("demo", "oanda")

_OANDA_REQUIRED_VARS = [
    "OANDA_ACCOUNT_ID",
    "OANDA_API_TOKEN",
    "OANDA_ENVIRONMENT",
]

# env var → SignalThresholds field
_THRESHOLD_VARS = {
    "SIGNAL_BULLISH_POSITION": "bullish_position",
    "SIGNAL_BEARISH_POSITION": "bearish_position",
    "SIGNAL_MOMENTUM_TRIGGER": "momentum_trigger",
    "SIGNAL_SIDEWAYS_MOMENTUM": "sideways_momentum",
    "SIGNAL_MIN_STRENGTH": "min_signal_strength",
    "CHANNEL_BAND_WIDTH": "band_width",
}


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    data_source: str  # "demo" or "oanda"
    universe: tuple[str, ...]
    refresh_interval_seconds: float
    demo_seed: int
    channel_window: int
    log_level: str
    api_port: int
    oanda_account_id: str = ""
    oanda_api_token: str = ""
    oanda_environment: str = "practice"  # "practice" or "live"
    price_cache_ttl_seconds: float = 60.0  # 0 disables the OANDA price cache
    thresholds: SignalThresholds = field(default_factory=SignalThresholds)

    @property
    def oanda_base_url(self) -> str:
        """Return the OANDA v20 API base URL based on environment."""
        if self.oanda_environment == "live":
            return "https://api-fxtrade.oanda.com"
        return "https://api-fxpractice.oanda.com"


def _number(name: str, default: str, cast=float):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a valid {cast.__name__}, got '{raw}'") from None


def _load_universe() -> tuple[str, ...]:
    raw = os.environ.get("UNIVERSE", "").strip()
    if not raw:
        return tuple(INSTRUMENTS.keys())
    symbols = []
    for part in raw.split(","):
        if not part.strip():
            continue
        try:
            symbols.append(get_instrument(part).symbol)
        except KeyError as exc:
            raise ValueError(f"UNIVERSE contains an unknown symbol: {exc.args[0]}") from None
    return tuple(symbols)


def _load_thresholds() -> SignalThresholds:
    overrides = {
        attr: _number(var, "")
        for var, attr in _THRESHOLD_VARS.items()
        if os.environ.get(var)
    }
    return SignalThresholds(**overrides)


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the offending variable when
    a required variable is absent or a value is malformed.
    """
    load_dotenv(dotenv_path=env_path)

    data_source = os.environ.get("DATA_SOURCE", "demo").lower()
    if data_source not in DATA_SOURCES:
        raise ValueError(
            f"DATA_SOURCE must be one of {', '.join(DATA_SOURCES)}, got '{data_source}'"
        )

    if data_source == "oanda":
        missing = [v for v in _OANDA_REQUIRED_VARS if not os.environ.get(v)]
        if missing:
            raise ValueError(
                f"Missing required environment variable(s): {', '.join(missing)}"
            )

    channel_window = _number("CHANNEL_WINDOW", "20", int)
    if channel_window < 2:
        raise ValueError(f"CHANNEL_WINDOW must be at least 2, got {channel_window}")

    cache_ttl = _number("PRICE_CACHE_TTL_SECONDS", "60")
    if cache_ttl < 0:
        raise ValueError(f"PRICE_CACHE_TTL_SECONDS must not be negative, got {cache_ttl}")

    return Config(
        data_source=data_source,
        universe=_load_universe(),
        refresh_interval_seconds=_number("REFRESH_INTERVAL_SECONDS", "5"),
        demo_seed=_number("DEMO_SEED", "42", int),
        channel_window=channel_window,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_number("API_PORT", "8080", int),
        oanda_account_id=os.environ.get("OANDA_ACCOUNT_ID", ""),
        oanda_api_token=os.environ.get("OANDA_API_TOKEN", ""),
        oanda_environment=os.environ.get("OANDA_ENVIRONMENT", "practice"),
        price_cache_ttl_seconds=cache_ttl,
        thresholds=_load_thresholds(),
    )
