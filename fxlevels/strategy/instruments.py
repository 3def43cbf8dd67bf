"""Instrument registry — category pip conventions and the heat-map universe.

Per-category behaviour (pip size, display precision, zone distances) lives
in one table keyed by ``InstrumentCategory``; nothing downstream matches on
symbol names.
"""

from dataclasses import dataclass
from enum import Enum


class InstrumentCategory(str, Enum):
    STANDARD_PAIR = "standard_pair"
    JPY_CROSS = "jpy_cross"
    METAL_OR_COMMODITY = "metal_or_commodity"
    MXN_PAIR = "mxn_pair"


@dataclass(frozen=True)
class CategorySpec:
    """Pip convention and fixed zone distances (in pips) for a category."""

    pip: float
    decimals: int
    entry_pips: float
    target_pips: float
    stop_pips: float

    @property
    def price_precision(self) -> int:
        """Rounding precision for derived prices (one digit past display)."""
        return self.decimals + 1


CATEGORY_SPECS: dict[InstrumentCategory, CategorySpec] = {
    InstrumentCategory.STANDARD_PAIR: CategorySpec(
        pip=0.0001, decimals=4, entry_pips=30, target_pips=150, stop_pips=80,
    ),
    InstrumentCategory.JPY_CROSS: CategorySpec(
        pip=0.01, decimals=2, entry_pips=30, target_pips=150, stop_pips=80,
    ),
    InstrumentCategory.METAL_OR_COMMODITY: CategorySpec(
        pip=0.01, decimals=2, entry_pips=30, target_pips=150, stop_pips=80,
    ),
    InstrumentCategory.MXN_PAIR: CategorySpec(
        pip=0.01, decimals=2, entry_pips=20, target_pips=100, stop_pips=50,
    ),
}

_missing = set(InstrumentCategory) - set(CATEGORY_SPECS)
if _missing:  # pragma: no cover
    raise RuntimeError(f"No CategorySpec for: {sorted(c.value for c in _missing)}")


def category_spec(category: InstrumentCategory) -> CategorySpec:
    return CATEGORY_SPECS[category]


@dataclass(frozen=True)
class Instrument:
    """Immutable reference data for one tradable symbol."""

    symbol: str  # OANDA instrument name, e.g. "EUR_USD"
    category: InstrumentCategory
    display_name: str = ""

    @property
    def spec(self) -> CategorySpec:
        return CATEGORY_SPECS[self.category]

    @property
    def pip(self) -> float:
        return self.spec.pip

    @property
    def decimals(self) -> int:
        return self.spec.decimals

    @property
    def label(self) -> str:
        return self.display_name or self.symbol.replace("_", "")


def format_price(instrument: Instrument, price: float) -> str:
    """Format *price* at the instrument's display precision."""
    return f"{price:.{instrument.decimals}f}"


# ── Heat-map universe ────────────────────────────────────────────────────

_STD = InstrumentCategory.STANDARD_PAIR
_JPY = InstrumentCategory.JPY_CROSS
_CMD = InstrumentCategory.METAL_OR_COMMODITY
_MXN = InstrumentCategory.MXN_PAIR

INSTRUMENTS: dict[str, Instrument] = {
    i.symbol: i
    for i in (
        Instrument("EUR_USD", _STD),
        Instrument("GBP_USD", _STD),
        Instrument("USD_JPY", _JPY),
        Instrument("USD_CHF", _STD),
        Instrument("AUD_USD", _STD),
        Instrument("USD_CAD", _STD),
        Instrument("EUR_GBP", _STD),
        Instrument("EUR_JPY", _JPY),
        Instrument("GBP_JPY", _JPY),
        Instrument("AUD_JPY", _JPY),
        Instrument("NZD_USD", _STD),
        Instrument("EUR_AUD", _STD),
        Instrument("GBP_CHF", _STD),
        Instrument("USD_SGD", _STD),
        Instrument("EUR_CHF", _STD),
        Instrument("CAD_JPY", _JPY),
        Instrument("NZD_JPY", _JPY),
        Instrument("AUD_CAD", _STD),
        Instrument("GBP_AUD", _STD),
        Instrument("EUR_CAD", _STD),
        Instrument("CHF_JPY", _JPY),
        Instrument("AUD_CHF", _STD),
        Instrument("GBP_CAD", _STD),
        Instrument("EUR_NZD", _STD),
        Instrument("XAU_USD", _CMD, "GOLD"),
        Instrument("WTICO_USD", _CMD, "OIL"),
        Instrument("USD_MXN", _MXN),
    )
}


def get_instrument(symbol: str) -> Instrument:
    """Look up an instrument by symbol.

    Accepts ``"EUR_USD"``, ``"EUR/USD"`` or ``"EURUSD"`` spellings.
    Raises ``KeyError`` if the symbol is not registered.
    """
    key = symbol.strip().upper().replace("/", "_")
    if key in INSTRUMENTS:
        return INSTRUMENTS[key]
    for instrument in INSTRUMENTS.values():
        if instrument.symbol.replace("_", "") == key:
            return instrument
    raise KeyError(
        f"Unknown instrument '{symbol}'. "
        f"Available: {', '.join(INSTRUMENTS.keys())}"
    )


def default_universe() -> list[Instrument]:
    """The full registry, in heat-map display order."""
    return list(INSTRUMENTS.values())
