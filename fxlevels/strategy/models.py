"""Engine data models — immutable value types shared by every level/signal module."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Period(str, Enum):
    """OHLC sample period.  Declaration order is the enumeration order."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class ChannelDirection(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    SIDEWAYS = "sideways"


class Signal(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    NEUTRAL = "NEUTRAL"

    @property
    def is_directional(self) -> bool:
        return self is not Signal.NEUTRAL


class IssueKind(str, Enum):
    """Expected data problems, reported on results instead of raised."""

    INVALID_SAMPLE = "invalid_sample"
    INVALID_PRICE = "invalid_price"
    DEGENERATE_RANGE = "degenerate_range"
    UNDEFINED_RATIO = "undefined_ratio"
    MISSING_PERIOD_DATA = "missing_period_data"
    INTERNAL_ERROR = "internal_error"
    STALE_PRICE = "stale_price"


@dataclass(frozen=True)
class Issue:
    """A single data problem found while analysing one instrument."""

    kind: IssueKind
    period: Optional[Period] = None
    detail: str = ""


@dataclass(frozen=True)
class OhlcSample:
    """High/low/close of one completed period (day, week or month)."""

    high: float
    low: float
    close: float


@dataclass(frozen=True)
class PivotSet:
    """Classic floor-trader pivot levels derived from one ``OhlcSample``."""

    pivot: float
    r1: float
    r2: float
    r3: float
    s1: float
    s2: float
    s3: float


@dataclass(frozen=True)
class Channel:
    """Standard-deviation channel with a directional bias."""

    direction: ChannelDirection
    upper_band: float
    lower_band: float
    middle_line: float

    @property
    def width(self) -> float:
        return self.upper_band - self.lower_band


@dataclass(frozen=True)
class ClosestLevel:
    """The pivot level (any period, any kind) nearest to the current price."""

    level: float
    label: str  # e.g. "Daily Pivot", "Weekly R1"
    distance: float


@dataclass(frozen=True)
class RiskReward:
    """Reward-to-risk ratio.  ``ratio is None`` means no ratio is available."""

    ratio: Optional[float]

    @property
    def defined(self) -> bool:
        return self.ratio is not None


@dataclass(frozen=True)
class KeyLevel:
    kind: str  # "support", "resistance" or "pivot"
    price: float


@dataclass(frozen=True)
class TradeZone:
    """Entry/target/stop zones for a signal, in instrument-native price units.

    For a neutral signal the entry and stop fields are ``None`` and the
    target collapses to the current price (range-bound).
    """

    signal: Signal
    entry_low: Optional[float]
    entry_high: Optional[float]
    target_low: float
    target_high: float
    stop_level: Optional[float]
    stop_side: Optional[str]  # "below" (buy) or "above" (sell)
    key_levels: tuple[KeyLevel, ...] = ()


# ── Signal thresholds ────────────────────────────────────────────────────
# Heuristic values with no derivation behind them; overridable, not tuned.


@dataclass(frozen=True)
class SignalThresholds:
    """Named thresholds used by channel and signal classification."""

    bullish_position: float = 0.7
    bearish_position: float = 0.3
    momentum_trigger: float = 0.2
    sideways_momentum: float = 0.1
    min_signal_strength: float = 1.5
    band_width: float = 2.0  # channel half-width in standard deviations


DEFAULT_THRESHOLDS = SignalThresholds()


# ── Heat-map input / output records ──────────────────────────────────────


@dataclass(frozen=True)
class MarketSnapshot:
    """Everything a price provider supplies for one instrument and one pass.

    A period missing from *samples* (or mapped to ``None``) is treated as
    absent data, never as zero.
    """

    symbol: str
    price: float
    samples: dict = field(default_factory=dict)  # Period -> OhlcSample | None
    closes: tuple[float, ...] = ()
    change_percent: Optional[float] = None
    price_age_seconds: Optional[float] = None  # set when price is a cached value

    def sample(self, period: Period) -> Optional[OhlcSample]:
        return self.samples.get(period)


@dataclass(frozen=True)
class InstrumentAnalysis:
    """One heat-map record: every derived value for one instrument."""

    symbol: str
    display_name: str
    price: float
    formatted_price: str
    change_percent: Optional[float]
    pivots: dict  # Period -> PivotSet | None
    channel: Optional[Channel]
    closest_level: Optional[ClosestLevel]
    signal: Signal
    signal_strength: float
    pivot_strength: float
    risk_reward: Optional[RiskReward]
    trade_zone: Optional[TradeZone]
    issues: tuple[Issue, ...] = ()
    ok: bool = True

    def has_issue(self, kind: IssueKind) -> bool:
        return any(i.kind is kind for i in self.issues)

    @property
    def confident(self) -> bool:
        """True when the record rests on complete, non-degenerate data."""
        weak = (
            IssueKind.DEGENERATE_RANGE,
            IssueKind.MISSING_PERIOD_DATA,
            IssueKind.INVALID_SAMPLE,
            IssueKind.STALE_PRICE,
        )
        return self.ok and not any(i.kind in weak for i in self.issues)
