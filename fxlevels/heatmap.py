"""fxlevels — heat-map aggregation across an instrument universe.

Runs pivots → channel → proximity → signal → risk/reward → zones for each
instrument and assembles one ``InstrumentAnalysis`` record per instrument.
Every instrument is analysed independently; a problem with one instrument
is reported on its own record and never aborts the batch.
"""

import asyncio
import logging
import math
from collections.abc import Iterable, Sequence
from typing import Optional

from fxlevels.risk.risk_reward import calculate_risk_reward
from fxlevels.risk.zones import calculate_trade_zone
from fxlevels.strategy.channel import (
    channel_inputs,
    classify_channel,
    range_channel_inputs,
)
from fxlevels.strategy.instruments import (
    Instrument,
    InstrumentCategory,
    format_price,
    get_instrument,
)
from fxlevels.strategy.models import (
    DEFAULT_THRESHOLDS,
    InstrumentAnalysis,
    Issue,
    IssueKind,
    MarketSnapshot,
    Period,
    PivotSet,
    Signal,
    SignalThresholds,
)
from fxlevels.strategy.pivots import calculate_pivots, validate_sample
from fxlevels.strategy.proximity import find_closest_level
from fxlevels.strategy.signals import classify_signal, signal_strength

logger = logging.getLogger("fxlevels.heatmap")

RANK_KEYS = ("change_percent", "strength")


def pivot_strength(price: float, pivot: float) -> float:
    """Distance from the pivot in basis points of the pivot, capped at 100."""
    if pivot == 0:
        return 0.0
    return min(100.0, abs(price - pivot) / abs(pivot) * 10_000)


def _failed_record(
    instrument: Instrument,
    snapshot: MarketSnapshot,
    issues: list[Issue],
) -> InstrumentAnalysis:
    price = snapshot.price
    return InstrumentAnalysis(
        symbol=instrument.symbol,
        display_name=instrument.label,
        price=price,
        formatted_price=format_price(instrument, price) if math.isfinite(price) else "N/A",
        change_percent=snapshot.change_percent,
        pivots={p: None for p in Period},
        channel=None,
        closest_level=None,
        signal=Signal.NEUTRAL,
        signal_strength=0.0,
        pivot_strength=0.0,
        risk_reward=None,
        trade_zone=None,
        issues=tuple(issues),
        ok=False,
    )


def analyze_instrument(
    snapshot: MarketSnapshot,
    thresholds: SignalThresholds = DEFAULT_THRESHOLDS,
    channel_window: int = 20,
) -> InstrumentAnalysis:
    """Analyse one instrument snapshot.

    Missing or invalid period samples are reported as issues and excluded
    from proximity; a missing daily sample leaves the signal neutral with
    no risk/reward or trade zone.

    Raises ``KeyError`` if the snapshot's symbol is not registered.
    """
    instrument = get_instrument(snapshot.symbol)
    price = snapshot.price
    issues: list[Issue] = []

    if not math.isfinite(price) or price < 0:
        issues.append(Issue(IssueKind.INVALID_PRICE, None, f"price {price}"))
        return _failed_record(instrument, snapshot, issues)
    if snapshot.price_age_seconds is not None:
        issues.append(
            Issue(IssueKind.STALE_PRICE, None, f"price {snapshot.price_age_seconds:.0f}s old")
        )

    # ── Pivots per period ──
    pivots: dict[Period, Optional[PivotSet]] = {}
    for period in Period:
        sample = snapshot.sample(period)
        if sample is None:
            issues.append(Issue(IssueKind.MISSING_PERIOD_DATA, period, "no sample"))
            pivots[period] = None
            continue
        issue = validate_sample(sample, period)
        if issue is not None:
            issues.append(issue)
            if issue.kind is IssueKind.INVALID_SAMPLE:
                pivots[period] = None
                continue
        pivots[period] = calculate_pivots(sample)

    closest = find_closest_level(price, pivots)
    daily_sample = snapshot.sample(Period.DAILY)
    daily = pivots[Period.DAILY]

    # ── Channel ──
    channel = None
    momentum = 0.0
    recent = snapshot.closes[-channel_window:]
    if len(recent) == channel_window and all(math.isfinite(c) for c in recent):
        middle, std_dev, momentum = channel_inputs(
            snapshot.closes, window=channel_window, band_width=thresholds.band_width
        )
        channel = classify_channel(middle, std_dev, price, momentum, thresholds)
    elif daily is not None:
        middle, std_dev, momentum = range_channel_inputs(
            daily_sample.high, daily_sample.low, daily.pivot, price
        )
        channel = classify_channel(middle, std_dev, price, momentum, thresholds)

    change_percent = snapshot.change_percent
    if change_percent is not None and not math.isfinite(change_percent):
        logger.debug("%s: ignoring change_percent %s", instrument.symbol, change_percent)
        change_percent = None
    if change_percent is None and daily is not None and daily_sample.close != 0:
        change_percent = (price - daily_sample.close) / daily_sample.close * 100

    strength = signal_strength(change_percent or 0.0, momentum)

    if daily is None or channel is None:
        logger.debug("%s: no usable daily sample, signal left neutral", instrument.symbol)
        return InstrumentAnalysis(
            symbol=instrument.symbol,
            display_name=instrument.label,
            price=price,
            formatted_price=format_price(instrument, price),
            change_percent=change_percent,
            pivots=pivots,
            channel=channel,
            closest_level=closest,
            signal=Signal.NEUTRAL,
            signal_strength=strength,
            pivot_strength=0.0,
            risk_reward=None,
            trade_zone=None,
            issues=tuple(issues),
            ok=False,
        )

    # ── Signal, risk/reward, zones ──
    signal = classify_signal(channel.direction, price, daily.pivot, strength, thresholds)
    risk_reward = calculate_risk_reward(signal, price, daily.r1, daily.s1)
    if not risk_reward.defined:
        issues.append(
            Issue(IssueKind.UNDEFINED_RATIO, Period.DAILY, "zero risk distance")
        )
    trade_zone = (
        calculate_trade_zone(price, instrument.category, signal)
        if signal.is_directional
        else None
    )

    if issues:
        logger.debug(
            "%s: %s", instrument.symbol, ", ".join(i.kind.value for i in issues)
        )

    return InstrumentAnalysis(
        symbol=instrument.symbol,
        display_name=instrument.label,
        price=price,
        formatted_price=format_price(instrument, price),
        change_percent=change_percent,
        pivots=pivots,
        channel=channel,
        closest_level=closest,
        signal=signal,
        signal_strength=strength,
        pivot_strength=pivot_strength(price, daily.pivot),
        risk_reward=risk_reward,
        trade_zone=trade_zone,
        issues=tuple(issues),
        ok=True,
    )


def _safe_analyze(
    snapshot: MarketSnapshot,
    thresholds: SignalThresholds,
    channel_window: int,
) -> InstrumentAnalysis:
    """Run ``analyze_instrument`` and turn any crash into a failed record."""
    try:
        return analyze_instrument(snapshot, thresholds, channel_window)
    except Exception as exc:
        logger.error("Analysis of '%s' failed: %s", snapshot.symbol, exc)
        try:
            instrument = get_instrument(snapshot.symbol)
        except KeyError:
            instrument = Instrument(snapshot.symbol, InstrumentCategory.STANDARD_PAIR)
        return _failed_record(
            instrument,
            snapshot,
            [Issue(IssueKind.INTERNAL_ERROR, None, str(exc))],
        )


def rank_heatmap(
    records: Sequence[InstrumentAnalysis],
    rank_by: Optional[str] = None,
) -> list[InstrumentAnalysis]:
    """Order records for display.

    ``None`` keeps input order; ``"change_percent"`` sorts by
    ``|change_percent|`` descending; ``"strength"`` by signal strength
    descending.  Ties keep input order.
    """
    if rank_by is None:
        return list(records)
    if rank_by == "change_percent":
        return sorted(records, key=lambda r: -abs(r.change_percent or 0.0))
    if rank_by == "strength":
        return sorted(records, key=lambda r: -r.signal_strength)
    raise ValueError(
        f"rank_by must be one of {', '.join(RANK_KEYS)} or None, got '{rank_by}'"
    )


def build_heatmap(
    snapshots: Iterable[MarketSnapshot],
    thresholds: SignalThresholds = DEFAULT_THRESHOLDS,
    rank_by: Optional[str] = None,
    channel_window: int = 20,
) -> list[InstrumentAnalysis]:
    """Analyse every snapshot sequentially and return one record each."""
    records = [_safe_analyze(s, thresholds, channel_window) for s in snapshots]
    return rank_heatmap(records, rank_by)


async def build_heatmap_concurrent(
    snapshots: Iterable[MarketSnapshot],
    thresholds: SignalThresholds = DEFAULT_THRESHOLDS,
    rank_by: Optional[str] = None,
    channel_window: int = 20,
) -> list[InstrumentAnalysis]:
    """Fan per-instrument analysis out to worker threads and gather.

    Produces the same records, in the same order, as ``build_heatmap``.
    """
    tasks = [
        asyncio.to_thread(_safe_analyze, s, thresholds, channel_window)
        for s in snapshots
    ]
    records = await asyncio.gather(*tasks)
    return rank_heatmap(records, rank_by)
