"""Read-only API routers — /instruments and /heatmap endpoints.

No computation here: endpoints serialise whatever pass the refresher has
most recently published.
"""

import math
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from fxlevels.heatmap import RANK_KEYS, rank_heatmap
from fxlevels.risk.zones import format_trade_zone
from fxlevels.strategy.instruments import INSTRUMENTS, get_instrument
from fxlevels.strategy.models import InstrumentAnalysis, Period

router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_refresher = None  # Set via configure_routers()


def configure_routers(refresher=None) -> None:
    """Inject the ``HeatMapRefresher`` (or a duck-type for tests)."""
    global _refresher  # noqa: PLW0603
    _refresher = refresher


def _round(value: Optional[float], digits: int) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return round(value, digits)


def serialize_analysis(record: InstrumentAnalysis) -> dict:
    """Convert one heat-map record into a JSON-ready dict."""
    try:
        instrument = get_instrument(record.symbol)
        digits = instrument.spec.price_precision
    except KeyError:
        instrument, digits = None, 5

    pivots = {}
    for period in Period:
        ps = record.pivots.get(period)
        pivots[period.value] = (
            {k: round(v, digits) for k, v in vars(ps).items()} if ps else None
        )

    channel = None
    if record.channel is not None:
        channel = {
            "direction": record.channel.direction.value,
            "upper_band": round(record.channel.upper_band, digits),
            "middle_line": round(record.channel.middle_line, digits),
            "lower_band": round(record.channel.lower_band, digits),
        }

    closest = None
    if record.closest_level is not None:
        closest = {
            "label": record.closest_level.label,
            "level": round(record.closest_level.level, digits),
            "distance": round(record.closest_level.distance, digits),
        }

    trade_zone = None
    if record.trade_zone is not None and instrument is not None:
        zone = record.trade_zone
        trade_zone = {
            "entry_low": zone.entry_low,
            "entry_high": zone.entry_high,
            "target_low": zone.target_low,
            "target_high": zone.target_high,
            "stop_level": zone.stop_level,
            "stop_side": zone.stop_side,
            "key_levels": [{"kind": k.kind, "price": k.price} for k in zone.key_levels],
            "display": format_trade_zone(zone, instrument),
        }

    return {
        "symbol": record.symbol,
        "display_name": record.display_name,
        "price": _round(record.price, digits),
        "formatted_price": record.formatted_price,
        "change_percent": _round(record.change_percent, 4),
        "signal": record.signal.value,
        "signal_strength": round(record.signal_strength, 4),
        "pivot_strength": round(record.pivot_strength, 2),
        "risk_reward": (
            _round(record.risk_reward.ratio, 4) if record.risk_reward else None
        ),
        "pivots": pivots,
        "channel": channel,
        "closest_level": closest,
        "trade_zone": trade_zone,
        "issues": [
            {
                "kind": i.kind.value,
                "period": i.period.value if i.period else None,
                "detail": i.detail,
            }
            for i in record.issues
        ],
        "ok": record.ok,
        "confident": record.confident,
    }


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/instruments")
async def get_instruments():
    """Return the instrument registry."""
    return {
        "instruments": [
            {
                "symbol": i.symbol,
                "display_name": i.label,
                "category": i.category.value,
                "pip": i.pip,
                "decimals": i.decimals,
            }
            for i in INSTRUMENTS.values()
        ]
    }


@router.get("/heatmap")
async def get_heatmap(rank_by: Optional[str] = Query(default=None)):
    """Return the latest published heat map, optionally ranked."""
    if rank_by is not None and rank_by not in RANK_KEYS:
        raise HTTPException(
            status_code=422,
            detail=f"rank_by must be one of {', '.join(RANK_KEYS)}",
        )
    latest = _refresher.latest if _refresher is not None else None
    if latest is None:
        return {"pass_id": None, "computed_at": None, "records": []}
    records = rank_heatmap(latest.records, rank_by)
    return {
        "pass_id": latest.pass_id,
        "computed_at": latest.computed_at.isoformat(),
        "records": [serialize_analysis(r) for r in records],
    }


@router.get("/heatmap/{symbol}")
async def get_heatmap_entry(symbol: str):
    """Return one instrument's record from the latest published heat map."""
    try:
        key = get_instrument(symbol).symbol
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown instrument: {symbol}")
    latest = _refresher.latest if _refresher is not None else None
    if latest is not None:
        for record in latest.records:
            if record.symbol == key:
                return serialize_analysis(record)
    raise HTTPException(status_code=404, detail=f"No analysis yet for {key}")
