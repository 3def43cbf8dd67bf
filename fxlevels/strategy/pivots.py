"""Classic floor-trader pivot levels — pure functions, no I/O."""

import math
from typing import Optional

from fxlevels.strategy.models import Issue, IssueKind, OhlcSample, Period, PivotSet


# Enumeration order used wherever levels are listed or compared.
CORE_LEVELS = ("pivot", "r1", "s1")
EXTENDED_LEVELS = ("r2", "s2", "r3", "s3")


def validate_sample(
    sample: OhlcSample, period: Optional[Period] = None
) -> Optional[Issue]:
    """Check an OHLC sample before pivots are derived from it.

    Returns an ``INVALID_SAMPLE`` issue for non-finite values, ``low > high``
    or a close outside the range; a ``DEGENERATE_RANGE`` issue for a flat
    candle (``high == low``); ``None`` for a normal sample.
    """
    values = (sample.high, sample.low, sample.close)
    if not all(math.isfinite(v) for v in values):
        return Issue(IssueKind.INVALID_SAMPLE, period, f"non-finite value in {values}")
    if sample.low > sample.high:
        return Issue(
            IssueKind.INVALID_SAMPLE, period,
            f"low {sample.low} above high {sample.high}",
        )
    if not sample.low <= sample.close <= sample.high:
        return Issue(
            IssueKind.INVALID_SAMPLE, period,
            f"close {sample.close} outside [{sample.low}, {sample.high}]",
        )
    if sample.high == sample.low:
        return Issue(IssueKind.DEGENERATE_RANGE, period, f"flat candle at {sample.high}")
    return None


def calculate_pivots(sample: OhlcSample) -> PivotSet:
    """Derive pivot, R1–R3 and S1–S3 from one high/low/close.

    Formulas::

        pivot = (high + low + close) / 3
        r1 = 2 × pivot − low          s1 = 2 × pivot − high
        r2 = pivot + (high − low)     s2 = pivot − (high − low)
        r3 = high + 2 × (pivot − low) s3 = low − 2 × (high − pivot)

    A flat candle collapses every level onto the pivot.
    """
    high, low, close = sample.high, sample.low, sample.close
    pivot = (high + low + close) / 3
    span = high - low
    return PivotSet(
        pivot=pivot,
        r1=2 * pivot - low,
        r2=pivot + span,
        r3=high + 2 * (pivot - low),
        s1=2 * pivot - high,
        s2=pivot - span,
        s3=low - 2 * (high - pivot),
    )


def pivot_levels(
    pivots: PivotSet, include_extended: bool = False
) -> list[tuple[str, float]]:
    """Return ``(kind, price)`` pairs in enumeration order.

    Order: pivot, r1, s1, then r2, s2, r3, s3 when *include_extended*.
    """
    kinds = CORE_LEVELS + EXTENDED_LEVELS if include_extended else CORE_LEVELS
    return [(kind, getattr(pivots, kind)) for kind in kinds]
