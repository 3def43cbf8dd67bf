"""Nearest pivot level to the current price, across all periods."""

from collections.abc import Mapping
from typing import Optional

from fxlevels.strategy.models import ClosestLevel, Period, PivotSet
from fxlevels.strategy.pivots import pivot_levels


def _label(period: Period, kind: str) -> str:
    return f"{period.label} {'Pivot' if kind == 'pivot' else kind.upper()}"


def find_closest_level(
    price: float,
    pivots_by_period: Mapping[Period, Optional[PivotSet]],
    include_extended: bool = False,
) -> Optional[ClosestLevel]:
    """Return the pivot level nearest to *price*.

    Levels are enumerated period-ascending (daily, weekly, monthly) and,
    within a period, pivot, R1, S1 (then R2, S2, R3, S3 when
    *include_extended*).  Ties go to the first level enumerated.

    Periods that are absent or mapped to ``None`` are skipped.  Returns
    ``None`` when no period has pivots.
    """
    best: Optional[ClosestLevel] = None
    for period in Period:
        pivots = pivots_by_period.get(period)
        if pivots is None:
            continue
        for kind, level in pivot_levels(pivots, include_extended):
            distance = abs(price - level)
            if best is None or distance < best.distance:
                best = ClosestLevel(
                    level=level, label=_label(period, kind), distance=distance
                )
    return best
