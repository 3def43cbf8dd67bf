"""Risk/reward ratio from daily R1/S1 — pure math, no I/O."""

from fxlevels.strategy.models import RiskReward, Signal


UNDEFINED_RATIO = RiskReward(ratio=None)
NEUTRAL_RATIO = RiskReward(ratio=1.0)


def calculate_risk_reward(
    signal: Signal,
    price: float,
    r1: float,
    s1: float,
) -> RiskReward:
    """Reward distance divided by risk distance for *signal*.

    - **Buy**:  ``(r1 − price) / (price − s1)``
    - **Sell**: ``(price − s1) / (r1 − price)``
    - **Neutral**: ``1`` (no directional risk assumed)

    A risk distance of zero or less (price on or through the stop-side
    level) yields ``UNDEFINED_RATIO`` rather than ``inf``/``nan``.  A
    negative reward distance (price already past the target level) is
    floored at 0.
    """
    if signal == Signal.NEUTRAL:
        return NEUTRAL_RATIO
    if signal == Signal.BUY:
        reward, risk = r1 - price, price - s1
    elif signal == Signal.SELL:
        reward, risk = price - s1, r1 - price
    else:
        raise ValueError(f"signal must be BUY, SELL or NEUTRAL, got '{signal}'")

    if risk <= 0:
        return UNDEFINED_RATIO
    return RiskReward(ratio=max(reward, 0.0) / risk)
