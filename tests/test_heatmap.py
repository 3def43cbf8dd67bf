"""Tests for the heat-map aggregator — one record per instrument, never a batch abort."""

import math

import pytest

from fxlevels.heatmap import (
    analyze_instrument,
    build_heatmap,
    build_heatmap_concurrent,
    pivot_strength,
    rank_heatmap,
)
from fxlevels.strategy.models import (
    ChannelDirection,
    IssueKind,
    MarketSnapshot,
    OhlcSample,
    Period,
    Signal,
)


DAILY = OhlcSample(high=1.1050, low=1.0950, close=1.1000)    # P 1.1000 R1 1.1050 S1 1.0950
WEEKLY = OhlcSample(high=1.1200, low=1.0800, close=1.1030)   # P 1.1010
MONTHLY = OhlcSample(high=1.1500, low=1.0500, close=1.1000)  # P 1.1000

RISING = tuple(1.1000 + i * 0.0001 for i in range(20))
FALLING = tuple(1.1000 - i * 0.0001 for i in range(20))
FLAT = (1.1000,) * 20


def _snapshot(
    symbol="EUR_USD",
    price=1.1030,
    closes=RISING,
    change_percent=2.0,
    price_age_seconds=None,
    **samples,
):
    base = {Period.DAILY: DAILY, Period.WEEKLY: WEEKLY, Period.MONTHLY: MONTHLY}
    for name, sample in samples.items():
        base[Period(name)] = sample
    return MarketSnapshot(
        symbol=symbol,
        price=price,
        samples=base,
        closes=closes,
        change_percent=change_percent,
        price_age_seconds=price_age_seconds,
    )


class TestAnalyzeInstrument:
    def test_buy_scenario(self):
        r = analyze_instrument(_snapshot())
        assert r.ok and r.confident
        assert r.channel.direction is ChannelDirection.BULLISH
        assert r.signal is Signal.BUY
        assert r.risk_reward.ratio == pytest.approx(0.25)
        z = r.trade_zone
        assert z.entry_low == pytest.approx(1.1000)
        assert z.entry_high == pytest.approx(1.1030)
        assert z.target_low == pytest.approx(1.1150)
        assert z.target_high == pytest.approx(1.1180)
        assert z.stop_level == pytest.approx(1.0950)
        assert r.formatted_price == "1.1030"
        assert r.display_name == "EURUSD"

    def test_sell_scenario(self):
        r = analyze_instrument(_snapshot(price=1.0970, closes=FALLING, change_percent=-2.0))
        assert r.channel.direction is ChannelDirection.BEARISH
        assert r.signal is Signal.SELL
        assert r.risk_reward.ratio == pytest.approx(0.25)
        assert r.trade_zone.stop_side == "above"

    def test_flat_closes_are_neutral(self):
        r = analyze_instrument(_snapshot(price=1.1000, closes=FLAT, change_percent=0.1))
        assert r.channel.direction is ChannelDirection.SIDEWAYS
        assert r.channel.width == 0
        assert r.signal is Signal.NEUTRAL
        assert r.risk_reward.ratio == 1.0
        assert r.trade_zone is None

    def test_weak_change_stays_neutral(self):
        """Bullish channel but |change| + momentum under the threshold."""
        r = analyze_instrument(_snapshot(change_percent=0.1))
        assert r.channel.direction is ChannelDirection.BULLISH
        assert r.signal_strength < 1.5
        assert r.signal is Signal.NEUTRAL

    def test_closest_level_spans_periods(self):
        r = analyze_instrument(_snapshot(price=1.1012))
        assert r.closest_level.label == "Weekly Pivot"
        assert r.closest_level.level == pytest.approx(1.1010)

    def test_pivot_strength(self):
        r = analyze_instrument(_snapshot())
        # 0.0030 / 1.1000 × 10 000 ≈ 27.27
        assert r.pivot_strength == pytest.approx(0.0030 / 1.1 * 10_000)
        assert pivot_strength(2.0, 1.0) == 100.0
        assert pivot_strength(1.0, 0.0) == 0.0

    def test_missing_weekly(self):
        r = analyze_instrument(_snapshot(weekly=None))
        assert r.ok
        assert r.has_issue(IssueKind.MISSING_PERIOD_DATA)
        assert r.pivots[Period.WEEKLY] is None
        assert r.pivots[Period.DAILY] is not None
        assert not r.closest_level.label.startswith("Weekly")
        assert not r.confident

    def test_missing_daily(self):
        r = analyze_instrument(_snapshot(daily=None, closes=()))
        assert not r.ok
        assert r.signal is Signal.NEUTRAL
        assert r.risk_reward is None
        assert r.trade_zone is None
        assert r.issues[0].period is Period.DAILY

    def test_invalid_daily_sample(self):
        r = analyze_instrument(_snapshot(daily=OhlcSample(1.0950, 1.1050, 1.1000)))
        assert not r.ok
        assert r.has_issue(IssueKind.INVALID_SAMPLE)
        assert r.pivots[Period.DAILY] is None
        assert r.trade_zone is None

    def test_degenerate_inputs_produce_no_nan(self):
        flat = OhlcSample(1.2, 1.2, 1.2)
        snap = MarketSnapshot(
            symbol="EUR_USD",
            price=1.2,
            samples={p: flat for p in Period},
        )
        r = analyze_instrument(snap)
        assert r.has_issue(IssueKind.DEGENERATE_RANGE)
        assert not r.confident
        assert r.channel.direction is ChannelDirection.SIDEWAYS
        assert r.signal is Signal.NEUTRAL
        assert r.change_percent == 0.0
        for value in (
            r.channel.upper_band,
            r.channel.lower_band,
            r.closest_level.distance,
            r.signal_strength,
            r.pivot_strength,
            r.risk_reward.ratio,
        ):
            assert math.isfinite(value)

    def test_range_fallback_without_closes(self):
        r = analyze_instrument(_snapshot(closes=()))
        assert r.ok
        assert r.channel.middle_line == pytest.approx(1.1000)
        assert r.channel.upper_band == pytest.approx(1.1050)
        assert r.channel.lower_band == pytest.approx(1.0950)

    def test_change_percent_derived_from_daily_close(self):
        r = analyze_instrument(_snapshot(price=1.1110, change_percent=None))
        assert r.change_percent == pytest.approx(1.0)

    @pytest.mark.parametrize("change", [float("nan"), float("inf")])
    def test_non_finite_change_percent_treated_as_missing(self, change):
        """Falls back to the change against the daily close; no NaN leaks into the signal."""
        r = analyze_instrument(_snapshot(price=1.1110, change_percent=change))
        assert r.change_percent == pytest.approx(1.0)
        assert math.isfinite(r.signal_strength)

    def test_nan_change_percent_cannot_force_a_signal(self):
        """Strong channel but only a NaN change: strength stays under the threshold."""
        r = analyze_instrument(_snapshot(change_percent=float("nan")))
        # derived change (1.1030 − 1.1000) / 1.1000 ≈ 0.27 %, plus momentum ≈ 0.82
        assert r.signal_strength < 1.5
        assert r.signal is Signal.NEUTRAL
        assert r.trade_zone is None

    def test_non_finite_close_uses_range_channel(self):
        closes = RISING[:-1] + (float("nan"),)
        r = analyze_instrument(_snapshot(closes=closes))
        assert r.ok
        assert r.channel.middle_line == pytest.approx(1.1000)
        assert r.channel.upper_band == pytest.approx(1.1050)
        assert r.channel.lower_band == pytest.approx(1.0950)

    def test_cached_price_flagged_stale(self):
        fresh = analyze_instrument(_snapshot())
        r = analyze_instrument(_snapshot(price_age_seconds=42.0))
        assert r.ok
        assert r.has_issue(IssueKind.STALE_PRICE)
        assert "42s" in r.issues[0].detail
        assert not r.confident
        assert r.signal is fresh.signal is Signal.BUY

    @pytest.mark.parametrize("price", [float("nan"), float("inf"), -1.0])
    def test_invalid_price(self, price):
        r = analyze_instrument(_snapshot(price=price))
        assert not r.ok
        assert r.has_issue(IssueKind.INVALID_PRICE)
        assert r.signal is Signal.NEUTRAL
        assert r.trade_zone is None

    def test_gold_uses_two_decimals(self):
        gold = OhlcSample(2065.50, 2031.20, 2033.00)
        r = analyze_instrument(
            MarketSnapshot("XAU_USD", 2040.123, {Period.DAILY: gold}, (), 0.5)
        )
        assert r.display_name == "GOLD"
        assert r.formatted_price == "2040.12"

    def test_deterministic(self):
        assert analyze_instrument(_snapshot()) == analyze_instrument(_snapshot())


class TestBuildHeatmap:
    def _batch(self):
        return [
            _snapshot("EUR_USD"),
            _snapshot("GBP_USD", price=1.0970, closes=FALLING, change_percent=-3.0),
            _snapshot("AUD_USD", price=1.1000, closes=FLAT, change_percent=0.5),
        ]

    def test_one_record_per_snapshot_in_order(self):
        records = build_heatmap(self._batch())
        assert [r.symbol for r in records] == ["EUR_USD", "GBP_USD", "AUD_USD"]
        assert [r.signal for r in records] == [Signal.BUY, Signal.SELL, Signal.NEUTRAL]

    def test_unknown_symbol_does_not_abort_batch(self):
        batch = self._batch() + [_snapshot("DOGE_USD")]
        records = build_heatmap(batch)
        assert len(records) == 4
        failed = records[-1]
        assert not failed.ok
        assert failed.has_issue(IssueKind.INTERNAL_ERROR)
        assert all(r.ok for r in records[:3])

    def test_rank_by_change_percent(self):
        records = build_heatmap(self._batch(), rank_by="change_percent")
        assert [r.symbol for r in records] == ["GBP_USD", "EUR_USD", "AUD_USD"]

    def test_rank_by_strength(self):
        records = build_heatmap(self._batch(), rank_by="strength")
        strengths = [r.signal_strength for r in records]
        assert strengths == sorted(strengths, reverse=True)

    def test_rank_ties_keep_input_order(self):
        batch = [_snapshot(s) for s in ("EUR_USD", "USD_CHF", "NZD_USD")]
        records = build_heatmap(batch, rank_by="change_percent")
        assert [r.symbol for r in records] == ["EUR_USD", "USD_CHF", "NZD_USD"]

    def test_unknown_rank_key(self):
        with pytest.raises(ValueError, match="rank_by"):
            rank_heatmap([], "volume")

    def test_reproducible(self):
        assert build_heatmap(self._batch()) == build_heatmap(self._batch())

    @pytest.mark.asyncio
    async def test_concurrent_matches_sequential(self):
        sequential = build_heatmap(self._batch(), rank_by="strength")
        concurrent = await build_heatmap_concurrent(self._batch(), rank_by="strength")
        assert concurrent == sequential
