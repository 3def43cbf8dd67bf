"""Tests for the read-only heat-map API endpoints."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from fxlevels.api.routers import configure_routers
from fxlevels.heatmap import build_heatmap
from fxlevels.main import app
from fxlevels.refresher import HeatMapRefresher
from fxlevels.strategy.instruments import get_instrument
from fxlevels.strategy.models import MarketSnapshot, OhlcSample, Period

client = TestClient(app)


# ── Helpers ──────────────────────────────────────────────────────────────

DAILY = OhlcSample(high=1.1050, low=1.0950, close=1.1000)
RISING = tuple(1.1000 + i * 0.0001 for i in range(20))
FLAT = (1.1000,) * 20


class _NoFeed:
    async def fetch_snapshots(self, instruments):
        return []


def _published_refresher(snapshots):
    refresher = HeatMapRefresher(
        _NoFeed(),
        [],
        clock=lambda: datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc),
    )
    refresher.publish(refresher.next_pass_id(), build_heatmap(snapshots))
    return refresher


def _snapshots():
    return [
        MarketSnapshot("EUR_USD", 1.1030, {Period.DAILY: DAILY}, RISING, 2.0),
        MarketSnapshot("GBP_USD", 1.1000, {Period.DAILY: DAILY}, FLAT, -3.0),
    ]


@pytest.fixture(autouse=True)
def _reset_routers():
    configure_routers(refresher=None)
    yield
    configure_routers(refresher=None)


# ── Tests ────────────────────────────────────────────────────────────────


def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_instruments_lists_registry():
    resp = client.get("/instruments")
    assert resp.status_code == 200
    instruments = resp.json()["instruments"]
    assert len(instruments) == 27
    gold = next(i for i in instruments if i["symbol"] == "XAU_USD")
    assert gold["display_name"] == "GOLD"
    assert gold["category"] == "metal_or_commodity"
    assert gold["decimals"] == 2


class TestHeatmapEndpoint:
    def test_empty_before_first_pass(self):
        resp = client.get("/heatmap")
        assert resp.status_code == 200
        assert resp.json() == {"pass_id": None, "computed_at": None, "records": []}

    def test_returns_latest_pass(self):
        configure_routers(refresher=_published_refresher(_snapshots()))
        data = client.get("/heatmap").json()
        assert data["pass_id"] == 1
        assert data["computed_at"] == "2025-01-10T12:00:00+00:00"
        assert [r["symbol"] for r in data["records"]] == ["EUR_USD", "GBP_USD"]

    def test_record_schema(self):
        configure_routers(refresher=_published_refresher(_snapshots()))
        eur = client.get("/heatmap").json()["records"][0]
        assert eur["signal"] == "BUY"
        assert eur["risk_reward"] == pytest.approx(0.25)
        assert eur["formatted_price"] == "1.1030"
        assert eur["pivots"]["daily"]["pivot"] == pytest.approx(1.1)
        assert eur["pivots"]["weekly"] is None
        assert eur["channel"]["direction"] == "bullish"
        assert eur["trade_zone"]["display"]["stop"] == "below 1.0950"
        assert eur["ok"] is True
        assert eur["confident"] is False  # weekly and monthly missing
        assert {i["kind"] for i in eur["issues"]} == {"missing_period_data"}

    def test_rank_by_change_percent(self):
        configure_routers(refresher=_published_refresher(_snapshots()))
        data = client.get("/heatmap", params={"rank_by": "change_percent"}).json()
        assert [r["symbol"] for r in data["records"]] == ["GBP_USD", "EUR_USD"]

    def test_invalid_rank_key(self):
        resp = client.get("/heatmap", params={"rank_by": "volume"})
        assert resp.status_code == 422

    def test_invalid_price_serialises_as_null(self):
        bad = MarketSnapshot("EUR_USD", float("nan"), {Period.DAILY: DAILY}, RISING, 1.0)
        configure_routers(refresher=_published_refresher([bad]))
        resp = client.get("/heatmap")
        assert resp.status_code == 200
        record = resp.json()["records"][0]
        assert record["price"] is None
        assert record["formatted_price"] == "N/A"
        assert record["ok"] is False
        assert record["issues"][0]["kind"] == "invalid_price"


class TestHeatmapEntryEndpoint:
    def test_lookup_by_any_spelling(self):
        configure_routers(refresher=_published_refresher(_snapshots()))
        resp = client.get("/heatmap/EURUSD")
        assert resp.status_code == 200
        assert resp.json()["symbol"] == "EUR_USD"

    def test_unknown_symbol_404(self):
        configure_routers(refresher=_published_refresher(_snapshots()))
        resp = client.get("/heatmap/DOGE_USD")
        assert resp.status_code == 404
        assert "Unknown instrument" in resp.json()["detail"]

    def test_not_yet_computed_404(self):
        configure_routers(refresher=_published_refresher(_snapshots()))
        resp = client.get("/heatmap/USD_JPY")
        assert resp.status_code == 404
        assert get_instrument("USD_JPY").symbol in resp.json()["detail"]
