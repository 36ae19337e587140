# backend/tests/routers/test_portfolio_api.py
"""
API layer tests for the read endpoints.

These tests verify the HTTP layer using FastAPI's TestClient:
- Holdings, valuation, allocation and sale summaries
- Comparison availability
- Price refresh with a fake quote provider
- Health check
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from portfolio_tracker.dependencies import get_portfolio_service
from portfolio_tracker.main import app
from portfolio_tracker.services.exceptions import RateLimitError
from portfolio_tracker.services.market_data.price_refresh import PriceRefreshService
from portfolio_tracker.services.portfolio_service import MarketState, PortfolioService
from portfolio_tracker.services.portfolio_store import PortfolioStore


@pytest.fixture
def client(db, quote_provider) -> TestClient:
    market_state = MarketState()
    refresher = PriceRefreshService(quote_provider, reporting_currency="JPY")

    def override_get_portfolio_service():
        return PortfolioService(PortfolioStore(db), market_state=market_state, refresher=refresher)

    app.dependency_overrides[get_portfolio_service] = override_get_portfolio_service

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def seeded(client):
    """Two Toyota lots, one Apple lot in USD."""
    for lot in (
        {"quantity": "10", "purchase_price": "100", "purchase_date": "2024-01-01", "current_price": "150"},
        {"quantity": "5", "purchase_price": "130", "purchase_date": "2024-03-01", "current_price": "150"},
    ):
        client.post("/lots", json={"name": "Toyota", "asset_type": "stock", "symbol": "7203.T", **lot})
    client.post("/lots", json={
        "name": "Apple",
        "asset_type": "stock",
        "symbol": "AAPL",
        "currency": "USD",
        "quantity": "1",
        "purchase_price": "180",
        "purchase_date": "2024-01-01",
    })
    return client


# =============================================================================
# HOLDINGS / VALUATION
# =============================================================================

class TestHoldings:

    def test_empty(self, client):
        response = client.get("/holdings")

        assert response.status_code == 200
        assert response.json() == []

    def test_consolidated(self, seeded):
        holdings = {h["key"]: h for h in seeded.get("/holdings").json()}

        toyota = holdings["7203.T"]
        assert Decimal(toyota["quantity"]) == Decimal("15")
        assert Decimal(toyota["purchase_price"]) == Decimal("110")
        assert [Decimal(r["quantity"]) for r in toyota["purchase_records"]] == [Decimal("10"), Decimal("5")]
        assert toyota["purchase_date"] == "2024-01-01"


class TestValuation:

    def test_fallbacks_are_flagged(self, seeded):
        body = seeded.get("/valuation").json()

        # Apple: no price and no USD rate -> purchase price at rate 1
        assert body["reporting_currency"] == "JPY"
        assert Decimal(body["total_value"]) == Decimal("2430.00")
        assert Decimal(body["total_cost_basis"]) == Decimal("1830.00")
        assert body["has_fallbacks"] is True
        apple = next(h for h in body["holdings"] if h["key"] == "AAPL")
        assert apple["used_purchase_price"] is True
        assert apple["used_fallback_rate"] is True
        assert len(body["warnings"]) == 2

    def test_allocation_by_currency(self, seeded):
        slices = seeded.get("/allocation", params={"group_by": "currency"}).json()

        assert [s["label"] for s in slices] == ["JPY", "USD"]
        assert Decimal(slices[0]["value"]) == Decimal("2250.00")

    def test_invalid_group_is_422(self, client):
        assert client.get("/allocation", params={"group_by": "sector"}).status_code == 422


# =============================================================================
# COMPARISON
# =============================================================================

class TestComparison:

    def test_unavailable_without_snapshots(self, seeded):
        response = seeded.get("/comparison", params={"period": "week"})

        assert response.status_code == 200
        body = response.json()
        assert body["period"] == "week"
        assert body["available"] is False
        assert body["reason"]
        assert body["per_holding"] == {}

    def test_invalid_period_is_422(self, client):
        assert client.get("/comparison", params={"period": "decade"}).status_code == 422


# =============================================================================
# SALES
# =============================================================================

class TestSales:

    def test_summary(self, seeded):
        lot_id = seeded.get("/holdings").json()[0]["asset_ids"][0]
        seeded.post(
            f"/lots/{lot_id}/sell",
            json={"quantity": "4", "sell_price": "140", "sell_date": "2024-03-10"},
        )

        sales = seeded.get("/sales").json()
        summary = seeded.get("/sales/summary").json()

        assert len(sales) == 1
        assert sales[0]["name"] == "Toyota"
        assert Decimal(summary["total_profit"]) == Decimal("160.00")
        assert summary["count"] == 1


# =============================================================================
# PRICE REFRESH
# =============================================================================

class TestRefresh:

    def test_refresh(self, seeded, quote_provider):
        quote_provider.add_quote("7203.T", "160", is_market_open=True)
        quote_provider.add_quote("AAPL", "200", currency="USD")
        quote_provider.add_rate("USD", "150")

        response = seeded.post("/prices/refresh")

        assert response.status_code == 200
        body = response.json()
        assert body["updated"] == 2
        assert body["errors"] == []
        assert body["market_open"] == {"7203.T": True, "AAPL": False}
        assert Decimal(body["rates"]["USD"]) == Decimal("150")
        assert body["refreshed_at"] is not None

        valuation = seeded.get("/valuation").json()
        assert Decimal(valuation["total_value"]) == Decimal("32400.00")
        assert valuation["has_fallbacks"] is False

    def test_partial_failure_is_reported(self, seeded, quote_provider):
        quote_provider.add_quote("7203.T", "160")
        quote_provider.add_error("AAPL", RateLimitError(provider="fake"))

        body = seeded.post("/prices/refresh").json()

        assert body["updated"] == 1
        assert len(body["errors"]) == 2
        assert body["rates"] == {}

    def test_refresh_without_provider_is_503(self, db):
        app.dependency_overrides[get_portfolio_service] = lambda: PortfolioService(PortfolioStore(db))
        try:
            with TestClient(app) as c:
                response = c.post("/prices/refresh")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "PriceRefreshUnavailableError"
        assert body["message"] == "Price refresh is not configured"


# =============================================================================
# HEALTH
# =============================================================================

class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["environment"] == "test"
