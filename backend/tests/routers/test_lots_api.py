# backend/tests/routers/test_lots_api.py
"""
API layer tests for the edit endpoints.

These tests verify the HTTP layer using FastAPI's TestClient:
- Correct status codes (201, 204, 400, 404, 409, 422)
- Error responses carry ErrorDetail
- Optimistic concurrency through expected_version

Test Methodology:
    1. Override the service dependency with one over the test database
    2. Drive the API the way a client would
    3. Assert status codes and response structure
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from portfolio_tracker.dependencies import get_portfolio_service
from portfolio_tracker.main import app
from portfolio_tracker.services.market_data.price_refresh import PriceRefreshService
from portfolio_tracker.services.portfolio_service import MarketState, PortfolioService
from portfolio_tracker.services.portfolio_store import PortfolioStore


@pytest.fixture
def client(db, quote_provider) -> TestClient:
    """TestClient whose PortfolioService runs over the test database."""
    market_state = MarketState()
    refresher = PriceRefreshService(quote_provider, reporting_currency="JPY")

    def override_get_portfolio_service():
        return PortfolioService(PortfolioStore(db), market_state=market_state, refresher=refresher)

    app.dependency_overrides[get_portfolio_service] = override_get_portfolio_service

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


LOT = {
    "name": "Toyota",
    "asset_type": "stock",
    "quantity": "10",
    "purchase_price": "100",
    "purchase_date": "2024-01-15",
    "symbol": "7203.t",
}


def _create(client, **overrides) -> dict:
    response = client.post("/lots", json={**LOT, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================================
# LOTS
# =============================================================================

class TestCreateLot:

    def test_create(self, client):
        lot = _create(client, tags=["core"])

        assert lot["symbol"] == "7203.T"
        assert lot["instrument_key"] == "7203.T"
        assert lot["tags"] == ["core"]
        assert Decimal(lot["quantity"]) == Decimal("10")

    def test_schema_violation_is_422(self, client):
        response = client.post("/lots", json={**LOT, "quantity": "0"})

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "ValidationError"
        assert any(d["field"].endswith("quantity") for d in body["details"])

    def test_stock_without_symbol_is_400(self, client):
        response = client.post("/lots", json={**LOT, "symbol": None})

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "symbol"}

    def test_future_purchase_date_is_400(self, client):
        response = client.post("/lots", json={**LOT, "purchase_date": "2999-01-01"})

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "purchase_date"

    def test_stale_version_is_409(self, client):
        _create(client)

        response = client.post("/lots", params={"expected_version": 0}, json=LOT)

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "ConcurrentModificationError"
        assert body["details"] == {"collection": "lots", "expected_version": 0, "actual_version": 1}


class TestEditAndDeleteLot:

    def test_patch(self, client):
        lot = _create(client)

        response = client.patch(f"/lots/{lot['id']}", json={"purchase_price": "90"})

        assert response.status_code == 200
        assert Decimal(response.json()["purchase_price"]) == Decimal("90")
        assert Decimal(response.json()["quantity"]) == Decimal("10")

    def test_patch_unknown_is_404(self, client):
        response = client.patch("/lots/missing", json={"quantity": "1"})

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "LotNotFoundError"
        assert body["details"] == {"resource_type": "Lot", "resource_id": "missing"}

    def test_delete_requires_confirm(self, client):
        lot = _create(client)

        response = client.delete(f"/lots/{lot['id']}")

        assert response.status_code == 409
        assert response.json()["error"] == "ConfirmationRequiredError"

    def test_delete_and_restore(self, client):
        lot = _create(client)

        assert client.delete(f"/lots/{lot['id']}", params={"confirm": True}).status_code == 204
        assert client.get("/holdings").json() == []

        response = client.post(f"/lots/{lot['id']}/restore")

        assert response.status_code == 200
        assert [h["key"] for h in client.get("/holdings").json()] == ["7203.T"]


# =============================================================================
# SALES
# =============================================================================

class TestSales:

    def test_sell_and_reverse(self, client):
        lot = _create(client)

        response = client.post(
            f"/lots/{lot['id']}/sell",
            json={"quantity": "4", "sell_price": "120", "sell_date": "2024-04-01"},
        )

        assert response.status_code == 201
        sale = response.json()
        assert Decimal(sale["profit"]) == Decimal("80")
        assert Decimal(client.get("/holdings").json()[0]["active_quantity"]) == Decimal("6")

        assert client.delete(f"/sales/{sale['id']}").status_code == 204
        assert Decimal(client.get("/holdings").json()[0]["active_quantity"]) == Decimal("10")

    def test_oversell_is_400(self, client):
        lot = _create(client)

        response = client.post(
            f"/lots/{lot['id']}/sell",
            json={"quantity": "11", "sell_price": "120", "sell_date": "2024-04-01"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "OversellError"

    def test_sell_before_purchase_is_400(self, client):
        lot = _create(client)

        response = client.post(
            f"/lots/{lot['id']}/sell",
            json={"quantity": "1", "sell_price": "120", "sell_date": "2023-12-31"},
        )

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "sell_date"

    def test_delete_unknown_sale_is_404(self, client):
        assert client.delete("/sales/missing").status_code == 404

    def test_patch_sale_recomputes_profit(self, client):
        lot = _create(client)
        sale = client.post(
            f"/lots/{lot['id']}/sell",
            json={"quantity": "4", "sell_price": "120", "sell_date": "2024-04-01"},
        ).json()

        response = client.patch(f"/sales/{sale['id']}", json={"quantity": "10", "sell_price": "130"})

        assert response.status_code == 200
        edited = response.json()
        assert Decimal(edited["quantity"]) == Decimal("10")
        assert Decimal(edited["profit"]) == Decimal("300")
        assert client.get("/holdings").json() == []

    def test_patch_sale_beyond_lot_is_400(self, client):
        lot = _create(client)
        sale = client.post(
            f"/lots/{lot['id']}/sell",
            json={"quantity": "4", "sell_price": "120", "sell_date": "2024-04-01"},
        ).json()

        response = client.patch(f"/sales/{sale['id']}", json={"quantity": "11"})

        assert response.status_code == 400
        assert response.json()["error"] == "OversellError"

    def test_patch_unknown_sale_is_404(self, client):
        response = client.patch("/sales/missing", json={"sell_price": "1"})

        assert response.status_code == 404
        assert response.json()["error"] == "SaleNotFoundError"


# =============================================================================
# HOLDINGS / DIVIDENDS / TAGS
# =============================================================================

class TestHoldingsDividendsTags:

    def test_patch_holding(self, client):
        _create(client)
        _create(client, quantity="5")

        response = client.patch(
            "/holdings",
            json={"key": "7203.T", "name": "Toyota Motor", "tags": ["japan"]},
        )

        assert response.status_code == 200
        holding = response.json()
        assert holding["name"] == "Toyota Motor"
        assert holding["tags"] == ["japan"]
        assert len(holding["asset_ids"]) == 2

    def test_patch_unknown_holding_is_404(self, client):
        response = client.patch("/holdings", json={"key": "NOPE", "name": "x"})

        assert response.status_code == 404
        assert response.json()["error"] == "HoldingNotFoundError"

    def test_dividends(self, client):
        lot = _create(client)

        response = client.post(
            "/dividends",
            json={"asset_id": lot["id"], "received_on": "2024-03-01", "amount": "250"},
        )
        assert response.status_code == 201

        listing = client.get("/dividends", params={"holding": "7203.T"}).json()
        assert Decimal(listing["total"]) == Decimal("250")
        assert len(listing["dividends"]) == 1

        assert client.delete(f"/dividends/{response.json()['id']}").status_code == 204
        assert client.get("/dividends").json()["dividends"] == []

    def test_patch_dividend(self, client):
        lot = _create(client)
        dividend = client.post(
            "/dividends",
            json={"asset_id": lot["id"], "received_on": "2024-03-01", "amount": "250"},
        ).json()

        response = client.patch(f"/dividends/{dividend['id']}", json={"amount": "300"})

        assert response.status_code == 200
        assert Decimal(response.json()["amount"]) == Decimal("300")
        assert response.json()["received_on"] == "2024-03-01"
        assert Decimal(client.get("/dividends").json()["total"]) == Decimal("300")

    def test_patch_unknown_dividend_is_404(self, client):
        assert client.patch("/dividends/missing", json={"amount": "1"}).status_code == 404

    def test_tags(self, client):
        _create(client, tags=["core"])

        response = client.post("/tags", json={"name": "growth", "color": "#123456"})
        assert response.status_code == 201
        assert {t["name"]: t["color"] for t in response.json()}["growth"] == "#123456"

        response = client.put("/tags/core", json={"new_name": "long-term"})
        assert [t["name"] for t in response.json()] == ["long-term", "growth"]
        assert client.get("/holdings").json()[0]["tags"] == ["long-term"]

        response = client.delete("/tags/long-term")
        assert [t["name"] for t in response.json()] == ["growth"]
        assert client.get("/holdings").json()[0]["tags"] == []

    def test_remove_unknown_tag_is_404(self, client):
        assert client.delete("/tags/missing").status_code == 404
