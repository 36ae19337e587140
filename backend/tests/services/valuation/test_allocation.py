# backend/tests/services/valuation/test_allocation.py
"""
Unit tests for allocation breakdowns.

Test Coverage:
- Grouping by type, currency and tag
- Percentages of the active total
- Untagged bucket and multi-tag holdings
"""

from decimal import Decimal

from portfolio_tracker.services.valuation import (
    UNTAGGED,
    AllocationGroup,
    AssetType,
    CurrencyConverter,
    PortfolioConsolidator,
    ValuationEngine,
    all_tags,
    allocation_by,
    holdings_with_tag,
)
from tests.conftest import make_lot


def _lots():
    return [
        make_lot(id="1", name="Toyota", symbol="7203.T", quantity="10",
                 current_price="300", tags=("japan", "core")),
        make_lot(id="2", name="Apple", symbol="AAPL", currency="USD", quantity="1",
                 current_price="4", tags=("us",)),
        make_lot(id="3", name="Bitcoin", symbol="BTC-JPY", asset_type=AssetType.CRYPTO,
                 quantity="1", current_price="400"),
    ]


def _engine():
    return ValuationEngine(CurrencyConverter("JPY", {"USD": Decimal("150")}))


class TestAllocationBy:

    def test_by_type(self):
        holdings = PortfolioConsolidator().consolidate(_lots())

        slices = allocation_by(holdings, _engine(), AllocationGroup.TYPE)

        # stock 3000 + 600, crypto 400 -> total 4000
        assert [(s.label, s.value, s.percentage) for s in slices] == [
            ("stock", Decimal("3600.00"), Decimal("90.00")),
            ("crypto", Decimal("400.00"), Decimal("10.00")),
        ]
        assert slices[0].holding_keys == ("7203.T", "AAPL")

    def test_by_currency(self):
        holdings = PortfolioConsolidator().consolidate(_lots())

        slices = allocation_by(holdings, _engine(), AllocationGroup.CURRENCY)

        assert {s.label: s.percentage for s in slices} == {
            "JPY": Decimal("85.00"),
            "USD": Decimal("15.00"),
        }

    def test_by_tag_counts_multi_tag_holdings_in_each_tag(self):
        holdings = PortfolioConsolidator().consolidate(_lots())

        slices = {s.label: s for s in allocation_by(holdings, _engine(), AllocationGroup.TAG)}

        assert slices["japan"].value == Decimal("3000.00")
        assert slices["core"].value == Decimal("3000.00")
        assert slices["us"].value == Decimal("600.00")
        assert slices[UNTAGGED].holding_keys == ("BTC-JPY",)

    def test_empty_portfolio(self):
        assert allocation_by([], _engine(), AllocationGroup.NAME) == []


class TestTagHelpers:

    def test_holdings_with_tag(self):
        holdings = PortfolioConsolidator().consolidate(_lots())

        assert [h.key for h in holdings_with_tag(holdings, "us")] == ["AAPL"]
        assert [h.key for h in holdings_with_tag(holdings, UNTAGGED)] == ["BTC-JPY"]

    def test_all_tags_sorted(self):
        assert all_tags(_lots()) == ["core", "japan", "us"]
