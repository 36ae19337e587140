# backend/tests/services/test_portfolio_store.py
"""
Integration tests for PortfolioStore (in-memory SQLite).

Test Coverage:
- Round trip of lots, sales, dividends, tags
- Compare-and-swap version checks
- Mark-and-filter deletion and restore
- Snapshot upsert and ordering
"""

from datetime import date
from decimal import Decimal

import pytest

from portfolio_tracker.services.exceptions import ConcurrentModificationError, LotNotFoundError
from portfolio_tracker.services.portfolio_store import PortfolioStore
from portfolio_tracker.services.tags import TagRegistry
from portfolio_tracker.services.valuation import AssetType, DividendRecord
from tests.conftest import make_lot, make_sale, make_snapshot


@pytest.fixture
def store(db) -> PortfolioStore:
    return PortfolioStore(db)


# =============================================================================
# LOTS
# =============================================================================

class TestLots:

    def test_round_trip(self, store):
        lot = make_lot(
            id="1",
            quantity="2.5",
            purchase_price="101.25",
            current_price="110",
            tags=("b", "a"),
            instrument_key="7203.T",
        )

        store.save_lots([lot])
        loaded = store.load_lots()

        assert len(loaded) == 1
        assert loaded[0].id == "1"
        assert loaded[0].quantity == Decimal("2.5")
        assert loaded[0].purchase_price == Decimal("101.25")
        assert loaded[0].current_price == Decimal("110")
        assert loaded[0].tags == frozenset({"a", "b"})
        assert loaded[0].asset_type == AssetType.STOCK
        assert loaded[0].instrument_key == "7203.T"

    def test_order_is_preserved(self, store):
        store.save_lots([make_lot(id="b"), make_lot(id="a"), make_lot(id="c")])

        assert [lot.id for lot in store.load_lots()] == ["b", "a", "c"]

    def test_lot_missing_from_save_is_hidden_not_removed(self, store):
        store.save_lots([make_lot(id="1"), make_lot(id="2")])

        store.save_lots([make_lot(id="2")])

        assert [lot.id for lot in store.load_lots()] == ["2"]
        assert [lot.id for lot in store.load_deleted_lots()] == ["1"]

    def test_restore_lot(self, store):
        store.save_lots([make_lot(id="1"), make_lot(id="2")])
        store.save_lots([make_lot(id="2")])

        restored = store.restore_lot("1")

        assert restored.id == "1"
        assert [lot.id for lot in store.load_lots()] == ["2", "1"]
        assert store.load_deleted_lots() == []

    def test_restore_active_lot_is_not_found(self, store):
        store.save_lots([make_lot(id="1")])

        with pytest.raises(LotNotFoundError):
            store.restore_lot("1")


# =============================================================================
# VERSIONS
# =============================================================================

class TestCompareAndSwap:

    def test_version_starts_at_zero_and_increments(self, store):
        assert store.version("lots") == 0

        assert store.save_lots([make_lot(id="1")]) == 1
        assert store.save_lots([make_lot(id="1")], expected_version=1) == 2
        assert store.version("lots") == 2

    def test_stale_version_is_rejected(self, store):
        store.save_lots([make_lot(id="1")])
        version = store.version("lots")
        store.save_lots([make_lot(id="1"), make_lot(id="2")], expected_version=version)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            store.save_lots([make_lot(id="3")], expected_version=version)

        assert exc_info.value.collection == "lots"
        assert exc_info.value.actual_version == version + 1
        assert [lot.id for lot in store.load_lots()] == ["1", "2"]

    def test_collections_are_versioned_independently(self, store):
        store.save_lots([make_lot(id="1")])

        store.save_sales([make_sale(lot_id="1")], expected_version=0)

        assert store.versions()["lots"] == 1
        assert store.versions()["sales"] == 1


# =============================================================================
# SALES / DIVIDENDS / TAGS
# =============================================================================

class TestOtherCollections:

    def test_sales_round_trip(self, store):
        sale = make_sale(id="s1", lot_id="1", quantity="4", currency="USD", exchange_rate="150.5")

        store.save_sales([sale])

        loaded = store.load_sales()[0]
        assert loaded.original_asset_id == "1"
        assert loaded.quantity == Decimal("4")
        assert loaded.exchange_rate == Decimal("150.5")
        assert loaded.profit == sale.profit

    def test_deleted_sale_is_hidden(self, store):
        store.save_sales([make_sale(id="s1"), make_sale(id="s2")])

        store.save_sales([make_sale(id="s2")])

        assert [s.id for s in store.load_sales()] == ["s2"]

    def test_dividends_round_trip(self, store):
        dividend = DividendRecord(
            id="d1", asset_id="1", received_on=date(2024, 3, 31), amount=Decimal("150")
        )

        store.save_dividends([dividend])

        assert store.load_dividends() == [dividend]

    def test_tags_round_trip(self, store):
        registry = TagRegistry().add("core", "#111111").add("growth")

        store.save_tags(registry)
        store.save_tags(registry.remove("core"))

        loaded = store.load_tags()
        assert loaded.names == ["growth"]
        assert loaded.color_of("growth") == registry.color_of("growth")


# =============================================================================
# SNAPSHOTS
# =============================================================================

class TestSnapshots:

    def test_snapshots_load_ascending(self, store):
        store.save_snapshot(make_snapshot(date(2024, 3, 14), {"A": ("1050", "10")}))
        store.save_snapshot(make_snapshot(date(2024, 3, 12), {"A": ("1000", "10")}))
        store.save_snapshot(make_snapshot(date(2024, 3, 13), {"A": ("1020", "10")}))

        snapshots = store.load_snapshots()

        assert [s.snapshot_date for s in snapshots] == [
            date(2024, 3, 12), date(2024, 3, 13), date(2024, 3, 14)
        ]
        assert snapshots[0].entry("A").value == Decimal("1000")

    def test_max_count_keeps_the_most_recent(self, store):
        for day in range(10, 15):
            store.save_snapshot(make_snapshot(date(2024, 3, day), {"A": ("1000", "10")}))

        snapshots = store.load_snapshots(2)

        assert [s.snapshot_date.day for s in snapshots] == [13, 14]

    def test_same_date_is_replaced(self, store):
        store.save_snapshot(make_snapshot(date(2024, 3, 14), {"A": ("1000", "10")}))
        store.save_snapshot(make_snapshot(date(2024, 3, 14), {"A": ("1050.25", "10")}))

        snapshots = store.load_snapshots()

        assert len(snapshots) == 1
        assert snapshots[0].entry("A").value == Decimal("1050.25")
        assert snapshots[0].total_value == Decimal("1050.25")
