# backend/portfolio_tracker/services/protocols.py
"""
Protocol interfaces for the collaborators around the valuation core.

Using typing.Protocol enables structural subtyping:
- PortfolioStore and YahooQuoteProvider satisfy these without inheriting
- Test fakes work without explicit inheritance
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from portfolio_tracker.services.market_data.base import Quote
    from portfolio_tracker.services.tags import TagRegistry
    from portfolio_tracker.services.valuation.types import (
        DailySnapshot,
        DividendRecord,
        PurchaseLot,
        SaleRecord,
    )


class PortfolioStoreProtocol(Protocol):
    """
    Read/write contract of the storage collaborator.

    save_* take the version the caller loaded and fail with
    ConcurrentModificationError if another writer got there first.
    """

    def version(self, collection: str) -> int:
        ...

    def load_lots(self) -> list[PurchaseLot]:
        ...

    def save_lots(self, lots: list[PurchaseLot], expected_version: int | None = None) -> int:
        ...

    def load_deleted_lots(self) -> list[PurchaseLot]:
        ...

    def restore_lot(self, lot_id: str, expected_version: int | None = None) -> PurchaseLot:
        ...

    def load_sales(self) -> list[SaleRecord]:
        ...

    def save_sales(self, sales: list[SaleRecord], expected_version: int | None = None) -> int:
        ...

    def load_dividends(self) -> list[DividendRecord]:
        ...

    def save_dividends(
        self,
        dividends: list[DividendRecord],
        expected_version: int | None = None,
    ) -> int:
        ...

    def load_snapshots(self, max_count: int | None = None) -> list[DailySnapshot]:
        ...

    def save_snapshot(self, snapshot: DailySnapshot) -> None:
        ...

    def load_tags(self) -> TagRegistry:
        ...

    def save_tags(self, registry: TagRegistry, expected_version: int | None = None) -> int:
        ...


class QuoteProviderProtocol(Protocol):
    """Quote and rate fetch contract of the market data collaborator."""

    @property
    def name(self) -> str:
        ...

    def get_quote(self, symbol: str) -> Quote:
        ...

    def get_rate(self, currency: str, reporting_currency: str) -> Decimal:
        ...
