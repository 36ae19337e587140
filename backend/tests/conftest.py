# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite)
- Fake quote provider
- Sample data factories (lots, sales, snapshots)
"""

import os

# Settings are read at import time; select the test environment first
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from portfolio_tracker.models import Base
from portfolio_tracker.services.exceptions import TickerNotFoundError
from portfolio_tracker.services.market_data.base import Quote, QuoteProvider
from portfolio_tracker.services.valuation.types import (
    AssetType,
    DailySnapshot,
    PurchaseLot,
    SaleRecord,
    SnapshotEntry,
)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# FAKE QUOTE PROVIDER
# =============================================================================

class FakeQuoteProvider(QuoteProvider):
    """
    In-memory QuoteProvider for testing.

    Quotes and rates are configured per symbol / currency; anything not
    configured raises TickerNotFoundError like an unknown ticker would.
    """

    def __init__(self):
        self._quotes: dict[str, Quote] = {}
        self._rates: dict[str, Decimal] = {}
        self._errors: dict[str, Exception] = {}
        self.quote_calls: list[str] = []

    @property
    def name(self) -> str:
        return "fake"

    def add_quote(
            self,
            symbol: str,
            price: str,
            currency: str = "JPY",
            is_market_open: bool = False,
    ) -> None:
        self._quotes[symbol.upper()] = Quote(
            symbol=symbol.upper(),
            price=Decimal(price),
            currency=currency,
            as_of=datetime(2024, 3, 15, 6, 0, tzinfo=timezone.utc),
            is_market_open=is_market_open,
        )

    def add_rate(self, currency: str, rate: str) -> None:
        self._rates[currency.upper()] = Decimal(rate)

    def add_error(self, symbol: str, error: Exception) -> None:
        self._errors[symbol.upper()] = error

    def get_quote(self, symbol: str) -> Quote:
        symbol = symbol.upper()
        self.quote_calls.append(symbol)
        if symbol in self._errors:
            raise self._errors[symbol]
        if symbol not in self._quotes:
            raise TickerNotFoundError(ticker=symbol, provider=self.name)
        return self._quotes[symbol]

    def get_rate(self, currency: str, reporting_currency: str) -> Decimal:
        currency = currency.upper()
        if currency == reporting_currency.upper():
            return Decimal("1")
        if currency in self._errors:
            raise self._errors[currency]
        if currency not in self._rates:
            raise TickerNotFoundError(ticker=f"{currency}{reporting_currency}=X", provider=self.name)
        return self._rates[currency]


@pytest.fixture
def quote_provider() -> FakeQuoteProvider:
    return FakeQuoteProvider()


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

def make_lot(
        id: str = "1",
        name: str = "Toyota",
        quantity: str = "10",
        purchase_price: str = "100",
        purchase_date: date = date(2024, 1, 1),
        currency: str = "JPY",
        current_price: str | None = None,
        asset_type: AssetType = AssetType.STOCK,
        symbol: str | None = "7203.T",
        isin_cd: str | None = None,
        associ_fund_cd: str | None = None,
        tags: tuple[str, ...] = (),
        instrument_key: str | None = None,
) -> PurchaseLot:
    """Purchase lot with sensible defaults; numbers given as strings."""
    return PurchaseLot(
        id=id,
        name=name,
        asset_type=asset_type,
        quantity=Decimal(quantity),
        purchase_price=Decimal(purchase_price),
        purchase_date=purchase_date,
        currency=currency,
        current_price=Decimal(current_price) if current_price is not None else None,
        tags=frozenset(tags),
        symbol=symbol,
        isin_cd=isin_cd,
        associ_fund_cd=associ_fund_cd,
        instrument_key=instrument_key,
    )


def make_sale(
        id: str = "s1",
        lot_id: str = "1",
        quantity: str = "4",
        purchase_price: str = "100",
        sell_price: str = "120",
        sell_date: date = date(2024, 4, 1),
        currency: str = "JPY",
        exchange_rate: str | None = None,
) -> SaleRecord:
    return SaleRecord(
        id=id,
        original_asset_id=lot_id,
        quantity=Decimal(quantity),
        purchase_price=Decimal(purchase_price),
        sell_price=Decimal(sell_price),
        sell_date=sell_date,
        currency=currency,
        exchange_rate=Decimal(exchange_rate) if exchange_rate is not None else None,
    )


def make_snapshot(
        snapshot_date: date,
        breakdown: dict[str, tuple[str, str]],
        total_value: str | None = None,
        exchange_rate: str | None = None,
) -> DailySnapshot:
    """
    Snapshot from {key: (value, quantity)}.

    total_value defaults to the sum of the breakdown values.
    """
    entries = {
        key: SnapshotEntry(value=Decimal(value), quantity=Decimal(quantity))
        for key, (value, quantity) in breakdown.items()
    }
    total = Decimal(total_value) if total_value is not None else sum(
        (e.value for e in entries.values()), Decimal("0")
    )
    return DailySnapshot(
        snapshot_date=snapshot_date,
        total_value=total,
        exchange_rate=Decimal(exchange_rate) if exchange_rate is not None else None,
        breakdown=entries,
    )


@pytest.fixture
def two_lots() -> list[PurchaseLot]:
    """Two purchases of the same instrument: 10 @ 100 and 5 @ 130."""
    return [
        make_lot(id="1", quantity="10", purchase_price="100", purchase_date=date(2024, 1, 1)),
        make_lot(id="2", quantity="5", purchase_price="130", purchase_date=date(2024, 3, 1)),
    ]
