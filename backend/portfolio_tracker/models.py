# backend/portfolio_tracker/models.py
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, Enum, Integer, Numeric, JSON, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from portfolio_tracker.services.valuation.types import AssetType


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LotRow(Base):
    """
    Stored purchase lot.

    Rows are never physically deleted: deleted_at marks a lot removed from
    the portfolio, and clearing it restores the lot.
    """
    __tablename__ = "lots"
    __table_args__ = (
        Index("ix_lots_instrument_key", "instrument_key"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, default=0)  # list order within the portfolio
    instrument_key: Mapped[str | None] = mapped_column(String, nullable=True)
    name: Mapped[str] = mapped_column(String)
    asset_type: Mapped[AssetType] = mapped_column(Enum(AssetType))
    # Numeric(18, 8) supports values up to 9,999,999,999.99999999
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    purchase_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    purchase_date: Mapped[date] = mapped_column(Date)
    currency: Mapped[str] = mapped_column(String(3), default="JPY")
    current_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    symbol: Mapped[str | None] = mapped_column(String, nullable=True)
    isin_cd: Mapped[str | None] = mapped_column(String, nullable=True)
    associ_fund_cd: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)


class SaleRow(Base):
    __tablename__ = "sales"
    __table_args__ = (
        Index("ix_sales_original_asset_id", "original_asset_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    original_asset_id: Mapped[str] = mapped_column(String(64))  # lot id, not the holding
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    purchase_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))  # cost basis snapshot at sale time
    sell_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    sell_date: Mapped[date] = mapped_column(Date)
    currency: Mapped[str] = mapped_column(String(3), default="JPY")
    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)


class DividendRow(Base):
    __tablename__ = "dividends"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    asset_id: Mapped[str] = mapped_column(String(64))
    received_on: Mapped[date] = mapped_column(Date)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))  # reporting currency
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)


class DailySnapshotRow(Base):
    """
    One row per calendar date.

    breakdown: {holding_key: {"value": "1050.00", "quantity": "10"}}
    Decimals are stored as strings inside JSON to keep them exact.
    """
    __tablename__ = "daily_snapshots"

    snapshot_date: Mapped[date] = mapped_column(Date, primary_key=True)
    total_value: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    total_value_usd: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)
    breakdown: Mapped[dict] = mapped_column(JSON, default=dict)
    cumulative_dividends: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal(0))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class TagRow(Base):
    __tablename__ = "tags"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    color: Mapped[str] = mapped_column(String(16))
    position: Mapped[int] = mapped_column(Integer, default=0)


class CollectionVersion(Base):
    """Version counter per stored collection, bumped on every successful write."""
    __tablename__ = "collection_versions"

    collection: Mapped[str] = mapped_column(String(32), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, default=0)
