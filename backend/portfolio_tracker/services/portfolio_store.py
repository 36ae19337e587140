# backend/portfolio_tracker/services/portfolio_store.py
"""
SQLAlchemy implementation of the portfolio storage contract.

Collections (lots, sales, dividends, tags) are saved as whole lists, the
way the edit layer produces them. Two rules make that safe:

Compare-and-swap:
    Each collection has a version counter. save_*(items, expected_version)
    bumps it with UPDATE ... WHERE version = expected; zero rows updated
    means another writer saved first -> ConcurrentModificationError.
    expected_version=None skips the check (single-writer scripts).

Mark-and-filter deletion:
    An item missing from a saved list is marked deleted_at, never removed.
    load_* hide marked rows; saving an item again (restore) clears the mark.
    A fully sold and deleted lot can therefore be brought back when its
    sale is reversed.

Snapshots are keyed by date and upserted individually.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from portfolio_tracker.models import (
    CollectionVersion,
    DailySnapshotRow,
    DividendRow,
    LotRow,
    SaleRow,
    TagRow,
)
from portfolio_tracker.services.constants import MAX_SNAPSHOT_LOAD, VERSIONED_COLLECTIONS
from portfolio_tracker.services.exceptions import ConcurrentModificationError, LotNotFoundError
from portfolio_tracker.services.tags import Tag, TagRegistry
from portfolio_tracker.services.valuation.types import (
    DailySnapshot,
    DividendRecord,
    PurchaseLot,
    SaleRecord,
    SnapshotEntry,
)

logger = logging.getLogger(__name__)


# =============================================================================
# ROW <-> DOMAIN MAPPERS
# =============================================================================

def _lot_from_row(row: LotRow) -> PurchaseLot:
    return PurchaseLot(
        id=row.id,
        name=row.name,
        asset_type=row.asset_type,
        quantity=Decimal(row.quantity),
        purchase_price=Decimal(row.purchase_price),
        purchase_date=row.purchase_date,
        currency=row.currency,
        current_price=Decimal(row.current_price) if row.current_price is not None else None,
        tags=frozenset(row.tags or ()),
        symbol=row.symbol,
        isin_cd=row.isin_cd,
        associ_fund_cd=row.associ_fund_cd,
        instrument_key=row.instrument_key,
    )


def _lot_values(lot: PurchaseLot) -> dict[str, Any]:
    return {
        "instrument_key": lot.instrument_key,
        "name": lot.name,
        "asset_type": lot.asset_type,
        "quantity": lot.quantity,
        "purchase_price": lot.purchase_price,
        "purchase_date": lot.purchase_date,
        "currency": lot.currency,
        "current_price": lot.current_price,
        "tags": sorted(lot.tags),
        "symbol": lot.symbol,
        "isin_cd": lot.isin_cd,
        "associ_fund_cd": lot.associ_fund_cd,
    }


def _sale_from_row(row: SaleRow) -> SaleRecord:
    return SaleRecord(
        id=row.id,
        original_asset_id=row.original_asset_id,
        quantity=Decimal(row.quantity),
        purchase_price=Decimal(row.purchase_price),
        sell_price=Decimal(row.sell_price),
        sell_date=row.sell_date,
        currency=row.currency,
        exchange_rate=Decimal(row.exchange_rate) if row.exchange_rate is not None else None,
        name=row.name,
    )


def _sale_values(sale: SaleRecord) -> dict[str, Any]:
    return {
        "original_asset_id": sale.original_asset_id,
        "name": sale.name,
        "quantity": sale.quantity,
        "purchase_price": sale.purchase_price,
        "sell_price": sale.sell_price,
        "sell_date": sale.sell_date,
        "currency": sale.currency,
        "exchange_rate": sale.exchange_rate,
    }


def _dividend_from_row(row: DividendRow) -> DividendRecord:
    return DividendRecord(
        id=row.id,
        asset_id=row.asset_id,
        received_on=row.received_on,
        amount=Decimal(row.amount),
    )


def _dividend_values(dividend: DividendRecord) -> dict[str, Any]:
    return {
        "asset_id": dividend.asset_id,
        "received_on": dividend.received_on,
        "amount": dividend.amount,
    }


def _snapshot_from_row(row: DailySnapshotRow) -> DailySnapshot:
    breakdown = {
        key: SnapshotEntry(value=Decimal(entry["value"]), quantity=Decimal(entry["quantity"]))
        for key, entry in (row.breakdown or {}).items()
    }
    return DailySnapshot(
        snapshot_date=row.snapshot_date,
        total_value=Decimal(row.total_value),
        total_value_usd=Decimal(row.total_value_usd) if row.total_value_usd is not None else None,
        exchange_rate=Decimal(row.exchange_rate) if row.exchange_rate is not None else None,
        breakdown=breakdown,
        cumulative_dividends=Decimal(row.cumulative_dividends or 0),
    )


def _breakdown_json(snapshot: DailySnapshot) -> dict[str, dict[str, str]]:
    return {
        key: {"value": str(entry.value), "quantity": str(entry.quantity)}
        for key, entry in snapshot.breakdown.items()
    }


# =============================================================================
# STORE
# =============================================================================

class PortfolioStore:
    """
    Storage collaborator backed by one SQLAlchemy session.

    Each save_* commits. One store instance per request/unit of work.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    # =========================================================================
    # VERSIONS
    # =========================================================================

    def version(self, collection: str) -> int:
        row = self.db.get(CollectionVersion, collection)
        return row.version if row else 0

    def versions(self) -> dict[str, int]:
        return {name: self.version(name) for name in VERSIONED_COLLECTIONS}

    def _claim_version(self, collection: str, expected_version: int | None) -> int:
        """Bump the collection version, failing if it moved since expected_version."""
        if self.db.get(CollectionVersion, collection) is None:
            self.db.add(CollectionVersion(collection=collection, version=0))
            self.db.flush()

        current = self.version(collection)
        if expected_version is not None and expected_version != current:
            self.db.rollback()
            raise ConcurrentModificationError(collection, expected_version, current)

        result = self.db.execute(
            update(CollectionVersion)
            .where(CollectionVersion.collection == collection)
            .where(CollectionVersion.version == current)
            .values(version=current + 1)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise ConcurrentModificationError(collection, current, self.version(collection))
        return current + 1

    # =========================================================================
    # GENERIC LIST SAVE
    # =========================================================================

    def _save_collection(
            self,
            collection: str,
            row_cls: type,
            items: Sequence[Any],
            values_of: Callable[[Any], dict[str, Any]],
            expected_version: int | None,
    ) -> int:
        new_version = self._claim_version(collection, expected_version)
        now = datetime.now(timezone.utc)

        existing = {row.id: row for row in self.db.scalars(select(row_cls)).all()}
        kept_ids = set()

        for position, item in enumerate(items):
            kept_ids.add(item.id)
            values = values_of(item)
            row = existing.get(item.id)
            if row is None:
                self.db.add(row_cls(id=item.id, position=position, **values))
                continue
            for attr, value in values.items():
                setattr(row, attr, value)
            row.position = position
            if row.deleted_at is not None:
                logger.info(f"Restoring {collection} item {item.id}")
                row.deleted_at = None

        for row_id, row in existing.items():
            if row_id not in kept_ids and row.deleted_at is None:
                row.deleted_at = now

        self.db.commit()
        logger.debug(f"Saved {len(items)} {collection} (version {new_version})")
        return new_version

    def _load_active(self, row_cls: type) -> list:
        stmt = select(row_cls).where(row_cls.deleted_at.is_(None)).order_by(row_cls.position)
        return list(self.db.scalars(stmt).all())

    # =========================================================================
    # LOTS
    # =========================================================================

    def load_lots(self) -> list[PurchaseLot]:
        return [_lot_from_row(row) for row in self._load_active(LotRow)]

    def save_lots(self, lots: Sequence[PurchaseLot], expected_version: int | None = None) -> int:
        return self._save_collection("lots", LotRow, lots, _lot_values, expected_version)

    def load_deleted_lots(self) -> list[PurchaseLot]:
        stmt = (
            select(LotRow)
            .where(LotRow.deleted_at.is_not(None))
            .order_by(LotRow.deleted_at.desc())
        )
        return [_lot_from_row(row) for row in self.db.scalars(stmt).all()]

    def restore_lot(self, lot_id: str, expected_version: int | None = None) -> PurchaseLot:
        """Bring a deleted lot back into the portfolio (appended at the end)."""
        row = self.db.get(LotRow, lot_id)
        if row is None or row.deleted_at is None:
            raise LotNotFoundError(lot_id)
        lot = _lot_from_row(row)
        self.save_lots([*self.load_lots(), lot], expected_version=expected_version)
        return lot

    # =========================================================================
    # SALES
    # =========================================================================

    def load_sales(self) -> list[SaleRecord]:
        return [_sale_from_row(row) for row in self._load_active(SaleRow)]

    def save_sales(self, sales: Sequence[SaleRecord], expected_version: int | None = None) -> int:
        return self._save_collection("sales", SaleRow, sales, _sale_values, expected_version)

    # =========================================================================
    # DIVIDENDS
    # =========================================================================

    def load_dividends(self) -> list[DividendRecord]:
        return [_dividend_from_row(row) for row in self._load_active(DividendRow)]

    def save_dividends(
            self,
            dividends: Sequence[DividendRecord],
            expected_version: int | None = None,
    ) -> int:
        return self._save_collection(
            "dividends", DividendRow, dividends, _dividend_values, expected_version
        )

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    def load_snapshots(self, max_count: int | None = None) -> list[DailySnapshot]:
        """Most recent max_count snapshots, ascending by date."""
        limit = min(max_count or MAX_SNAPSHOT_LOAD, MAX_SNAPSHOT_LOAD)
        stmt = (
            select(DailySnapshotRow)
            .order_by(DailySnapshotRow.snapshot_date.desc())
            .limit(limit)
        )
        rows = self.db.scalars(stmt).all()
        return [_snapshot_from_row(row) for row in reversed(rows)]

    def save_snapshot(self, snapshot: DailySnapshot) -> None:
        """Insert or replace the snapshot for its date."""
        row = self.db.get(DailySnapshotRow, snapshot.snapshot_date)
        if row is None:
            row = DailySnapshotRow(snapshot_date=snapshot.snapshot_date)
            self.db.add(row)
        row.total_value = snapshot.total_value
        row.total_value_usd = snapshot.total_value_usd
        row.exchange_rate = snapshot.exchange_rate
        row.breakdown = _breakdown_json(snapshot)
        row.cumulative_dividends = snapshot.cumulative_dividends
        self.db.commit()
        logger.info(f"Snapshot saved for {snapshot.snapshot_date}: {snapshot.total_value}")

    # =========================================================================
    # TAGS
    # =========================================================================

    def load_tags(self) -> TagRegistry:
        rows = self.db.scalars(select(TagRow).order_by(TagRow.position)).all()
        return TagRegistry(tuple(Tag(name=row.name, color=row.color) for row in rows))

    def save_tags(self, registry: TagRegistry, expected_version: int | None = None) -> int:
        """Replace the stored tag list; tags are plain labels, removed ones are dropped."""
        new_version = self._claim_version("tags", expected_version)
        existing = {row.name: row for row in self.db.scalars(select(TagRow)).all()}
        keep = set(registry.names)

        for name, row in existing.items():
            if name not in keep:
                self.db.delete(row)
        for position, tag in enumerate(registry.tags):
            row = existing.get(tag.name)
            if row is None:
                self.db.add(TagRow(name=tag.name, color=tag.color, position=position))
            else:
                row.color = tag.color
                row.position = position

        self.db.commit()
        return new_version
