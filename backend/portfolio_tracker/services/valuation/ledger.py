# backend/portfolio_tracker/services/valuation/ledger.py
"""
Lot ledger: nets sale records against the lots they were sold from.

Sales reference a specific lot id (SaleRecord.original_asset_id), never a
consolidated holding, so every quantity here is computed per lot first.

The ledger does NOT clamp: a lot oversold through out-of-band edits yields
a negative active quantity. Consumers that display or value quantities
(ValuationEngine) treat negatives as zero and report a warning.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal

from portfolio_tracker.services.valuation.types import ZERO, PurchaseLot, SaleRecord


class LotLedger:
    """Stateless sold/active quantity queries over lots and sale records."""

    def sold_by_lot(self, sales: Iterable[SaleRecord]) -> dict[str, Decimal]:
        """Total sold quantity keyed by originating lot id."""
        sold: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for sale in sales:
            sold[sale.original_asset_id] += sale.quantity
        return dict(sold)

    def active_quantity(self, lot: PurchaseLot, sales: Iterable[SaleRecord]) -> Decimal:
        """lot.quantity minus every sale recorded against lot.id (may be negative)."""
        return lot.quantity - self.sold_by_lot(sales).get(lot.id, ZERO)

    def sold_quantity(self, lot_ids: Iterable[str], sales: Iterable[SaleRecord]) -> Decimal:
        """Sum of sold quantity over all listed lots."""
        sold = self.sold_by_lot(sales)
        return sum((sold.get(lot_id, ZERO) for lot_id in set(lot_ids)), ZERO)

    def violations(
            self,
            lots: Iterable[PurchaseLot],
            sales: Iterable[SaleRecord],
    ) -> list[str]:
        """
        Lots whose cumulative sales exceed their original quantity.

        Returns one human-readable line per violating lot; empty when the
        ledger is consistent.
        """
        sold = self.sold_by_lot(sales)
        problems = []
        for lot in lots:
            sold_qty = sold.get(lot.id, ZERO)
            if sold_qty > lot.quantity:
                problems.append(
                    f"Lot {lot.id} ({lot.name}): sold {sold_qty} exceeds purchased {lot.quantity}"
                )
        return problems
