# backend/portfolio_tracker/services/valuation/consolidator.py
"""
Portfolio consolidator: merges purchase lots into one holding per instrument.

Algorithm (per consolidation key, lots in input order):
    quantity        = Σ lot.quantity
    purchase_price  = Σ(lot.purchase_price × lot.quantity) / quantity
    purchase_date   = min(lot.purchase_date)
    tags            = ∪ lot.tags
    current_price   = last non-null lot.current_price
    sold_quantity   = Σ sales against any constituent lot   (LotLedger)
    active_quantity = quantity - sold_quantity

The weighted average is computed once from running sums of cost and
quantity, so the result is independent of lot order.

Holdings with active_quantity <= 0 are dropped: fully divested
instruments disappear from every consolidated view.

Usage:
    consolidator = PortfolioConsolidator(policy=InstrumentKeyPolicy.IDENTIFIER)
    holdings = consolidator.consolidate(lots, sales)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from portfolio_tracker.services.valuation.ledger import LotLedger
from portfolio_tracker.services.valuation.types import (
    ZERO,
    ConsolidatedHolding,
    InstrumentKeyPolicy,
    PurchaseLot,
    PurchaseRecord,
    SaleRecord,
)

logger = logging.getLogger(__name__)


@dataclass
class _Group:
    """Running aggregate for one key while lots are processed."""

    first: PurchaseLot
    lots: list[PurchaseLot] = field(default_factory=list)
    total_quantity: Decimal = ZERO
    total_cost: Decimal = ZERO
    earliest: date | None = None
    tags: set[str] = field(default_factory=set)
    current_price: Decimal | None = None

    def add(self, lot: PurchaseLot) -> None:
        self.lots.append(lot)
        self.total_quantity += lot.quantity
        self.total_cost += lot.purchase_price * lot.quantity
        if self.earliest is None or lot.purchase_date < self.earliest:
            self.earliest = lot.purchase_date
        self.tags.update(lot.tags)
        if lot.current_price is not None:
            self.current_price = lot.current_price


class PortfolioConsolidator:
    """
    Groups lots by instrument identity and projects them into holdings.

    Pure transform: no I/O, inputs are not mutated, empty input yields an
    empty list. Output order follows the first appearance of each key.
    """

    def __init__(
            self,
            policy: InstrumentKeyPolicy = InstrumentKeyPolicy.IDENTIFIER,
            ledger: LotLedger | None = None,
    ) -> None:
        self.policy = policy
        self.ledger = ledger or LotLedger()

    def key_of(self, lot: PurchaseLot) -> str:
        return lot.identity(self.policy)

    def consolidate(
            self,
            lots: Iterable[PurchaseLot],
            sales: Iterable[SaleRecord] = (),
            include_closed: bool = False,
    ) -> list[ConsolidatedHolding]:
        """
        Build one ConsolidatedHolding per instrument.

        Args:
            lots: Raw purchase lots
            sales: Sale records (matched to lots by original_asset_id)
            include_closed: Keep holdings whose active quantity is <= 0.
                            Only the edit layer needs these.

        Returns:
            Holdings in first-appearance order
        """
        groups: dict[str, _Group] = {}
        for lot in lots:
            key = self.key_of(lot)
            if key not in groups:
                groups[key] = _Group(first=lot)
            groups[key].add(lot)

        sold_by_lot = self.ledger.sold_by_lot(sales)

        holdings: list[ConsolidatedHolding] = []
        for key, group in groups.items():
            holding = self._build(key, group, sold_by_lot)
            if holding.active_quantity <= ZERO and not include_closed:
                logger.debug(f"Holding {key} fully sold, excluded")
                continue
            holdings.append(holding)

        return holdings

    def find(
            self,
            key: str,
            lots: Iterable[PurchaseLot],
            sales: Iterable[SaleRecord] = (),
    ) -> ConsolidatedHolding | None:
        """The holding with this key, including fully sold ones."""
        for holding in self.consolidate(lots, sales, include_closed=True):
            if holding.key == key:
                return holding
        return None

    def _build(
            self,
            key: str,
            group: _Group,
            sold_by_lot: dict[str, Decimal],
    ) -> ConsolidatedHolding:
        first = group.first
        currencies = {lot.currency for lot in group.lots}
        if len(currencies) > 1:
            logger.warning(
                f"Holding {key} mixes currencies {sorted(currencies)}; valuing in {first.currency}"
            )

        records = []
        sold_total = ZERO
        for lot in group.lots:
            sold = sold_by_lot.get(lot.id, ZERO)
            sold_total += sold
            records.append(
                PurchaseRecord(
                    lot_id=lot.id,
                    purchase_date=lot.purchase_date,
                    quantity=lot.quantity,
                    purchase_price=lot.purchase_price,
                    sold_quantity=sold,
                    active_quantity=lot.quantity - sold,
                )
            )
        # stable sort: same-day lots keep processing order
        records.sort(key=lambda r: r.purchase_date)

        average = group.total_cost / group.total_quantity if group.total_quantity else ZERO

        return ConsolidatedHolding(
            key=key,
            name=first.name,
            asset_type=first.asset_type,
            currency=first.currency,
            asset_ids=tuple(lot.id for lot in group.lots),
            quantity=group.total_quantity,
            purchase_price=average,
            display_quantity=group.total_quantity,
            sold_quantity=sold_total,
            active_quantity=group.total_quantity - sold_total,
            purchase_records=tuple(records),
            purchase_date=group.earliest,
            tags=frozenset(group.tags),
            current_price=group.current_price,
            symbol=_first_present(lot.symbol for lot in group.lots),
            isin_cd=_first_present(lot.isin_cd for lot in group.lots),
            associ_fund_cd=_first_present(lot.associ_fund_cd for lot in group.lots),
        )


def _first_present(values: Iterable[str | None]) -> str | None:
    for value in values:
        if value:
            return value
    return None
