# backend/portfolio_tracker/services/valuation/snapshots.py
"""
Daily snapshot builder.

Freezes today's valuation into a DailySnapshot so later period comparisons
have a historical basis. Called by the price-refresh workflow after
current prices were written back onto the lots.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

from portfolio_tracker.services.valuation.calculators import CENT, ValuationEngine
from portfolio_tracker.services.valuation.types import (
    ZERO,
    ConsolidatedHolding,
    DailySnapshot,
    DividendRecord,
    SnapshotEntry,
)


def build_snapshot(
        snapshot_date: date,
        holdings: Sequence[ConsolidatedHolding],
        engine: ValuationEngine,
        dividends: Iterable[DividendRecord] = (),
) -> DailySnapshot:
    """
    Snapshot of the given holdings on snapshot_date.

    Breakdown values are in reporting currency; total_value_usd is the
    native value of USD-denominated holdings; exchange_rate is the USD rate
    the engine converted with (None when USD is the reporting currency).
    """
    breakdown: dict[str, SnapshotEntry] = {}
    total_usd = ZERO

    for holding in holdings:
        quantity = engine.active_quantity(holding)
        if quantity <= ZERO:
            continue
        breakdown[holding.key] = SnapshotEntry(
            value=engine.value_of(holding).quantize(CENT),
            quantity=quantity,
        )
        if holding.currency == "USD":
            total_usd += holding.effective_price * quantity

    usd_rate = None
    if engine.reporting_currency != "USD":
        usd_rate = engine.converter.rates.get("USD")

    cumulative = sum(
        (d.amount for d in dividends if d.received_on <= snapshot_date),
        ZERO,
    )

    return DailySnapshot(
        snapshot_date=snapshot_date,
        total_value=engine.total_value(holdings).quantize(CENT),
        total_value_usd=total_usd.quantize(CENT),
        exchange_rate=usd_rate,
        breakdown=breakdown,
        cumulative_dividends=cumulative.quantize(CENT),
    )
