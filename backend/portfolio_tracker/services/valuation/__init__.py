# backend/portfolio_tracker/services/valuation/__init__.py
"""
Valuation core: consolidation, ledger netting, valuation, period comparison.

Everything in this package is pure and synchronous over already-loaded
data. Storage and quote fetching happen outside (portfolio_store,
market_data); results flow in as plain dataclasses.

Usage:
    from portfolio_tracker.services.valuation import (
        PortfolioConsolidator,
        CurrencyConverter,
        ValuationEngine,
        PeriodComparisonEngine,
    )

    holdings = PortfolioConsolidator().consolidate(lots, sales)
    engine = ValuationEngine(CurrencyConverter("JPY", {"USD": Decimal("150")}))
    valuation = engine.value_portfolio(holdings)
    comparison = PeriodComparisonEngine(engine).compare(holdings, snapshots, PeriodType.DAY)

Architecture:
    valuation/
    ├── __init__.py        # This file - package exports
    ├── types.py           # Domain dataclasses
    ├── ledger.py          # LotLedger (sold / active quantity)
    ├── consolidator.py    # PortfolioConsolidator
    ├── currency.py        # CurrencyConverter
    ├── calculators.py     # ValuationEngine, summarize_sales
    ├── comparison.py      # PeriodComparisonEngine
    ├── allocation.py      # Allocation / tag breakdowns
    └── snapshots.py       # DailySnapshot builder

Data Flow:
    Lots + Sales → LotLedger → PortfolioConsolidator → Holdings
    Holdings + Rates → ValuationEngine → PortfolioValuation
    Holdings + Snapshots → PeriodComparisonEngine → PeriodComparison
"""

from portfolio_tracker.services.valuation.allocation import (
    UNTAGGED,
    AllocationGroup,
    all_tags,
    allocation_by,
    holdings_with_tag,
)
from portfolio_tracker.services.valuation.calculators import ValuationEngine, summarize_sales
from portfolio_tracker.services.valuation.comparison import PeriodComparisonEngine
from portfolio_tracker.services.valuation.consolidator import PortfolioConsolidator
from portfolio_tracker.services.valuation.currency import CurrencyConverter
from portfolio_tracker.services.valuation.ledger import LotLedger
from portfolio_tracker.services.valuation.snapshots import build_snapshot
from portfolio_tracker.services.valuation.types import (
    AllocationSlice,
    AssetType,
    ComparisonUnavailable,
    ConsolidatedHolding,
    DailySnapshot,
    DividendRecord,
    HoldingChange,
    HoldingValuation,
    InstrumentKeyPolicy,
    PeriodComparison,
    PeriodType,
    PortfolioValuation,
    PurchaseLot,
    PurchaseRecord,
    RateLookup,
    SaleRecord,
    SaleSummary,
    SnapshotEntry,
    derive_instrument_key,
)

__all__ = [
    # Engines
    "LotLedger",
    "PortfolioConsolidator",
    "CurrencyConverter",
    "ValuationEngine",
    "PeriodComparisonEngine",
    # Helpers
    "summarize_sales",
    "build_snapshot",
    "allocation_by",
    "holdings_with_tag",
    "all_tags",
    "derive_instrument_key",
    "UNTAGGED",
    # Types
    "AllocationGroup",
    "AllocationSlice",
    "AssetType",
    "ComparisonUnavailable",
    "ConsolidatedHolding",
    "DailySnapshot",
    "DividendRecord",
    "HoldingChange",
    "HoldingValuation",
    "InstrumentKeyPolicy",
    "PeriodComparison",
    "PeriodType",
    "PortfolioValuation",
    "PurchaseLot",
    "PurchaseRecord",
    "RateLookup",
    "SaleRecord",
    "SaleSummary",
    "SnapshotEntry",
]
