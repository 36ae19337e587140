# backend/portfolio_tracker/services/valuation/types.py
"""
Internal data types for the valuation core.

These dataclasses are used by the ledger, consolidator and engines.
They are NOT Pydantic schemas - those are defined in
portfolio_tracker/schemas/ for API serialization.

Design Principles:
- Immutable value objects (frozen=True), collections as tuples/frozensets
- Decimal for ALL financial values and quantities (never float)
- date (not datetime) for purchase, sale and snapshot dates
- Optional fields use None, not sentinel values
- Degraded computations are flagged and carry warnings, never raise

Type Hierarchy:
    PurchaseLot          - One purchase event (persisted)
    SaleRecord           - One sale against a specific lot (persisted)
    DividendRecord       - Income record, reporting only (persisted)
    ConsolidatedHolding  - All lots of one instrument (derived, never persisted)
    DailySnapshot        - Historical total + per-holding breakdown (persisted)
    HoldingValuation     - Current value / cost / unrealized P&L for one holding
    PortfolioValuation   - Aggregate of HoldingValuation
    PeriodComparison     - Period-over-period change
    ComparisonUnavailable - Explicit "could not compute" result
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

ZERO = Decimal("0")


# =============================================================================
# ENUMS
# =============================================================================

class AssetType(str, enum.Enum):
    STOCK = "stock"
    ETF = "etf"
    FUND = "fund"
    CRYPTO = "crypto"
    OTHER = "other"


class PeriodType(str, enum.Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"  # year-to-date


class InstrumentKeyPolicy(str, enum.Enum):
    """
    How lots are grouped into one holding.

    IDENTIFIER: stable key assigned at lot creation (symbol, then ISIN,
                then name). Renaming a holding does not regroup it.
    NAME:       group by display name. Lets a user merge differently
                sourced lots by giving them the same name.
    """
    IDENTIFIER = "identifier"
    NAME = "name"


def derive_instrument_key(
        symbol: str | None,
        isin_cd: str | None,
        name: str,
) -> str:
    """Stable identity for a new lot: symbol, else ISIN, else display name."""
    if symbol and symbol.strip():
        return symbol.strip().upper()
    if isin_cd and isin_cd.strip():
        return isin_cd.strip().upper()
    return name.strip()


# =============================================================================
# PERSISTED RECORDS
# =============================================================================

@dataclass(frozen=True)
class PurchaseLot:
    """
    One purchase event of an instrument.

    Prices are per unit in the lot's native currency. Invariants
    (quantity > 0, purchase_price > 0, purchase_date not in the future)
    are enforced by portfolio_editor, not here.

    Attributes:
        id: Unique, immutable lot id
        name: Display name
        asset_type: stock | etf | fund | crypto | other
        quantity: Original purchased quantity (never reduced by sales)
        purchase_price: Unit price paid
        purchase_date: Trade date
        currency: Native currency (ISO 4217)
        current_price: Latest known unit price, None if never fetched
        tags: User labels
        symbol: Ticker for tradables
        isin_cd / associ_fund_cd: Fund identifiers
        instrument_key: Stable identity assigned at creation
    """

    id: str
    name: str
    asset_type: AssetType
    quantity: Decimal
    purchase_price: Decimal
    purchase_date: date
    currency: str = "JPY"
    current_price: Decimal | None = None
    tags: frozenset[str] = frozenset()
    symbol: str | None = None
    isin_cd: str | None = None
    associ_fund_cd: str | None = None
    instrument_key: str | None = None

    @property
    def effective_price(self) -> Decimal:
        """current_price, or purchase_price when no quote was ever stored."""
        return self.current_price if self.current_price is not None else self.purchase_price

    @property
    def quote_ref(self) -> str | None:
        """Identifier the quote collaborator is asked about."""
        if self.asset_type == AssetType.FUND:
            return self.isin_cd
        return self.symbol

    def identity(self, policy: InstrumentKeyPolicy) -> str:
        """Consolidation key under the given policy."""
        if policy == InstrumentKeyPolicy.NAME:
            return self.name
        return self.instrument_key or derive_instrument_key(self.symbol, self.isin_cd, self.name)


@dataclass(frozen=True)
class SaleRecord:
    """
    One sale against a specific originating lot.

    purchase_price is the lot's unit cost copied at sale time, so later
    price corrections on the lot do not rewrite realized profit.

    Attributes:
        exchange_rate: Rate to the reporting currency at sale time
                       (None for reporting-currency sales)
    """

    id: str
    original_asset_id: str
    quantity: Decimal
    purchase_price: Decimal
    sell_price: Decimal
    sell_date: date
    currency: str = "JPY"
    exchange_rate: Decimal | None = None
    name: str | None = None

    @property
    def profit(self) -> Decimal:
        """Realized profit in native currency."""
        return (self.sell_price - self.purchase_price) * self.quantity

    @property
    def profit_reporting(self) -> Decimal:
        """Realized profit converted at the sale-time rate."""
        rate = self.exchange_rate if self.exchange_rate is not None else Decimal("1")
        return (self.profit * rate).quantize(Decimal("0.01"))

    @property
    def profit_percent(self) -> Decimal:
        if self.purchase_price == ZERO:
            return ZERO
        return ((self.sell_price - self.purchase_price) / self.purchase_price * 100).quantize(
            Decimal("0.01")
        )


@dataclass(frozen=True)
class DividendRecord:
    """Dividend received, already in reporting currency. Not used in valuation."""

    id: str
    asset_id: str
    received_on: date
    amount: Decimal


# =============================================================================
# CONSOLIDATED HOLDINGS
# =============================================================================

@dataclass(frozen=True)
class PurchaseRecord:
    """One constituent lot as seen from its consolidated holding."""

    lot_id: str
    purchase_date: date
    quantity: Decimal
    purchase_price: Decimal
    sold_quantity: Decimal
    active_quantity: Decimal


@dataclass(frozen=True)
class ConsolidatedHolding:
    """
    Aggregate of all lots sharing one instrument key.

    Recomputed on every read; never persisted.

    Attributes:
        key: Consolidation key (instrument key or name, per policy)
        asset_ids: Constituent lot ids in processing order
        quantity: Sum of original lot quantities
        purchase_price: Weighted-average unit cost over ALL constituent lots
        display_quantity: Same as quantity (kept for the presentation layer)
        sold_quantity: Sum of sales against any constituent lot
        active_quantity: display_quantity - sold_quantity
        purchase_records: Constituent lots sorted by purchase date
        purchase_date: Earliest constituent purchase date
        tags: Union of constituent tags
        current_price: Last non-null current price in processing order
    """

    key: str
    name: str
    asset_type: AssetType
    currency: str
    asset_ids: tuple[str, ...]
    quantity: Decimal
    purchase_price: Decimal
    display_quantity: Decimal
    sold_quantity: Decimal
    active_quantity: Decimal
    purchase_records: tuple[PurchaseRecord, ...]
    purchase_date: date
    tags: frozenset[str] = frozenset()
    current_price: Decimal | None = None
    symbol: str | None = None
    isin_cd: str | None = None
    associ_fund_cd: str | None = None

    @property
    def effective_price(self) -> Decimal:
        return self.current_price if self.current_price is not None else self.purchase_price

    @property
    def has_current_price(self) -> bool:
        return self.current_price is not None


# =============================================================================
# SNAPSHOTS
# =============================================================================

@dataclass(frozen=True)
class SnapshotEntry:
    """One holding's value (reporting currency) and quantity on a snapshot date."""

    value: Decimal
    quantity: Decimal

    @property
    def unit_price(self) -> Decimal | None:
        """Value per unit, None when the quantity is zero."""
        if self.quantity <= ZERO:
            return None
        return self.value / self.quantity


@dataclass(frozen=True)
class DailySnapshot:
    """
    Persisted end-of-day record used as the historical comparison basis.

    Attributes:
        snapshot_date: Calendar date (reporting time zone)
        total_value: Portfolio value in reporting currency
        total_value_usd: Native value of USD-denominated holdings
        exchange_rate: USD rate used that day
        breakdown: Holding key -> SnapshotEntry
        cumulative_dividends: Dividends received up to and including the date
    """

    snapshot_date: date
    total_value: Decimal
    total_value_usd: Decimal | None = None
    exchange_rate: Decimal | None = None
    breakdown: dict[str, SnapshotEntry] = field(default_factory=dict)
    cumulative_dividends: Decimal = ZERO

    def entry(self, key: str) -> SnapshotEntry | None:
        return self.breakdown.get(key)


# =============================================================================
# VALUATION RESULTS
# =============================================================================

@dataclass(frozen=True)
class RateLookup:
    """Rate to the reporting currency, flagged when the fallback of 1 was used."""

    currency: str
    rate: Decimal
    is_fallback: bool = False


@dataclass
class HoldingValuation:
    """
    Current valuation of one consolidated holding in reporting currency.

    Attributes:
        active_quantity: Quantity valued (negative ledger results clamped to 0)
        price: Unit price used, native currency
        rate: Conversion rate used
        value: price x active_quantity x rate
        cost_basis: purchase_price x active_quantity x rate
        unrealized_pnl: value - cost_basis
        used_purchase_price: No current price was available
        used_fallback_rate: No rate was available, 1 was used
        warnings: Data quality notes
    """

    key: str
    name: str
    currency: str
    active_quantity: Decimal
    price: Decimal
    rate: Decimal
    value: Decimal
    cost_basis: Decimal
    unrealized_pnl: Decimal
    unrealized_pnl_percent: Decimal
    used_purchase_price: bool = False
    used_fallback_rate: bool = False
    warnings: list[str] = field(default_factory=list)


@dataclass
class PortfolioValuation:
    """Aggregate valuation; fully sold holdings are absent from `holdings`."""

    reporting_currency: str
    total_value: Decimal
    total_cost_basis: Decimal
    total_unrealized_pnl: Decimal
    total_unrealized_pnl_percent: Decimal
    holdings: list[HoldingValuation] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def has_fallbacks(self) -> bool:
        """True if any holding was valued with a fallback price or rate."""
        return any(h.used_purchase_price or h.used_fallback_rate for h in self.holdings)


# =============================================================================
# PERIOD COMPARISON RESULTS
# =============================================================================

@dataclass(frozen=True)
class HoldingChange:
    """
    Per-holding change over the period.

    Attributes:
        change: unit_price_change x current active quantity
        change_percent: unit_price_change / comparison_unit_price x 100
        comparison_date: Snapshot date actually compared against, None if
                         no usable snapshot existed (change is then zero)
    """

    key: str
    change: Decimal
    change_percent: Decimal
    comparison_date: date | None = None
    current_unit_price: Decimal | None = None
    comparison_unit_price: Decimal | None = None


@dataclass(frozen=True)
class PeriodComparison:
    period: PeriodType
    total_change: Decimal
    total_change_percent: Decimal
    per_holding: dict[str, HoldingChange]
    comparison_date: date
    is_realtime: bool
    current_total: Decimal

    @property
    def is_available(self) -> bool:
        return True


@dataclass(frozen=True)
class ComparisonUnavailable:
    """No comparison could be computed. Distinct from a zero change."""

    reason: str

    @property
    def is_available(self) -> bool:
        return False


# =============================================================================
# REPORTING SUMMARIES
# =============================================================================

@dataclass(frozen=True)
class SaleSummary:
    """Realized profit over the sell history, reporting currency."""

    total_profit: Decimal
    count: int


@dataclass(frozen=True)
class AllocationSlice:
    label: str
    value: Decimal
    percentage: Decimal
    holding_keys: tuple[str, ...] = ()
