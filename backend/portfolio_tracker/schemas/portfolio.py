# backend/portfolio_tracker/schemas/portfolio.py
"""
Pydantic schemas for holdings, valuation and period comparison.

These schemas handle:
- Consolidated holdings with their purchase history
- Portfolio valuation (per holding and totals, fallback flags)
- Period comparison (available or unavailable)
- Allocation breakdowns
- Price refresh results
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portfolio_tracker.services.valuation.types import AssetType, PeriodType


# =============================================================================
# HOLDING SCHEMAS
# =============================================================================

class PurchaseRecordResponse(BaseModel):
    """One lot inside a consolidated holding."""

    model_config = ConfigDict(from_attributes=True)

    lot_id: str
    purchase_date: date
    quantity: Decimal
    purchase_price: Decimal
    sold_quantity: Decimal
    active_quantity: Decimal


class HoldingResponse(BaseModel):
    """All lots of one instrument, merged."""

    model_config = ConfigDict(from_attributes=True)

    key: str
    name: str
    asset_type: AssetType
    currency: str
    asset_ids: list[str]
    quantity: Decimal = Field(..., description="Purchased units across all lots")
    purchase_price: Decimal = Field(..., description="Weighted average purchase price")
    sold_quantity: Decimal
    active_quantity: Decimal
    purchase_date: date = Field(..., description="Earliest purchase date")
    purchase_records: list[PurchaseRecordResponse]
    tags: list[str]
    current_price: Decimal | None
    symbol: str | None
    isin_cd: str | None
    associ_fund_cd: str | None

    @field_validator('tags', mode='before')
    @classmethod
    def sort_tags(cls, v) -> list[str]:
        return sorted(v or ())


# =============================================================================
# VALUATION SCHEMAS
# =============================================================================

class HoldingValuationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    name: str
    currency: str
    active_quantity: Decimal
    price: Decimal = Field(..., description="Unit price used, in the holding's currency")
    rate: Decimal = Field(..., description="Rate to the reporting currency")
    value: Decimal
    cost_basis: Decimal
    unrealized_pnl: Decimal
    unrealized_pnl_percent: Decimal
    used_purchase_price: bool = Field(
        ...,
        description="True when no current price was known and the purchase price was used"
    )
    used_fallback_rate: bool = Field(
        ...,
        description="True when no rate was known and 1 was used"
    )
    warnings: list[str]


class PortfolioValuationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reporting_currency: str
    total_value: Decimal
    total_cost_basis: Decimal
    total_unrealized_pnl: Decimal
    total_unrealized_pnl_percent: Decimal
    has_fallbacks: bool
    holdings: list[HoldingValuationResponse]
    warnings: list[str]


# =============================================================================
# COMPARISON SCHEMAS
# =============================================================================

class HoldingChangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    change: Decimal
    change_percent: Decimal
    comparison_date: date | None
    current_unit_price: Decimal | None
    comparison_unit_price: Decimal | None


class ComparisonResponse(BaseModel):
    """
    Period comparison result.

    available=false (with a reason) means there was no history to compare
    against; that is different from an available comparison with zero change.
    """

    period: PeriodType
    available: bool
    reason: str | None = None
    total_change: Decimal | None = None
    total_change_percent: Decimal | None = None
    comparison_date: date | None = None
    is_realtime: bool | None = None
    current_total: Decimal | None = None
    per_holding: dict[str, HoldingChangeResponse] = Field(default_factory=dict)


# =============================================================================
# ALLOCATION / REFRESH SCHEMAS
# =============================================================================

class AllocationSliceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label: str
    value: Decimal
    percentage: Decimal
    holding_keys: list[str]


class RefreshResponse(BaseModel):
    updated: int = Field(..., description="Instruments with a fresh price")
    rates: dict[str, Decimal]
    market_open: dict[str, bool]
    errors: list[str]
    refreshed_at: datetime | None

