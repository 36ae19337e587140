# backend/portfolio_tracker/schemas/lots.py
"""
Pydantic schemas for the edit surface.

These schemas handle:
- Purchase lot create / update
- Consolidated holding update
- Sales and dividends
- Tags

Requests only normalize and type-check. Business rules (oversell, sell
before purchase, fund identifiers, future dates) are enforced by the
service layer and reported as InvalidInputError (400).
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portfolio_tracker.schemas.validators import (
    clean_tags,
    normalize_identifier,
    validate_currency,
)
from portfolio_tracker.services.valuation.types import AssetType


# =============================================================================
# LOT SCHEMAS
# =============================================================================

class LotCreate(BaseModel):
    """Request body for POST /lots."""

    name: str = Field(..., min_length=1, max_length=200, examples=["Apple"])
    asset_type: AssetType = Field(..., description="stock, etf, fund, crypto or other")
    quantity: Decimal = Field(..., gt=0, description="Purchased units")
    purchase_price: Decimal = Field(
        ...,
        gt=0,
        description="Unit price paid, in the lot's currency"
    )
    purchase_date: date
    currency: str = Field(default="JPY", examples=["JPY", "USD"])
    symbol: str | None = Field(default=None, examples=["AAPL", "7203.T"])
    isin_cd: str | None = Field(default=None, description="ISIN (required for funds)")
    associ_fund_cd: str | None = Field(
        default=None,
        description="Association fund code (required for funds)"
    )
    tags: list[str] = Field(default_factory=list)
    current_price: Decimal | None = Field(default=None, gt=0)

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return validate_currency(v)

    @field_validator('symbol', 'isin_cd', 'associ_fund_cd')
    @classmethod
    def normalize_identifiers(cls, v: str | None) -> str | None:
        return normalize_identifier(v)

    @field_validator('tags')
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        return clean_tags(v)


class LotUpdate(BaseModel):
    """Request body for PATCH /lots/{id}. Omitted fields are unchanged."""

    quantity: Decimal | None = Field(default=None, gt=0)
    purchase_price: Decimal | None = Field(default=None, gt=0)
    purchase_date: date | None = None
    current_price: Decimal | None = Field(default=None, gt=0)


class HoldingUpdate(BaseModel):
    """
    Request body for PATCH /holdings.

    Applies to every lot of the holding identified by `key`.
    """

    key: str = Field(..., min_length=1, description="Holding key as returned by GET /holdings")
    name: str | None = Field(default=None, min_length=1, max_length=200)
    symbol: str | None = None
    isin_cd: str | None = None
    associ_fund_cd: str | None = None
    current_price: Decimal | None = Field(default=None, gt=0)
    tags: list[str] | None = None

    @field_validator('symbol', 'isin_cd', 'associ_fund_cd')
    @classmethod
    def normalize_identifiers(cls, v: str | None) -> str | None:
        return normalize_identifier(v)

    @field_validator('tags')
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str] | None:
        return clean_tags(v)


class LotResponse(BaseModel):
    """One purchase lot."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    asset_type: AssetType
    quantity: Decimal
    purchase_price: Decimal
    purchase_date: date
    currency: str
    current_price: Decimal | None
    tags: list[str]
    symbol: str | None
    isin_cd: str | None
    associ_fund_cd: str | None
    instrument_key: str | None

    @field_validator('tags', mode='before')
    @classmethod
    def sort_tags(cls, v) -> list[str]:
        return sorted(v or ())


# =============================================================================
# SALE SCHEMAS
# =============================================================================

class SellRequest(BaseModel):
    """Request body for POST /lots/{id}/sell."""

    quantity: Decimal = Field(..., gt=0)
    sell_price: Decimal = Field(..., gt=0, description="Unit sell price in the lot's currency")
    sell_date: date


class SaleUpdate(BaseModel):
    """Request body for PATCH /sales/{id}. Omitted fields are unchanged."""

    quantity: Decimal | None = Field(default=None, gt=0)
    sell_price: Decimal | None = Field(default=None, gt=0)
    sell_date: date | None = None


class SaleResponse(BaseModel):
    """One recorded sale with its realized profit."""

    id: str
    original_asset_id: str
    name: str | None
    quantity: Decimal
    purchase_price: Decimal
    sell_price: Decimal
    sell_date: date
    currency: str
    exchange_rate: Decimal | None
    profit: Decimal = Field(..., description="Realized profit in the sale currency")
    profit_reporting: Decimal = Field(..., description="Realized profit in the reporting currency")
    profit_percent: Decimal


class SaleSummaryResponse(BaseModel):
    total_profit: Decimal
    count: int


# =============================================================================
# DIVIDEND SCHEMAS
# =============================================================================

class DividendCreate(BaseModel):
    """Request body for POST /dividends."""

    asset_id: str = Field(..., min_length=1, description="Lot the dividend belongs to")
    received_on: date
    amount: Decimal = Field(..., gt=0, description="Amount in the reporting currency")


class DividendUpdate(BaseModel):
    """Request body for PATCH /dividends/{id}."""

    received_on: date | None = None
    amount: Decimal | None = Field(default=None, gt=0)


class DividendResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    asset_id: str
    received_on: date
    amount: Decimal


class DividendListResponse(BaseModel):
    total: Decimal
    dividends: list[DividendResponse]


# =============================================================================
# TAG SCHEMAS
# =============================================================================

class TagCreate(BaseModel):
    name: str = Field(..., min_length=1)
    color: str | None = Field(default=None, pattern=r'^#[0-9a-fA-F]{6}$')


class TagRename(BaseModel):
    new_name: str = Field(..., min_length=1)


class TagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    color: str
