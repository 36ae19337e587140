# backend/portfolio_tracker/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.

- errors: Error response formats
- lots: Lot, sale, dividend and tag requests/responses
- portfolio: Holdings, valuation, comparison and allocation responses
- validators: Reusable validation functions (currency, identifiers, tags)

Usage:
    from portfolio_tracker.schemas import LotCreate, LotResponse
    from portfolio_tracker.schemas import PortfolioValuationResponse, ComparisonResponse
"""

from portfolio_tracker.schemas.errors import ErrorDetail, ValidationErrorDetail
from portfolio_tracker.schemas.lots import (
    DividendCreate,
    DividendListResponse,
    DividendResponse,
    DividendUpdate,
    HoldingUpdate,
    LotCreate,
    LotResponse,
    LotUpdate,
    SaleResponse,
    SaleUpdate,
    SaleSummaryResponse,
    SellRequest,
    TagCreate,
    TagRename,
    TagResponse,
)
from portfolio_tracker.schemas.portfolio import (
    AllocationSliceResponse,
    ComparisonResponse,
    HoldingChangeResponse,
    HoldingResponse,
    HoldingValuationResponse,
    PortfolioValuationResponse,
    PurchaseRecordResponse,
    RefreshResponse,
)

__all__ = [
    # Errors
    "ErrorDetail",
    "ValidationErrorDetail",
    # Lots / sales / dividends / tags
    "LotCreate",
    "LotUpdate",
    "LotResponse",
    "HoldingUpdate",
    "SellRequest",
    "SaleUpdate",
    "SaleResponse",
    "SaleSummaryResponse",
    "DividendCreate",
    "DividendResponse",
    "DividendUpdate",
    "DividendListResponse",
    "TagCreate",
    "TagRename",
    "TagResponse",
    # Portfolio
    "PurchaseRecordResponse",
    "HoldingResponse",
    "HoldingValuationResponse",
    "PortfolioValuationResponse",
    "HoldingChangeResponse",
    "ComparisonResponse",
    "AllocationSliceResponse",
    "RefreshResponse",
]
