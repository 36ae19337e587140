# backend/portfolio_tracker/routers/portfolio.py
"""
Portfolio read endpoints.

- GET  /holdings           - Consolidated holdings
- GET  /valuation          - Valuation in the reporting currency
- GET  /comparison         - Change versus day / week / month / year
- GET  /allocation         - Share of value per name, type, currency or tag
- GET  /sales              - Sale history
- GET  /sales/summary      - Realized profit totals
- GET  /dividends          - Dividend history and total
- POST /prices/refresh     - Refresh prices and rates, record today's snapshot
"""

from fastapi import APIRouter, Depends, Query

from portfolio_tracker.dependencies import get_portfolio_service
from portfolio_tracker.schemas.lots import (
    DividendListResponse,
    DividendResponse,
    SaleResponse,
    SaleSummaryResponse,
)
from portfolio_tracker.schemas.portfolio import (
    AllocationSliceResponse,
    ComparisonResponse,
    HoldingChangeResponse,
    HoldingResponse,
    HoldingValuationResponse,
    PortfolioValuationResponse,
    RefreshResponse,
)
from portfolio_tracker.services.portfolio_service import PortfolioService
from portfolio_tracker.services.valuation import (
    AllocationGroup,
    ComparisonUnavailable,
    PeriodComparison,
    PeriodType,
    PortfolioValuation,
    SaleRecord,
)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(tags=["Portfolio"])


# =============================================================================
# MAPPER FUNCTIONS (Internal Types -> Pydantic Schemas)
# =============================================================================

def map_sale(sale: SaleRecord) -> SaleResponse:
    """Map internal SaleRecord to Pydantic schema."""
    return SaleResponse(
        id=sale.id,
        original_asset_id=sale.original_asset_id,
        name=sale.name,
        quantity=sale.quantity,
        purchase_price=sale.purchase_price,
        sell_price=sale.sell_price,
        sell_date=sale.sell_date,
        currency=sale.currency,
        exchange_rate=sale.exchange_rate,
        profit=sale.profit,
        profit_reporting=sale.profit_reporting,
        profit_percent=sale.profit_percent,
    )


def _map_valuation(valuation: PortfolioValuation) -> PortfolioValuationResponse:
    return PortfolioValuationResponse(
        reporting_currency=valuation.reporting_currency,
        total_value=valuation.total_value,
        total_cost_basis=valuation.total_cost_basis,
        total_unrealized_pnl=valuation.total_unrealized_pnl,
        total_unrealized_pnl_percent=valuation.total_unrealized_pnl_percent,
        has_fallbacks=valuation.has_fallbacks,
        holdings=[HoldingValuationResponse.model_validate(h) for h in valuation.holdings],
        warnings=valuation.warnings,
    )


def _map_comparison(
        period: PeriodType,
        result: PeriodComparison | ComparisonUnavailable,
) -> ComparisonResponse:
    """Map a comparison; unavailable results keep only the reason."""
    if not result.is_available:
        return ComparisonResponse(period=period, available=False, reason=result.reason)
    return ComparisonResponse(
        period=period,
        available=True,
        total_change=result.total_change,
        total_change_percent=result.total_change_percent,
        comparison_date=result.comparison_date,
        is_realtime=result.is_realtime,
        current_total=result.current_total,
        per_holding={
            key: HoldingChangeResponse.model_validate(change)
            for key, change in result.per_holding.items()
        },
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get(
    "/holdings",
    response_model=list[HoldingResponse],
    summary="List consolidated holdings",
)
def list_holdings(
        service: PortfolioService = Depends(get_portfolio_service),
) -> list[HoldingResponse]:
    """
    All lots of the same instrument merged into one holding.

    Fully sold holdings are not listed.
    """
    return [HoldingResponse.model_validate(h) for h in service.holdings()]


@router.get(
    "/valuation",
    response_model=PortfolioValuationResponse,
    summary="Get portfolio valuation",
)
def get_valuation(
        service: PortfolioService = Depends(get_portfolio_service),
) -> PortfolioValuationResponse:
    """
    Current value, cost basis and unrealized P&L in the reporting currency.

    **Note:** `has_fallbacks` is `true` when any holding was valued with its
    purchase price (no current price) or with rate 1 (no known rate).
    """
    return _map_valuation(service.valuation())


@router.get(
    "/comparison",
    response_model=ComparisonResponse,
    summary="Compare against a past snapshot",
)
def get_comparison(
        period: PeriodType = Query(
            default=PeriodType.DAY,
            description="day, week, month or year"
        ),
        service: PortfolioService = Depends(get_portfolio_service),
) -> ComparisonResponse:
    """
    Change of the portfolio and of each holding versus the period's base snapshot.

    Returns `available: false` with a reason when there is no history yet.
    """
    return _map_comparison(period, service.comparison(period))


@router.get(
    "/allocation",
    response_model=list[AllocationSliceResponse],
    summary="Allocation breakdown",
)
def get_allocation(
        group_by: AllocationGroup = Query(
            default=AllocationGroup.TYPE,
            description="name, type, currency or tag"
        ),
        service: PortfolioService = Depends(get_portfolio_service),
) -> list[AllocationSliceResponse]:
    return [AllocationSliceResponse.model_validate(s) for s in service.allocation(group_by)]


@router.get("/sales", response_model=list[SaleResponse], summary="Sale history")
def list_sales(
        service: PortfolioService = Depends(get_portfolio_service),
) -> list[SaleResponse]:
    """Recorded sales, newest first."""
    return [map_sale(s) for s in service.sales()]


@router.get("/sales/summary", response_model=SaleSummaryResponse, summary="Realized profit")
def get_sale_summary(
        service: PortfolioService = Depends(get_portfolio_service),
) -> SaleSummaryResponse:
    summary = service.sale_summary()
    return SaleSummaryResponse(total_profit=summary.total_profit, count=summary.count)


@router.get("/dividends", response_model=DividendListResponse, summary="Dividend history")
def list_dividends(
        holding: str | None = Query(
            default=None,
            description="Only the total for this holding key"
        ),
        service: PortfolioService = Depends(get_portfolio_service),
) -> DividendListResponse:
    dividends = service.dividends()
    if holding is not None:
        lot_ids = set(service.holding(holding).asset_ids)
        dividends = [d for d in dividends if d.asset_id in lot_ids]
    return DividendListResponse(
        total=service.dividend_total(holding),
        dividends=[DividendResponse.model_validate(d) for d in dividends],
    )


@router.post(
    "/prices/refresh",
    response_model=RefreshResponse,
    summary="Refresh prices and rates",
)
def refresh_prices(
        service: PortfolioService = Depends(get_portfolio_service),
) -> RefreshResponse:
    """
    Fetch current prices and rates, then record today's snapshot.

    Individual quote failures are reported in `errors`, they do not fail
    the request.
    """
    result = service.refresh_prices()
    return RefreshResponse(
        updated=result.updated,
        rates=result.rates,
        market_open=result.market_open,
        errors=result.errors,
        refreshed_at=service.market_state.refreshed_at,
    )
