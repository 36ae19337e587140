# backend/portfolio_tracker/routers/lots.py
"""
Edit endpoints for lots, holdings, sales and dividends.

- POST   /lots                  - Add a purchase lot
- PATCH  /lots/{id}             - Edit one lot
- DELETE /lots/{id}?confirm=    - Delete one lot (requires confirm=true)
- POST   /lots/{id}/restore     - Bring a deleted lot back
- POST   /lots/{id}/sell        - Record a sale from one lot
- PATCH  /holdings              - Edit every lot of a holding
- PATCH  /sales/{id}            - Edit a sale (quantity, price, date)
- DELETE /sales/{id}            - Remove a sale (quantity returns to the lot)
- POST   /dividends             - Record a dividend
- PATCH  /dividends/{id}        - Edit a dividend
- DELETE /dividends/{id}        - Remove a dividend

Every lot / sale mutation accepts an optional `expected_version` query
parameter. When given, the write fails with 409 if the collection changed
since the client read it.
"""

from fastapi import APIRouter, Depends, Query, status

from portfolio_tracker.dependencies import get_portfolio_service
from portfolio_tracker.routers.portfolio import map_sale
from portfolio_tracker.schemas.lots import (
    DividendCreate,
    DividendResponse,
    DividendUpdate,
    HoldingUpdate,
    LotCreate,
    LotResponse,
    LotUpdate,
    SaleResponse,
    SaleUpdate,
    SellRequest,
)
from portfolio_tracker.schemas.portfolio import HoldingResponse
from portfolio_tracker.services.portfolio_service import PortfolioService

router = APIRouter(tags=["Lots"])

_VERSION_QUERY = Query(
    default=None,
    ge=0,
    description="Collection version the client last read (optimistic concurrency)"
)


# =============================================================================
# LOTS
# =============================================================================

@router.post(
    "/lots",
    response_model=LotResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a purchase lot",
)
def create_lot(
        payload: LotCreate,
        expected_version: int | None = _VERSION_QUERY,
        service: PortfolioService = Depends(get_portfolio_service),
) -> LotResponse:
    """
    Add a purchase lot.

    Funds need `isin_cd` and `associ_fund_cd`; stocks, ETFs and crypto need
    a `symbol`. Lots of the same instrument are merged into one holding.
    """
    lot = service.add_lot(expected_version=expected_version, **payload.model_dump())
    return LotResponse.model_validate(lot)


@router.patch("/lots/{lot_id}", response_model=LotResponse, summary="Edit a lot")
def update_lot(
        lot_id: str,
        payload: LotUpdate,
        expected_version: int | None = _VERSION_QUERY,
        service: PortfolioService = Depends(get_portfolio_service),
) -> LotResponse:
    """Quantity cannot go below what has already been sold from the lot."""
    lot = service.edit_lot(
        lot_id,
        expected_version=expected_version,
        **payload.model_dump(exclude_unset=True),
    )
    return LotResponse.model_validate(lot)


@router.delete(
    "/lots/{lot_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a lot",
)
def delete_lot(
        lot_id: str,
        confirm: bool = Query(default=False, description="Must be true to delete"),
        expected_version: int | None = _VERSION_QUERY,
        service: PortfolioService = Depends(get_portfolio_service),
) -> None:
    """Raises **409** unless `confirm=true`. Deleted lots can be restored."""
    service.delete_lot(lot_id, confirm=confirm, expected_version=expected_version)


@router.post("/lots/{lot_id}/restore", response_model=LotResponse, summary="Restore a lot")
def restore_lot(
        lot_id: str,
        expected_version: int | None = _VERSION_QUERY,
        service: PortfolioService = Depends(get_portfolio_service),
) -> LotResponse:
    return LotResponse.model_validate(
        service.restore_lot(lot_id, expected_version=expected_version)
    )


@router.post(
    "/lots/{lot_id}/sell",
    response_model=SaleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Sell from a lot",
)
def sell_lot(
        lot_id: str,
        payload: SellRequest,
        expected_version: int | None = _VERSION_QUERY,
        service: PortfolioService = Depends(get_portfolio_service),
) -> SaleResponse:
    """
    Record a sale. The lot itself is not modified; its active quantity
    drops by the sold amount.

    Raises **400** when selling more than the lot's active quantity or
    before its purchase date.
    """
    sale = service.sell(
        lot_id,
        quantity=payload.quantity,
        sell_price=payload.sell_price,
        sell_date=payload.sell_date,
        expected_version=expected_version,
    )
    return map_sale(sale)


# =============================================================================
# HOLDINGS
# =============================================================================

@router.patch("/holdings", response_model=HoldingResponse, summary="Edit a holding")
def update_holding(
        payload: HoldingUpdate,
        expected_version: int | None = _VERSION_QUERY,
        service: PortfolioService = Depends(get_portfolio_service),
) -> HoldingResponse:
    """Name, identifiers, price and tags are applied to every lot of the holding."""
    fields = payload.model_dump(exclude_unset=True)
    key = fields.pop("key")
    holding = service.edit_holding(key, expected_version=expected_version, **fields)
    return HoldingResponse.model_validate(holding)


# =============================================================================
# SALES
# =============================================================================

@router.patch("/sales/{sale_id}", response_model=SaleResponse, summary="Edit a sale")
def update_sale(
        sale_id: str,
        payload: SaleUpdate,
        expected_version: int | None = _VERSION_QUERY,
        service: PortfolioService = Depends(get_portfolio_service),
) -> SaleResponse:
    """
    The quantity may grow up to the lot's active quantity plus this sale's
    own quantity; realized profit is recomputed.
    """
    sale = service.edit_sale(
        sale_id,
        expected_version=expected_version,
        **payload.model_dump(exclude_unset=True),
    )
    return map_sale(sale)


@router.delete(
    "/sales/{sale_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a sale",
)
def delete_sale(
        sale_id: str,
        expected_version: int | None = _VERSION_QUERY,
        service: PortfolioService = Depends(get_portfolio_service),
) -> None:
    service.delete_sale(sale_id, expected_version=expected_version)


# =============================================================================
# DIVIDENDS
# =============================================================================

@router.post(
    "/dividends",
    response_model=DividendResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a dividend",
)
def create_dividend(
        payload: DividendCreate,
        service: PortfolioService = Depends(get_portfolio_service),
) -> DividendResponse:
    dividend = service.add_dividend(
        asset_id=payload.asset_id,
        received_on=payload.received_on,
        amount=payload.amount,
    )
    return DividendResponse.model_validate(dividend)


@router.patch(
    "/dividends/{dividend_id}",
    response_model=DividendResponse,
    summary="Edit a dividend",
)
def update_dividend(
        dividend_id: str,
        payload: DividendUpdate,
        service: PortfolioService = Depends(get_portfolio_service),
) -> DividendResponse:
    dividend = service.edit_dividend(dividend_id, **payload.model_dump(exclude_unset=True))
    return DividendResponse.model_validate(dividend)


@router.delete(
    "/dividends/{dividend_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a dividend",
)
def delete_dividend(
        dividend_id: str,
        service: PortfolioService = Depends(get_portfolio_service),
) -> None:
    service.delete_dividend(dividend_id)
