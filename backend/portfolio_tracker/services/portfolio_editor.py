# backend/portfolio_tracker/services/portfolio_editor.py
"""
Validated edit operations on lots, sales and dividends.

Every function here is pure: it takes the current lists, validates the
request and returns NEW lists (plus the created/edited record). Nothing is
persisted; PortfolioService stores the result with a compare-and-swap
write.

Validation is the boundary for InvalidInput errors. The valuation core
assumes everything it receives passed through here and never re-validates.

Rules:
    lot:      quantity > 0, purchase_price > 0, purchase_date <= today,
              funds need isin_cd + associ_fund_cd, other types need a symbol
    edit:     quantity may not drop below what was already sold from the lot
    sale:     0 < quantity <= lot's active quantity, sell_price > 0,
              purchase_date <= sell_date <= today
    sale edit: same, with the edited sale's own quantity counted as open
    delete:   explicit confirm=True for lots
    dividend: amount > 0, asset_id must be a known lot
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import date
from decimal import Decimal

from portfolio_tracker.services.exceptions import (
    ConfirmationRequiredError,
    DividendNotFoundError,
    InvalidInputError,
    LotNotFoundError,
    OversellError,
    SaleNotFoundError,
)
from portfolio_tracker.services.valuation.ledger import LotLedger
from portfolio_tracker.services.valuation.types import (
    ZERO,
    AssetType,
    DividendRecord,
    PurchaseLot,
    SaleRecord,
    derive_instrument_key,
)
from portfolio_tracker.utils.date_utils import is_future, reporting_today

logger = logging.getLogger(__name__)

_ledger = LotLedger()


def new_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def _require_positive(value: Decimal, field: str) -> None:
    if value is None or value <= ZERO:
        raise InvalidInputError(f"{field} must be greater than 0", field=field)


def _require_not_future(value: date, field: str, today: date) -> None:
    if is_future(value, today):
        raise InvalidInputError(f"{field} {value} is in the future", field=field)


def _require_identifiers(
        asset_type: AssetType,
        symbol: str | None,
        isin_cd: str | None,
        associ_fund_cd: str | None,
) -> None:
    if asset_type == AssetType.FUND:
        if not isin_cd or not associ_fund_cd:
            raise InvalidInputError(
                "Fund lots need both isin_cd and associ_fund_cd", field="isin_cd"
            )
    elif asset_type != AssetType.OTHER and not symbol:
        raise InvalidInputError(f"{asset_type.value} lots need a symbol", field="symbol")


def _find_lot(lots: Iterable[PurchaseLot], lot_id: str) -> PurchaseLot:
    for lot in lots:
        if lot.id == lot_id:
            return lot
    raise LotNotFoundError(lot_id)


# =============================================================================
# LOTS
# =============================================================================

def add_lot(
        lots: Sequence[PurchaseLot],
        *,
        name: str,
        asset_type: AssetType,
        quantity: Decimal,
        purchase_price: Decimal,
        purchase_date: date,
        currency: str = "JPY",
        symbol: str | None = None,
        isin_cd: str | None = None,
        associ_fund_cd: str | None = None,
        tags: Iterable[str] = (),
        current_price: Decimal | None = None,
        today: date | None = None,
) -> tuple[list[PurchaseLot], PurchaseLot]:
    """
    Append a new purchase lot.

    The lot gets a fresh id and its stable instrument key (symbol, else
    ISIN, else name) here, once; later renames do not change the key.

    Returns:
        (new lot list, created lot)
    """
    today = today or reporting_today()
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("name must not be empty", field="name")
    _require_positive(quantity, "quantity")
    _require_positive(purchase_price, "purchase_price")
    _require_not_future(purchase_date, "purchase_date", today)
    _require_identifiers(asset_type, symbol, isin_cd, associ_fund_cd)
    if current_price is not None:
        _require_positive(current_price, "current_price")

    lot = PurchaseLot(
        id=new_id(),
        name=name,
        asset_type=asset_type,
        quantity=quantity,
        purchase_price=purchase_price,
        purchase_date=purchase_date,
        currency=currency.upper(),
        current_price=current_price,
        tags=frozenset(t.strip() for t in tags if t and t.strip()),
        symbol=symbol.strip().upper() if symbol else None,
        isin_cd=isin_cd.strip().upper() if isin_cd else None,
        associ_fund_cd=associ_fund_cd.strip() if associ_fund_cd else None,
        instrument_key=derive_instrument_key(symbol, isin_cd, name),
    )
    logger.info(f"Lot added: {lot.id} {lot.name} {lot.quantity} @ {lot.purchase_price}")
    return [*lots, lot], lot


def edit_lot(
        lots: Sequence[PurchaseLot],
        sales: Sequence[SaleRecord],
        lot_id: str,
        *,
        quantity: Decimal | None = None,
        purchase_price: Decimal | None = None,
        purchase_date: date | None = None,
        current_price: Decimal | None = None,
        today: date | None = None,
) -> tuple[list[PurchaseLot], PurchaseLot]:
    """
    Correct a single lot's quantity, price or date.

    Raises:
        LotNotFoundError: Unknown lot_id
        InvalidInputError: Invalid values, or quantity below the sold quantity
    """
    today = today or reporting_today()
    lot = _find_lot(lots, lot_id)
    changes: dict = {}

    if quantity is not None:
        _require_positive(quantity, "quantity")
        sold = _ledger.sold_quantity([lot_id], sales)
        if quantity < sold:
            raise InvalidInputError(
                f"quantity {quantity} is below the {sold} already sold from this lot",
                field="quantity",
            )
        changes["quantity"] = quantity
    if purchase_price is not None:
        _require_positive(purchase_price, "purchase_price")
        changes["purchase_price"] = purchase_price
    if purchase_date is not None:
        _require_not_future(purchase_date, "purchase_date", today)
        changes["purchase_date"] = purchase_date
    if current_price is not None:
        _require_positive(current_price, "current_price")
        changes["current_price"] = current_price

    edited = replace(lot, **changes)
    logger.info(f"Lot edited: {lot_id} {sorted(changes)}")
    return [edited if other.id == lot_id else other for other in lots], edited


def edit_holding(
        lots: Sequence[PurchaseLot],
        asset_ids: Iterable[str],
        *,
        name: str | None = None,
        symbol: str | None = None,
        isin_cd: str | None = None,
        associ_fund_cd: str | None = None,
        current_price: Decimal | None = None,
        tags: Iterable[str] | None = None,
) -> list[PurchaseLot]:
    """
    Apply holding-level fields to every constituent lot.

    instrument_key is left untouched, so a rename never regroups lots
    under the identifier policy.
    """
    ids = set(asset_ids)
    known = {lot.id for lot in lots}
    missing = ids - known
    if missing:
        raise LotNotFoundError(sorted(missing)[0])
    if not ids:
        raise InvalidInputError("asset_ids must not be empty", field="asset_ids")

    changes: dict = {}
    if name is not None:
        if not name.strip():
            raise InvalidInputError("name must not be empty", field="name")
        changes["name"] = name.strip()
    if symbol is not None:
        changes["symbol"] = symbol.strip().upper() or None
    if isin_cd is not None:
        changes["isin_cd"] = isin_cd.strip().upper() or None
    if associ_fund_cd is not None:
        changes["associ_fund_cd"] = associ_fund_cd.strip() or None
    if current_price is not None:
        _require_positive(current_price, "current_price")
        changes["current_price"] = current_price
    if tags is not None:
        changes["tags"] = frozenset(t.strip() for t in tags if t and t.strip())

    logger.info(f"Holding edited: {len(ids)} lots {sorted(changes)}")
    return [replace(lot, **changes) if lot.id in ids else lot for lot in lots]


def delete_lots(
        lots: Sequence[PurchaseLot],
        lot_ids: Iterable[str],
        confirm: bool = False,
) -> list[PurchaseLot]:
    """
    Remove lots from the list.

    Raises:
        ConfirmationRequiredError: confirm is not True
        LotNotFoundError: An id is not in the list
    """
    ids = set(lot_ids)
    if not confirm:
        raise ConfirmationRequiredError("delete lots")
    for lot_id in ids:
        _find_lot(lots, lot_id)
    logger.info(f"Lots deleted: {sorted(ids)}")
    return [lot for lot in lots if lot.id not in ids]


# =============================================================================
# SALES
# =============================================================================

def sell(
        lots: Sequence[PurchaseLot],
        sales: Sequence[SaleRecord],
        lot_id: str,
        *,
        quantity: Decimal,
        sell_price: Decimal,
        sell_date: date,
        exchange_rate: Decimal | None = None,
        today: date | None = None,
) -> tuple[list[SaleRecord], SaleRecord]:
    """
    Record a sale against one lot.

    The lot itself is not modified: its active quantity drops because the
    ledger nets this record against it. The lot's purchase price is copied
    onto the record as the cost basis snapshot.

    Raises:
        LotNotFoundError: Unknown lot_id
        OversellError: quantity exceeds the lot's active quantity
        InvalidInputError: Non-positive values or invalid sell_date
    """
    today = today or reporting_today()
    lot = _find_lot(lots, lot_id)
    _require_positive(quantity, "quantity")
    _require_positive(sell_price, "sell_price")
    _require_not_future(sell_date, "sell_date", today)
    if sell_date < lot.purchase_date:
        raise InvalidInputError(
            f"sell_date {sell_date} is before purchase_date {lot.purchase_date}",
            field="sell_date",
        )

    available = _ledger.active_quantity(lot, sales)
    if quantity > available:
        raise OversellError(lot_id, quantity, max(available, ZERO))

    record = SaleRecord(
        id=new_id(),
        original_asset_id=lot.id,
        quantity=quantity,
        purchase_price=lot.purchase_price,
        sell_price=sell_price,
        sell_date=sell_date,
        currency=lot.currency,
        exchange_rate=exchange_rate,
        name=lot.name,
    )
    logger.info(
        f"Sale recorded: {record.id} lot={lot_id} {quantity} @ {sell_price} "
        f"profit={record.profit} {record.currency}"
    )
    return [*sales, record], record


def delete_sale(sales: Sequence[SaleRecord], sale_id: str) -> list[SaleRecord]:
    """Remove a sale; the lot's active quantity reopens by the sale quantity."""
    if not any(s.id == sale_id for s in sales):
        raise SaleNotFoundError(sale_id)
    logger.info(f"Sale deleted: {sale_id}")
    return [s for s in sales if s.id != sale_id]


def edit_sale(
        lots: Sequence[PurchaseLot],
        sales: Sequence[SaleRecord],
        sale_id: str,
        *,
        quantity: Decimal | None = None,
        sell_price: Decimal | None = None,
        sell_date: date | None = None,
        today: date | None = None,
) -> tuple[list[SaleRecord], SaleRecord]:
    """
    Correct a recorded sale's quantity, price or date.

    The new quantity is checked against the lot with this sale netted back
    in, so it may grow up to the lot's active quantity plus its own current
    quantity. Profit is derived from the record and follows the edit.

    Sales whose lot has since been deleted skip the lot-based checks.

    Raises:
        SaleNotFoundError: Unknown sale_id
        OversellError: quantity exceeds what the lot has open for this sale
        InvalidInputError: Non-positive values or invalid sell_date
    """
    today = today or reporting_today()
    sale = next((s for s in sales if s.id == sale_id), None)
    if sale is None:
        raise SaleNotFoundError(sale_id)
    lot = next((lot for lot in lots if lot.id == sale.original_asset_id), None)
    changes: dict = {}

    if quantity is not None:
        _require_positive(quantity, "quantity")
        if lot is not None:
            others = [s for s in sales if s.id != sale_id]
            available = _ledger.active_quantity(lot, others)
            if quantity > available:
                raise OversellError(lot.id, quantity, max(available, ZERO))
        changes["quantity"] = quantity
    if sell_price is not None:
        _require_positive(sell_price, "sell_price")
        changes["sell_price"] = sell_price
    if sell_date is not None:
        _require_not_future(sell_date, "sell_date", today)
        if lot is not None and sell_date < lot.purchase_date:
            raise InvalidInputError(
                f"sell_date {sell_date} is before purchase_date {lot.purchase_date}",
                field="sell_date",
            )
        changes["sell_date"] = sell_date

    edited = replace(sale, **changes)
    logger.info(f"Sale edited: {sale_id} {sorted(changes)} profit={edited.profit}")
    return [edited if s.id == sale_id else s for s in sales], edited


# =============================================================================
# DIVIDENDS
# =============================================================================

def add_dividend(
        dividends: Sequence[DividendRecord],
        lots: Sequence[PurchaseLot],
        *,
        asset_id: str,
        received_on: date,
        amount: Decimal,
        today: date | None = None,
) -> tuple[list[DividendRecord], DividendRecord]:
    today = today or reporting_today()
    _find_lot(lots, asset_id)
    _require_positive(amount, "amount")
    _require_not_future(received_on, "received_on", today)

    record = DividendRecord(id=new_id(), asset_id=asset_id, received_on=received_on, amount=amount)
    logger.info(f"Dividend added: {record.id} lot={asset_id} {amount}")
    return [*dividends, record], record


def delete_dividend(dividends: Sequence[DividendRecord], dividend_id: str) -> list[DividendRecord]:
    if not any(d.id == dividend_id for d in dividends):
        raise DividendNotFoundError(dividend_id)
    logger.info(f"Dividend deleted: {dividend_id}")
    return [d for d in dividends if d.id != dividend_id]


def edit_dividend(
        dividends: Sequence[DividendRecord],
        dividend_id: str,
        *,
        received_on: date | None = None,
        amount: Decimal | None = None,
        today: date | None = None,
) -> tuple[list[DividendRecord], DividendRecord]:
    today = today or reporting_today()
    dividend = next((d for d in dividends if d.id == dividend_id), None)
    if dividend is None:
        raise DividendNotFoundError(dividend_id)
    changes: dict = {}

    if received_on is not None:
        _require_not_future(received_on, "received_on", today)
        changes["received_on"] = received_on
    if amount is not None:
        _require_positive(amount, "amount")
        changes["amount"] = amount

    edited = replace(dividend, **changes)
    logger.info(f"Dividend edited: {dividend_id} {sorted(changes)}")
    return [edited if d.id == dividend_id else d for d in dividends], edited
