# backend/portfolio_tracker/services/portfolio_service.py
"""
Portfolio service: orchestrates storage, edit operations and the valuation core.

Read side:
    load lots + sales -> PortfolioConsolidator -> holdings
    holdings + rates  -> ValuationEngine / PeriodComparisonEngine / allocation

Write side (read-modify-write with compare-and-swap):
    version = store.version(collection)
    items   = store.load_*()
    items'  = portfolio_editor.<operation>(items, ...)
    store.save_*(items', expected_version=version)

A concurrent writer between load and save makes the save fail with
ConcurrentModificationError instead of silently overwriting.

Live market state (rates and per-holding market-open flags) comes from the
last price refresh and is shared across requests through MarketState.
Without a refresh, the USD rate of the latest snapshot is used.

Usage:
    service = PortfolioService(PortfolioStore(db), market_state)
    valuation = service.valuation()
    comparison = service.comparison(PeriodType.WEEK)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal

from portfolio_tracker.services import portfolio_editor as editor
from portfolio_tracker.services.exceptions import (
    HoldingNotFoundError,
    LotNotFoundError,
    PriceRefreshUnavailableError,
)
from portfolio_tracker.services.market_data.price_refresh import PriceRefreshService, RefreshResult
from portfolio_tracker.services.protocols import PortfolioStoreProtocol
from portfolio_tracker.services.tags import TagRegistry, retag_lots
from portfolio_tracker.services.valuation import (
    AllocationGroup,
    AllocationSlice,
    ComparisonUnavailable,
    ConsolidatedHolding,
    CurrencyConverter,
    DailySnapshot,
    DividendRecord,
    InstrumentKeyPolicy,
    PeriodComparison,
    PeriodComparisonEngine,
    PeriodType,
    PortfolioConsolidator,
    PortfolioValuation,
    PurchaseLot,
    SaleRecord,
    SaleSummary,
    ValuationEngine,
    allocation_by,
    build_snapshot,
    summarize_sales,
)
from portfolio_tracker.services.valuation.types import ZERO
from portfolio_tracker.utils.date_utils import reporting_today

logger = logging.getLogger(__name__)


@dataclass
class MarketState:
    """Rates and market-open flags from the most recent price refresh."""

    rates: dict[str, Decimal] = field(default_factory=dict)
    market_open: dict[str, bool] = field(default_factory=dict)
    refreshed_at: datetime | None = None

    def update(self, result: RefreshResult) -> None:
        self.rates.update(result.rates)
        self.market_open = dict(result.market_open)
        self.refreshed_at = datetime.now(timezone.utc)


class PortfolioService:
    """
    Application service for one portfolio store.

    Args:
        store: Storage collaborator
        market_state: Shared live rates / market-open flags
        refresher: Price refresh workflow (None disables refresh_prices)
        reporting_currency: Currency all totals are reported in
        policy: Instrument key policy for consolidation
        lookback / threshold: Day-comparison changed-value search
        snapshot_limit: Snapshots loaded for comparisons
    """

    def __init__(
            self,
            store: PortfolioStoreProtocol,
            market_state: MarketState | None = None,
            refresher: PriceRefreshService | None = None,
            reporting_currency: str = "JPY",
            policy: InstrumentKeyPolicy = InstrumentKeyPolicy.IDENTIFIER,
            lookback: int = 7,
            threshold: Decimal = Decimal("1"),
            snapshot_limit: int = 400,
    ) -> None:
        self.store = store
        self.market_state = market_state or MarketState()
        self.refresher = refresher
        self.reporting_currency = reporting_currency.upper()
        self.consolidator = PortfolioConsolidator(policy=policy)
        self.lookback = lookback
        self.threshold = threshold
        self.snapshot_limit = snapshot_limit

    # =========================================================================
    # ENGINES
    # =========================================================================

    def converter(self, snapshots: list[DailySnapshot] | None = None) -> CurrencyConverter:
        """Rate table: latest snapshot's USD rate, overridden by live rates."""
        stored: dict[str, Decimal] = {}
        if snapshots and snapshots[-1].exchange_rate and self.reporting_currency != "USD":
            stored["USD"] = snapshots[-1].exchange_rate
        return CurrencyConverter(self.reporting_currency, stored).with_rates(self.market_state.rates)

    def engine(self, snapshots: list[DailySnapshot] | None = None) -> ValuationEngine:
        if snapshots is None:
            snapshots = self.store.load_snapshots(1)
        return ValuationEngine(self.converter(snapshots))

    # =========================================================================
    # READ SIDE
    # =========================================================================

    def holdings(self) -> list[ConsolidatedHolding]:
        return self.consolidator.consolidate(self.store.load_lots(), self.store.load_sales())

    def holding(self, key: str) -> ConsolidatedHolding:
        holding = self.consolidator.find(key, self.store.load_lots(), self.store.load_sales())
        if holding is None:
            raise HoldingNotFoundError(key)
        return holding

    def valuation(self) -> PortfolioValuation:
        return self.engine().value_portfolio(self.holdings())

    def comparison(
            self,
            period: PeriodType,
            today: date | None = None,
    ) -> PeriodComparison | ComparisonUnavailable:
        snapshots = self.store.load_snapshots(self.snapshot_limit)
        engine = PeriodComparisonEngine(
            self.engine(snapshots),
            lookback=self.lookback,
            threshold=self.threshold,
        )
        return engine.compare(
            self.holdings(),
            snapshots,
            period,
            market_open=self.market_state.market_open,
            today=today,
        )

    def allocation(self, group_by: AllocationGroup) -> list[AllocationSlice]:
        return allocation_by(self.holdings(), self.engine(), group_by)

    def snapshots(self, max_count: int | None = None) -> list[DailySnapshot]:
        return self.store.load_snapshots(max_count or self.snapshot_limit)

    def sales(self) -> list[SaleRecord]:
        return sorted(self.store.load_sales(), key=lambda s: s.sell_date, reverse=True)

    def sale_summary(self) -> SaleSummary:
        return summarize_sales(self.store.load_sales())

    def dividends(self) -> list[DividendRecord]:
        return sorted(self.store.load_dividends(), key=lambda d: d.received_on, reverse=True)

    def dividend_total(self, holding_key: str | None = None) -> Decimal:
        """Cumulative dividends overall, or for one holding's lots."""
        dividends = self.store.load_dividends()
        if holding_key is not None:
            lot_ids = set(self.holding(holding_key).asset_ids)
            dividends = [d for d in dividends if d.asset_id in lot_ids]
        return sum((d.amount for d in dividends), ZERO)

    def deleted_lots(self) -> list[PurchaseLot]:
        return self.store.load_deleted_lots()

    # =========================================================================
    # LOT EDITS
    # =========================================================================

    def add_lot(self, expected_version: int | None = None, **fields) -> PurchaseLot:
        version = self._version("lots", expected_version)
        lots, lot = editor.add_lot(self.store.load_lots(), **fields)
        self.store.save_lots(lots, expected_version=version)
        return lot

    def edit_lot(self, lot_id: str, expected_version: int | None = None, **fields) -> PurchaseLot:
        version = self._version("lots", expected_version)
        lots, lot = editor.edit_lot(
            self.store.load_lots(), self.store.load_sales(), lot_id, **fields
        )
        self.store.save_lots(lots, expected_version=version)
        return lot

    def edit_holding(
            self,
            key: str,
            expected_version: int | None = None,
            **fields,
    ) -> ConsolidatedHolding:
        version = self._version("lots", expected_version)
        holding = self.holding(key)
        lots = editor.edit_holding(self.store.load_lots(), holding.asset_ids, **fields)
        self.store.save_lots(lots, expected_version=version)
        # the key may change under the name policy
        renamed_key = self.consolidator.key_of(next(lot for lot in lots if lot.id == holding.asset_ids[0]))
        return self.holding(renamed_key)

    def delete_lot(
            self,
            lot_id: str,
            confirm: bool = False,
            expected_version: int | None = None,
    ) -> None:
        version = self._version("lots", expected_version)
        lots = editor.delete_lots(self.store.load_lots(), [lot_id], confirm=confirm)
        self.store.save_lots(lots, expected_version=version)

    def delete_holding(
            self,
            key: str,
            confirm: bool = False,
            expected_version: int | None = None,
    ) -> None:
        version = self._version("lots", expected_version)
        holding = self.holding(key)
        lots = editor.delete_lots(self.store.load_lots(), holding.asset_ids, confirm=confirm)
        self.store.save_lots(lots, expected_version=version)

    def restore_lot(self, lot_id: str, expected_version: int | None = None) -> PurchaseLot:
        version = self._version("lots", expected_version)
        if not any(lot.id == lot_id for lot in self.store.load_deleted_lots()):
            raise LotNotFoundError(lot_id)
        return self.store.restore_lot(lot_id, expected_version=version)

    # =========================================================================
    # SALES
    # =========================================================================

    def sell(
            self,
            lot_id: str,
            quantity: Decimal,
            sell_price: Decimal,
            sell_date: date,
            expected_version: int | None = None,
            today: date | None = None,
    ) -> SaleRecord:
        version = self._version("sales", expected_version)
        lots = self.store.load_lots()
        lot = next((item for item in lots if item.id == lot_id), None)
        exchange_rate = None
        if lot is not None and lot.currency != self.reporting_currency:
            lookup = self.engine().converter.lookup(lot.currency)
            if lookup.is_fallback:
                logger.warning(
                    f"No {lot.currency} rate known; sale of lot {lot_id} "
                    f"recorded without an exchange rate"
                )
            else:
                exchange_rate = lookup.rate

        sales, record = editor.sell(
            lots,
            self.store.load_sales(),
            lot_id,
            quantity=quantity,
            sell_price=sell_price,
            sell_date=sell_date,
            exchange_rate=exchange_rate,
            today=today,
        )
        self.store.save_sales(sales, expected_version=version)
        return record

    def delete_sale(self, sale_id: str, expected_version: int | None = None) -> None:
        version = self._version("sales", expected_version)
        sales = editor.delete_sale(self.store.load_sales(), sale_id)
        self.store.save_sales(sales, expected_version=version)

    def edit_sale(
            self,
            sale_id: str,
            expected_version: int | None = None,
            today: date | None = None,
            **fields,
    ) -> SaleRecord:
        version = self._version("sales", expected_version)
        sales, record = editor.edit_sale(
            self.store.load_lots(), self.store.load_sales(), sale_id, today=today, **fields
        )
        self.store.save_sales(sales, expected_version=version)
        return record

    # =========================================================================
    # DIVIDENDS
    # =========================================================================

    def add_dividend(
            self,
            asset_id: str,
            received_on: date,
            amount: Decimal,
            today: date | None = None,
    ) -> DividendRecord:
        version = self.store.version("dividends")
        dividends, record = editor.add_dividend(
            self.store.load_dividends(),
            self.store.load_lots(),
            asset_id=asset_id,
            received_on=received_on,
            amount=amount,
            today=today,
        )
        self.store.save_dividends(dividends, expected_version=version)
        return record

    def delete_dividend(self, dividend_id: str) -> None:
        version = self.store.version("dividends")
        dividends = editor.delete_dividend(self.store.load_dividends(), dividend_id)
        self.store.save_dividends(dividends, expected_version=version)

    def edit_dividend(self, dividend_id: str, today: date | None = None, **fields) -> DividendRecord:
        version = self.store.version("dividends")
        dividends, record = editor.edit_dividend(
            self.store.load_dividends(), dividend_id, today=today, **fields
        )
        self.store.save_dividends(dividends, expected_version=version)
        return record

    # =========================================================================
    # TAGS
    # =========================================================================

    def tags(self) -> TagRegistry:
        """Registered tags plus any tag used on a lot but never registered."""
        registry = self.store.load_tags()
        for lot in self.store.load_lots():
            for name in sorted(lot.tags):
                registry = registry.add(name)
        return registry

    def add_tag(self, name: str, color: str | None = None) -> TagRegistry:
        version = self.store.version("tags")
        registry = self.tags().add(name, color)
        self.store.save_tags(registry, expected_version=version)
        return registry

    def remove_tag(self, name: str) -> TagRegistry:
        """Unregister a tag and strip it from every lot."""
        return self._retag(name, None)

    def rename_tag(self, old: str, new: str) -> TagRegistry:
        return self._retag(old, new)

    def _retag(self, old: str, new: str | None) -> TagRegistry:
        tags_version = self.store.version("tags")
        lots_version = self.store.version("lots")
        registry = self.tags()
        registry = registry.remove(old) if new is None else registry.rename(old, new)
        lots = retag_lots(self.store.load_lots(), old, new.strip() if new else None)
        self.store.save_lots(lots, expected_version=lots_version)
        self.store.save_tags(registry, expected_version=tags_version)
        logger.info(f"Tag {'removed' if new is None else 'renamed'}: {old} -> {new}")
        return registry

    # =========================================================================
    # PRICE REFRESH
    # =========================================================================

    def refresh_prices(self, today: date | None = None) -> RefreshResult:
        """
        Refresh current prices and rates, then record today's snapshot.

        Raises:
            PriceRefreshUnavailableError: No refresher configured
        """
        if self.refresher is None:
            raise PriceRefreshUnavailableError()

        version = self.store.version("lots")
        lots = self.store.load_lots()
        snapshots = self.store.load_snapshots(1)
        previous = self.converter(snapshots).rates

        result = self.refresher.refresh(lots, self.consolidator.key_of, previous_rates=previous)
        self.store.save_lots(result.lots, expected_version=version)
        self.market_state.update(result)

        engine = ValuationEngine(CurrencyConverter(self.reporting_currency, result.rates))
        holdings = self.consolidator.consolidate(result.lots, self.store.load_sales())
        if holdings:
            snapshot = build_snapshot(
                today or reporting_today(),
                holdings,
                engine,
                self.store.load_dividends(),
            )
            self.store.save_snapshot(snapshot)
        return result

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _version(self, collection: str, expected_version: int | None) -> int:
        """Caller-supplied version, else the one current at load time."""
        if expected_version is not None:
            return expected_version
        return self.store.version(collection)

