# backend/portfolio_tracker/services/market_data/price_refresh.py
"""
Price refresh workflow.

Fetches one quote per instrument, writes the price back onto every lot of
that instrument as current_price, and fetches a rate for each non-reporting
currency in the portfolio.

Failure policy: a failed quote keeps the lot's previous current_price, a
failed rate keeps the previous rate if one was passed in. Every failure is
logged and returned in RefreshResult.errors; nothing here raises for a
single instrument.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal

from portfolio_tracker.services.exceptions import MarketDataError
from portfolio_tracker.services.market_data.base import Quote
from portfolio_tracker.services.protocols import QuoteProviderProtocol
from portfolio_tracker.services.valuation.types import AssetType, PurchaseLot

logger = logging.getLogger(__name__)


@dataclass
class RefreshResult:
    """
    Attributes:
        lots: All lots, current_price updated where a quote was fetched
        rates: Currency -> rate to the reporting currency
        market_open: Holding key -> market open flag from the quote
        errors: One line per failed quote or rate
        updated: Number of instruments with a fresh price
    """

    lots: list[PurchaseLot]
    rates: dict[str, Decimal] = field(default_factory=dict)
    market_open: dict[str, bool] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    updated: int = 0


class PriceRefreshService:
    """
    Refreshes current prices and rates through QuoteProviders.

    Args:
        provider: Quote source for tradables (stock, etf, crypto, other)
        reporting_currency: Rates are fetched into this currency
        fund_provider: Quote source for funds, keyed by ISIN; fund lots keep
                       their stored price when None
    """

    def __init__(
            self,
            provider: QuoteProviderProtocol,
            reporting_currency: str = "JPY",
            fund_provider: QuoteProviderProtocol | None = None,
    ) -> None:
        self.provider = provider
        self.reporting_currency = reporting_currency.upper()
        self.fund_provider = fund_provider

    def refresh(
            self,
            lots: Sequence[PurchaseLot],
            key_of: Callable[[PurchaseLot], str],
            previous_rates: Mapping[str, Decimal] | None = None,
    ) -> RefreshResult:
        """
        Refresh prices for all lots.

        Args:
            lots: Current lots
            key_of: Holding key of a lot (the consolidator's key policy)
            previous_rates: Rates to keep when a rate fetch fails
        """
        result = RefreshResult(lots=list(lots))
        quotes: dict[str, Quote] = {}

        for lot in lots:
            ref = lot.quote_ref
            if not ref or ref in quotes:
                continue
            quote = self._fetch(lot, ref, result.errors)
            if quote is None:
                continue
            quotes[ref] = quote
            if quote.currency != lot.currency:
                logger.warning(
                    f"Quote for {ref} is in {quote.currency}, lot {lot.id} is in {lot.currency}"
                )

        refreshed = []
        for lot in lots:
            quote = quotes.get(lot.quote_ref) if lot.quote_ref else None
            if quote is None:
                refreshed.append(lot)
                continue
            refreshed.append(replace(lot, current_price=quote.price))
            key = key_of(lot)
            result.market_open[key] = result.market_open.get(key, False) or quote.is_market_open
        result.lots = refreshed
        result.updated = len(quotes)

        result.rates = self._fetch_rates(lots, previous_rates or {}, result.errors)

        logger.info(
            f"Prices refreshed: {result.updated} instruments, "
            f"{len(result.rates)} rates, {len(result.errors)} errors"
        )
        return result

    def _fetch(self, lot: PurchaseLot, ref: str, errors: list[str]) -> Quote | None:
        provider = self.fund_provider if lot.asset_type == AssetType.FUND else self.provider
        if provider is None:
            logger.debug(f"No provider for {lot.asset_type.value} {ref}; keeping stored price")
            return None
        try:
            return provider.get_quote(ref)
        except MarketDataError as e:
            logger.warning(f"Quote failed for {ref}: {e}")
            errors.append(f"{lot.name} ({ref}): {e}")
            return None

    def _fetch_rates(
            self,
            lots: Sequence[PurchaseLot],
            previous: Mapping[str, Decimal],
            errors: list[str],
    ) -> dict[str, Decimal]:
        rates: dict[str, Decimal] = {}
        currencies = sorted({lot.currency for lot in lots} - {self.reporting_currency})
        for currency in currencies:
            try:
                rates[currency] = self.provider.get_rate(currency, self.reporting_currency)
            except MarketDataError as e:
                logger.warning(f"Rate failed for {currency}/{self.reporting_currency}: {e}")
                errors.append(f"{currency}/{self.reporting_currency}: {e}")
                if currency in previous:
                    rates[currency] = previous[currency]
        return rates
