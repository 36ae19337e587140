# backend/portfolio_tracker/services/market_data/yahoo.py
"""
Yahoo Finance quote provider.

Implements QuoteProvider with the yfinance library:
- Quote price: regularMarketPrice, falling back to previousClose
  (the last close is the best available price outside trading hours)
- Market open: marketState == "REGULAR"
- FX: the "{CCY}{REPORTING}=X" pair, e.g. USDJPY=X

Limitations:
- Rate limits (not officially documented, but exist)
- Data may be delayed (15-20 minutes for some markets)
- Japanese investment trusts (funds) are not listed; use a fund provider
"""

import logging
import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import yfinance as yf

from portfolio_tracker.services.constants import MARKET_STATE_OPEN, PRICE_PRECISION
from portfolio_tracker.services.exceptions import (
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
)
from portfolio_tracker.services.market_data.base import QuoteProvider, Quote

logger = logging.getLogger(__name__)


class YahooQuoteProvider(QuoteProvider):
    """
    Yahoo Finance implementation of QuoteProvider.

    Configuration:
        timeout: API request timeout in seconds (default: 10)
    """

    def __init__(self, timeout: int = 10) -> None:
        self._timeout = timeout
        logger.info(f"YahooQuoteProvider initialized (timeout={timeout}s)")

    @property
    def name(self) -> str:
        return "yahoo"

    # =========================================================================
    # QUOTES
    # =========================================================================

    def get_quote(self, symbol: str) -> Quote:
        return self._execute_with_retry(self._fetch_quote, symbol)

    def _fetch_quote(self, symbol: str) -> Quote:
        """Internal method to fetch a quote (called by retry wrapper)."""
        symbol = symbol.strip().upper()
        logger.debug(f"Fetching quote for {symbol}")

        try:
            info = yf.Ticker(symbol).info
        except Exception as e:
            raise self._classify_error(symbol, e) from e

        price = self._to_decimal((info or {}).get("regularMarketPrice"))
        if price is None or price <= 0:
            price = self._to_decimal((info or {}).get("previousClose"))
        if price is None or price <= 0:
            raise TickerNotFoundError(ticker=symbol, provider=self.name)

        return Quote(
            symbol=symbol,
            price=price,
            currency=(info.get("currency") or "USD").upper(),
            as_of=self._to_datetime(info.get("regularMarketTime")),
            is_market_open=info.get("marketState") == MARKET_STATE_OPEN,
        )

    # =========================================================================
    # FX RATES
    # =========================================================================

    def get_rate(self, currency: str, reporting_currency: str) -> Decimal:
        currency = currency.strip().upper()
        reporting_currency = reporting_currency.strip().upper()
        if currency == reporting_currency:
            return Decimal("1")
        quote = self.get_quote(f"{currency}{reporting_currency}=X")
        return quote.price

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _classify_error(self, symbol: str, error: Exception) -> Exception:
        """Map a yfinance/HTTP failure onto our exception hierarchy."""
        error_str = str(error).lower()
        if "not found" in error_str or "no data" in error_str or "404" in error_str:
            return TickerNotFoundError(ticker=symbol, provider=self.name)
        if "rate limit" in error_str or "too many requests" in error_str:
            return RateLimitError(provider=self.name)
        logger.error(f"Yahoo Finance error for {symbol}: {error}")
        return ProviderUnavailableError(provider=self.name, reason=str(error))

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        """Convert a value to Decimal, returning None for NaN/None."""
        if value is None:
            return None
        try:
            if math.isnan(float(value)):
                return None
            return Decimal(str(value)).quantize(PRICE_PRECISION)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _to_datetime(value: Any) -> datetime | None:
        """Epoch seconds to an aware UTC datetime."""
        if value is None:
            return None
        try:
            return datetime.fromtimestamp(int(value), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return None
