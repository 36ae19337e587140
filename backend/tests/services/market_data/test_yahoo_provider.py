# backend/tests/services/market_data/test_yahoo_provider.py
"""
Tests for the YahooQuoteProvider.

This module tests:
- Quote parsing (price fallback, currency, market state, timestamp)
- FX pair construction
- Error handling and classification
- Retry of transient failures

Note: These tests mock the yfinance library to avoid actual API calls.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from portfolio_tracker.services.exceptions import (
    ProviderUnavailableError,
    RateLimitError,
    TickerNotFoundError,
)
from portfolio_tracker.services.market_data.yahoo import YahooQuoteProvider


def _fast_provider() -> YahooQuoteProvider:
    """Provider with retries that do not sleep."""
    provider = YahooQuoteProvider()
    provider.MAX_RETRY_ATTEMPTS = 2
    provider.RETRY_MIN_WAIT = 0
    provider.RETRY_MAX_WAIT = 0
    return provider


def _ticker(info):
    mock_ticker = MagicMock()
    mock_ticker.info = info
    return mock_ticker


# =============================================================================
# PROVIDER INITIALIZATION
# =============================================================================

class TestYahooProviderInit:

    def test_provider_name(self):
        assert YahooQuoteProvider().name == "yahoo"

    def test_default_timeout(self):
        assert YahooQuoteProvider()._timeout == 10

    def test_custom_timeout(self):
        assert YahooQuoteProvider(timeout=30)._timeout == 30


# =============================================================================
# QUOTES
# =============================================================================

class TestGetQuote:

    @patch('portfolio_tracker.services.market_data.yahoo.yf')
    def test_regular_market_price(self, mock_yf):
        mock_yf.Ticker.return_value = _ticker({
            "regularMarketPrice": 2850.5,
            "previousClose": 2800.0,
            "currency": "JPY",
            "marketState": "REGULAR",
            "regularMarketTime": 1710475200,
        })

        quote = YahooQuoteProvider().get_quote(" 7203.t ")

        mock_yf.Ticker.assert_called_once_with("7203.T")
        assert quote.symbol == "7203.T"
        assert quote.price == Decimal("2850.5")
        assert quote.currency == "JPY"
        assert quote.is_market_open is True
        assert quote.as_of == datetime.fromtimestamp(1710475200, tz=timezone.utc)

    @patch('portfolio_tracker.services.market_data.yahoo.yf')
    def test_previous_close_outside_trading_hours(self, mock_yf):
        mock_yf.Ticker.return_value = _ticker({
            "regularMarketPrice": None,
            "previousClose": 189.25,
            "currency": "usd",
            "marketState": "CLOSED",
        })

        quote = YahooQuoteProvider().get_quote("AAPL")

        assert quote.price == Decimal("189.25")
        assert quote.currency == "USD"
        assert quote.is_market_open is False
        assert quote.as_of is None

    @patch('portfolio_tracker.services.market_data.yahoo.yf')
    def test_nan_price_falls_back(self, mock_yf):
        mock_yf.Ticker.return_value = _ticker({
            "regularMarketPrice": float("nan"),
            "previousClose": 100.0,
        })

        quote = YahooQuoteProvider().get_quote("AAPL")

        assert quote.price == Decimal("100")
        assert quote.currency == "USD"

    @patch('portfolio_tracker.services.market_data.yahoo.yf')
    def test_no_price_is_ticker_not_found(self, mock_yf):
        mock_yf.Ticker.return_value = _ticker({})

        with pytest.raises(TickerNotFoundError) as exc_info:
            YahooQuoteProvider().get_quote("INVALID")

        assert exc_info.value.ticker == "INVALID"
        assert exc_info.value.provider == "yahoo"

    @patch('portfolio_tracker.services.market_data.yahoo.yf')
    def test_none_info_is_ticker_not_found(self, mock_yf):
        mock_yf.Ticker.return_value = _ticker(None)

        with pytest.raises(TickerNotFoundError):
            YahooQuoteProvider().get_quote("INVALID")


# =============================================================================
# FX RATES
# =============================================================================

class TestGetRate:

    def test_same_currency_is_one(self):
        assert YahooQuoteProvider().get_rate("jpy", "JPY") == Decimal("1")

    @patch('portfolio_tracker.services.market_data.yahoo.yf')
    def test_pair_symbol(self, mock_yf):
        mock_yf.Ticker.return_value = _ticker({"regularMarketPrice": 149.87})

        rate = YahooQuoteProvider().get_rate("usd", "jpy")

        mock_yf.Ticker.assert_called_once_with("USDJPY=X")
        assert rate == Decimal("149.87")


# =============================================================================
# ERROR HANDLING
# =============================================================================

class TestErrorHandling:

    @patch('portfolio_tracker.services.market_data.yahoo.yf')
    def test_not_found_message(self, mock_yf):
        mock_yf.Ticker.side_effect = Exception("404 Client Error: Not Found")

        with pytest.raises(TickerNotFoundError):
            _fast_provider().get_quote("NOPE")

        assert mock_yf.Ticker.call_count == 1

    @patch('portfolio_tracker.services.market_data.yahoo.yf')
    def test_rate_limit(self, mock_yf):
        mock_yf.Ticker.side_effect = Exception("Too many requests")

        with pytest.raises(RateLimitError) as exc_info:
            _fast_provider().get_quote("AAPL")

        assert exc_info.value.provider == "yahoo"
        assert mock_yf.Ticker.call_count == 2

    @patch('portfolio_tracker.services.market_data.yahoo.yf')
    def test_network_error(self, mock_yf):
        mock_yf.Ticker.side_effect = Exception("Connection timeout")

        with pytest.raises(ProviderUnavailableError) as exc_info:
            _fast_provider().get_quote("AAPL")

        assert exc_info.value.provider == "yahoo"
        assert isinstance(exc_info.value.__cause__, Exception)

    @patch('portfolio_tracker.services.market_data.yahoo.yf')
    def test_transient_failure_is_retried(self, mock_yf):
        mock_yf.Ticker.side_effect = [
            Exception("Connection reset"),
            _ticker({"regularMarketPrice": 150.0, "currency": "USD"}),
        ]

        quote = _fast_provider().get_quote("AAPL")

        assert quote.price == Decimal("150")
        assert mock_yf.Ticker.call_count == 2
