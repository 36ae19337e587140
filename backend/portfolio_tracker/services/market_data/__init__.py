# backend/portfolio_tracker/services/market_data/__init__.py
"""
Market data services package.

This package contains:
- Abstract interface for quote providers (base.py)
- Yahoo Finance implementation (yahoo.py)
- Price refresh workflow (price_refresh.py)

Usage:
    from portfolio_tracker.services.market_data import (
        QuoteProvider,
        Quote,
        YahooQuoteProvider,
        PriceRefreshService,
        RefreshResult,
    )
"""

from portfolio_tracker.services.market_data.base import Quote, QuoteProvider
from portfolio_tracker.services.market_data.price_refresh import PriceRefreshService, RefreshResult
from portfolio_tracker.services.market_data.yahoo import YahooQuoteProvider

__all__ = [
    "Quote",
    "QuoteProvider",
    "YahooQuoteProvider",
    "PriceRefreshService",
    "RefreshResult",
]
