# backend/portfolio_tracker/dependencies.py
"""
Dependency injection module for FastAPI services.

Process-wide collaborators (quote provider, market state) are singletons
created lazily on first use. PortfolioService itself is built per request
around that request's database session.

Usage in routers:
    from portfolio_tracker.dependencies import get_portfolio_service

    @router.get("/valuation")
    def get_valuation(service: PortfolioService = Depends(get_portfolio_service)):
        ...
"""

import logging
from decimal import Decimal
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from portfolio_tracker.config import settings
from portfolio_tracker.database import get_db
from portfolio_tracker.services.market_data.price_refresh import PriceRefreshService
from portfolio_tracker.services.market_data.yahoo import YahooQuoteProvider
from portfolio_tracker.services.portfolio_service import MarketState, PortfolioService
from portfolio_tracker.services.portfolio_store import PortfolioStore
from portfolio_tracker.services.valuation.types import InstrumentKeyPolicy

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON INSTANCES
# =============================================================================

@lru_cache(maxsize=1)
def get_quote_provider() -> YahooQuoteProvider:
    """Shared quote provider so retries and rate limits apply globally."""
    logger.debug("Initializing singleton YahooQuoteProvider")
    return YahooQuoteProvider(timeout=settings.quote_timeout)


@lru_cache(maxsize=1)
def get_price_refresh_service() -> PriceRefreshService:
    logger.debug("Initializing singleton PriceRefreshService")
    return PriceRefreshService(
        provider=get_quote_provider(),
        reporting_currency=settings.reporting_currency,
    )


@lru_cache(maxsize=1)
def get_market_state() -> MarketState:
    """Rates and market-open flags from the last refresh, shared by all requests."""
    return MarketState()


# =============================================================================
# PER-REQUEST SERVICES
# =============================================================================

def get_portfolio_service(db: Session = Depends(get_db)) -> PortfolioService:
    return PortfolioService(
        store=PortfolioStore(db),
        market_state=get_market_state(),
        refresher=get_price_refresh_service(),
        reporting_currency=settings.reporting_currency,
        policy=InstrumentKeyPolicy(settings.instrument_key_policy),
        lookback=settings.day_change_lookback,
        threshold=Decimal(settings.day_change_threshold),
        snapshot_limit=settings.snapshot_load_limit,
    )
