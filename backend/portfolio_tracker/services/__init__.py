# backend/portfolio_tracker/services/__init__.py
"""
Service layer for business logic.

Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions
- Receive their store / providers as constructor arguments

Usage:
    from portfolio_tracker.services.portfolio_service import PortfolioService
    from portfolio_tracker.services import (
        InvalidInputError,
        ConfirmationRequiredError,
        NotFoundError,
        MarketDataError,
    )

Architecture:
    services/
    ├── __init__.py             # This file - exception exports
    ├── exceptions.py           # Domain exceptions
    ├── constants.py            # Business constants and limits
    ├── protocols.py            # Store / provider interfaces
    ├── tags.py                 # TagRegistry
    ├── portfolio_editor.py     # Pure edit operations (add, edit, sell, ...)
    ├── portfolio_store.py      # SQLAlchemy storage with compare-and-swap
    ├── portfolio_service.py    # Orchestrator used by the routers
    ├── valuation/              # Consolidation, valuation, comparison core
    └── market_data/            # Quote providers and price refresh
"""

from portfolio_tracker.services.exceptions import (
    ConcurrentModificationError,
    ConfirmationRequiredError,
    DividendNotFoundError,
    HoldingNotFoundError,
    InvalidInputError,
    LotNotFoundError,
    MarketDataError,
    NotFoundError,
    OversellError,
    PriceRefreshUnavailableError,
    ProviderUnavailableError,
    RateLimitError,
    SaleNotFoundError,
    ServiceError,
    TagNotFoundError,
    TickerNotFoundError,
)

__all__ = [
    "ServiceError",
    "InvalidInputError",
    "OversellError",
    "ConfirmationRequiredError",
    "NotFoundError",
    "LotNotFoundError",
    "HoldingNotFoundError",
    "SaleNotFoundError",
    "DividendNotFoundError",
    "TagNotFoundError",
    "ConcurrentModificationError",
    "MarketDataError",
    "ProviderUnavailableError",
    "PriceRefreshUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
]
