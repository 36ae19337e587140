# backend/portfolio_tracker/services/market_data/base.py
"""
Abstract interface for quote providers.

The valuation core never talks to a provider. Quotes are fetched by
PriceRefreshService and written back onto lots as current_price; rates end
up in the CurrencyConverter's table.

Retry:
    QuoteProvider._execute_with_retry retries ProviderUnavailableError and
    RateLimitError with exponential backoff (tenacity). TickerNotFoundError
    is permanent and raised immediately.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TypeVar, Callable, Any

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from portfolio_tracker.services.exceptions import (
    ProviderUnavailableError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Quote:
    """
    Latest price of one instrument.

    Attributes:
        symbol: Identifier the quote was requested for
        price: Unit price in `currency`
        currency: ISO 4217 code reported by the provider
        as_of: Provider timestamp of the price, if known
        is_market_open: True only during regular trading hours
    """

    symbol: str
    price: Decimal
    currency: str
    as_of: datetime | None = None
    is_market_open: bool = False

    def __post_init__(self) -> None:
        if self.price <= 0:
            raise ValueError(f"price must be positive, got {self.price}")


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class QuoteProvider(ABC):
    """
    Abstract base class for quote and FX rate providers.

    Subclasses can tune retries with class attributes:
        - MAX_RETRY_ATTEMPTS: Total attempts (default: 3)
        - RETRY_MIN_WAIT / RETRY_MAX_WAIT: Backoff bounds in seconds
        - RETRY_MULTIPLIER: Exponential multiplier
    """

    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_MIN_WAIT: int = 1
    RETRY_MAX_WAIT: int = 10
    RETRY_MULTIPLIER: int = 1

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used in logs and errors (e.g., "yahoo")."""
        pass

    @abstractmethod
    def get_quote(self, symbol: str) -> Quote:
        """
        Fetch the latest price for one instrument.

        Raises:
            TickerNotFoundError: Symbol unknown to the provider
            ProviderUnavailableError: Network or API error (retryable)
            RateLimitError: Rate limit exceeded (retryable)
        """
        pass

    @abstractmethod
    def get_rate(self, currency: str, reporting_currency: str) -> Decimal:
        """
        Units of reporting_currency per one unit of currency.

        Raises:
            TickerNotFoundError: No market for the pair
            ProviderUnavailableError: Network or API error (retryable)
        """
        pass

    def _execute_with_retry(
            self,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """Run func, retrying transient provider failures with backoff."""

        @retry(
            stop=stop_after_attempt(self.MAX_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.RETRY_MULTIPLIER,
                min=self.RETRY_MIN_WAIT,
                max=self.RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type((ProviderUnavailableError, RateLimitError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _inner() -> T:
            return func(*args, **kwargs)

        return _inner()
