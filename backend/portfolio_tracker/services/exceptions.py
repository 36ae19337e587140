# backend/portfolio_tracker/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
The application layer (main.py) maps them to HTTP responses.

The valuation core never raises any of these: missing rates and prices
degrade to documented fallbacks, and missing history is returned as an
explicit ComparisonUnavailable result. Everything below is raised at the
edit/storage/market-data boundary.

Exception Hierarchy:
    ServiceError (base)
    ├── InvalidInputError
    │   └── OversellError
    ├── ConfirmationRequiredError
    ├── NotFoundError
    │   ├── LotNotFoundError
    │   ├── HoldingNotFoundError
    │   ├── SaleNotFoundError
    │   ├── DividendNotFoundError
    │   └── TagNotFoundError
    ├── ConcurrentModificationError
    └── MarketDataError
        ├── ProviderUnavailableError
        ├── TickerNotFoundError
        └── RateLimitError
"""

from decimal import Decimal


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# INPUT ERRORS
# =============================================================================


class InvalidInputError(ServiceError):
    """
    Raised when an edit or creation request violates a lot/sale invariant.

    Examples: non-positive quantity or price, purchase date in the future,
    fund lot without an ISIN code.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class OversellError(InvalidInputError):
    """Raised when a sale asks for more than the lot's active quantity."""

    def __init__(self, lot_id: str, requested: Decimal, available: Decimal) -> None:
        self.lot_id = lot_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot sell {requested} of lot {lot_id}: only {available} held",
            field="quantity",
        )


class ConfirmationRequiredError(ServiceError):
    """
    Raised when a destructive operation is called without explicit confirmation.

    Attributes:
        action: Name of the operation that needs confirming
    """

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"'{action}' requires explicit confirmation")


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Lot", "Sale")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class LotNotFoundError(NotFoundError):
    def __init__(self, lot_id: str) -> None:
        super().__init__(f"Lot {lot_id} not found", resource_type="Lot", resource_id=lot_id)


class HoldingNotFoundError(NotFoundError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Holding {key} not found", resource_type="Holding", resource_id=key)


class SaleNotFoundError(NotFoundError):
    def __init__(self, sale_id: str) -> None:
        super().__init__(f"Sale {sale_id} not found", resource_type="Sale", resource_id=sale_id)


class DividendNotFoundError(NotFoundError):
    def __init__(self, dividend_id: str) -> None:
        super().__init__(
            f"Dividend {dividend_id} not found",
            resource_type="Dividend",
            resource_id=dividend_id,
        )


class TagNotFoundError(NotFoundError):
    def __init__(self, tag: str) -> None:
        super().__init__(f"Tag '{tag}' not found", resource_type="Tag", resource_id=tag)


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class ConcurrentModificationError(ServiceError):
    """
    Raised when a compare-and-swap write finds a newer version in storage.

    The caller should reload, reapply its edit and retry.

    Attributes:
        collection: Stored collection that changed ("lots", "sales", ...)
        expected_version: Version the caller read
        actual_version: Version currently stored
    """

    def __init__(self, collection: str, expected_version: int, actual_version: int) -> None:
        self.collection = collection
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"{collection} changed since version {expected_version} "
            f"(now {actual_version}); reload and retry"
        )


# =============================================================================
# MARKET DATA PROVIDER ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for market data provider failures.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when a market data provider is temporarily unavailable.

    This is a retryable error.
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class TickerNotFoundError(MarketDataError):
    """
    Raised when a symbol is not known to the provider.

    This is NOT a retryable error.
    """

    def __init__(self, ticker: str, provider: str) -> None:
        message = f"Ticker '{ticker}' not found by {provider}"
        super().__init__(message, provider=provider)
        self.ticker = ticker


class RateLimitError(MarketDataError):
    """
    Raised when the provider's rate limit has been exceeded.

    This is a retryable error (with backoff).

    Attributes:
        retry_after: Seconds to wait before retrying (if provided by API)
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


class PriceRefreshUnavailableError(MarketDataError):
    """Raised when a price refresh is requested but no quote provider is configured."""

    def __init__(self) -> None:
        super().__init__("Price refresh is not configured", provider=None)
