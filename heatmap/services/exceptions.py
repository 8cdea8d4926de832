# heatmap/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
Callers outside the core map them to their own responses.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── NotFoundError
    │   ├── PortfolioNotFoundError
    │   ├── HoldingNotFoundError
    │   └── StockNotFoundError
    ├── DuplicateHoldingError
    └── MarketDataError
        ├── ProviderUnavailableError   (retryable)
        ├── RateLimitError             (retryable)
        ├── NoDataError
        ├── DeserializationError
        ├── BatchTooLargeError
        └── UnsupportedOperationError
"""


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
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when a service is called with invalid arguments.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Portfolio", "Stock")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class PortfolioNotFoundError(NotFoundError):

    def __init__(self, portfolio_id: int) -> None:
        self.portfolio_id = portfolio_id
        super().__init__(
            f"Portfolio {portfolio_id} not found",
            resource_type="Portfolio",
            resource_id=portfolio_id,
        )


class HoldingNotFoundError(NotFoundError):

    def __init__(self, holding_id: int) -> None:
        self.holding_id = holding_id
        super().__init__(
            f"Holding {holding_id} not found",
            resource_type="Holding",
            resource_id=holding_id,
        )


class StockNotFoundError(NotFoundError):
    """Raised when a ticker is not in the instrument catalog."""

    def __init__(self, ticker: str) -> None:
        self.ticker = ticker
        super().__init__(
            f"Stock '{ticker}' not found",
            resource_type="Stock",
            resource_id=ticker,
        )


# =============================================================================
# HOLDING ERRORS
# =============================================================================


class DuplicateHoldingError(ServiceError):
    """Raised when a portfolio already holds the ticker."""

    def __init__(self, portfolio_id: int, ticker: str) -> None:
        self.portfolio_id = portfolio_id
        self.ticker = ticker
        super().__init__(f"Portfolio {portfolio_id} already holds '{ticker}'")


# =============================================================================
# MARKET DATA PROVIDER ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for quote provider failures.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when the provider cannot be reached.

    Examples:
    - Network timeout or connection reset
    - Server errors (500, 502, 503)

    This is a retryable error.
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


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


class NoDataError(MarketDataError):
    """
    Raised when the provider answers but has nothing usable for a symbol.

    Covers unknown tickers, empty payloads and error bodies. Not retryable.
    """

    def __init__(self, provider: str, symbol: str, reason: str = "no data returned") -> None:
        super().__init__(f"No data from '{provider}' for '{symbol}': {reason}", provider=provider)
        self.symbol = symbol
        self.reason = reason


class DeserializationError(MarketDataError):
    """Raised when a provider response is not the JSON shape expected."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"Malformed response from '{provider}': {reason}", provider=provider)
        self.reason = reason


class BatchTooLargeError(MarketDataError):
    """Raised before any network call when a batch exceeds the provider limit."""

    def __init__(self, provider: str, size: int, limit: int) -> None:
        super().__init__(
            f"Batch of {size} symbols exceeds the {limit}-symbol limit of '{provider}'",
            provider=provider,
        )
        self.size = size
        self.limit = limit


class UnsupportedOperationError(MarketDataError):
    """Raised when a provider variant has no endpoint for an operation."""

    def __init__(self, provider: str, operation: str) -> None:
        super().__init__(f"Provider '{provider}' does not support {operation}", provider=provider)
        self.operation = operation


__all__ = [
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "PortfolioNotFoundError",
    "HoldingNotFoundError",
    "StockNotFoundError",
    "DuplicateHoldingError",
    "MarketDataError",
    "ProviderUnavailableError",
    "RateLimitError",
    "NoDataError",
    "DeserializationError",
    "BatchTooLargeError",
    "UnsupportedOperationError",
]
