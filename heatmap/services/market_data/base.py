# heatmap/services/market_data/base.py
"""
Abstract interface for quote providers.

Every provider variant (Financial Modeling Prep, Alpha Vantage, Yahoo
Finance) implements this contract, so the populator, the daily update job
and the valuation engine never branch on which one is configured.

Retry policy lives here once:
- ProviderUnavailableError and RateLimitError are retried with exponential backoff
- NoDataError, DeserializationError and BatchTooLargeError are raised immediately
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TypeVar, Callable, Any

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from heatmap.services.constants import (
    PRICE_PRECISION,
    PROVIDER_MAX_BATCH_SIZE,
    PROVIDER_MAX_RETRY_ATTEMPTS,
    PROVIDER_RETRY_MIN_WAIT,
    PROVIDER_RETRY_MAX_WAIT,
)
from heatmap.services.exceptions import (
    BatchTooLargeError,
    ProviderUnavailableError,
    RateLimitError,
    UnsupportedOperationError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Quote:
    """
    Current quote for one symbol.

    Attributes:
        symbol: Ticker, uppercase
        price: Last traded price
        open / high / low / previous_close: Session figures, None when not reported
        pe_ratio: Trailing P/E, None when not reported
        market_cap: Market capitalization in the quote currency
    """

    symbol: str
    price: Decimal
    open: Decimal | None = None
    high: Decimal | None = None
    low: Decimal | None = None
    previous_close: Decimal | None = None
    pe_ratio: Decimal | None = None
    market_cap: int | None = None


@dataclass(frozen=True)
class HistoricalPoint:
    """One daily close."""

    date: date
    close: Decimal

    def __post_init__(self) -> None:
        if self.close <= 0:
            raise ValueError(f"close price must be positive, got {self.close}")


@dataclass(frozen=True)
class InstrumentRef:
    """An entry of the provider's instrument universe."""

    symbol: str
    name: str | None = None
    sector: str | None = None
    market_cap: int | None = None


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class QuoteProvider(ABC):
    """
    Abstract base class for quote providers.

    Retry Behavior:
        `_execute_with_retry` wraps a call in tenacity's exponential backoff.
        Subclasses can tune it through class attributes:

        - MAX_RETRY_ATTEMPTS: Total attempts (default: 3)
        - RETRY_MIN_WAIT: Minimum wait in seconds (default: 1)
        - RETRY_MAX_WAIT: Maximum wait in seconds (default: 10)
        - RETRY_MULTIPLIER: Exponential multiplier (default: 1)

    Batch Limit:
        MAX_BATCH_SIZE symbols per batch_quotes() call (default: 100).
        Larger lists raise BatchTooLargeError before any network call.
    """

    MAX_RETRY_ATTEMPTS: int = PROVIDER_MAX_RETRY_ATTEMPTS
    RETRY_MIN_WAIT: int = PROVIDER_RETRY_MIN_WAIT
    RETRY_MAX_WAIT: int = PROVIDER_RETRY_MAX_WAIT
    RETRY_MULTIPLIER: int = 1

    MAX_BATCH_SIZE: int = PROVIDER_MAX_BATCH_SIZE

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier used in logs and errors (e.g. "fmp")."""
        pass

    @abstractmethod
    def current_quote(self, ticker: str) -> Quote:
        """
        Fetch the current quote for one symbol.

        Raises:
            ProviderUnavailableError: Network or transport failure (retried)
            RateLimitError: Provider quota exceeded (retried)
            NoDataError: Empty or invalid payload
            DeserializationError: Malformed JSON
        """
        pass

    @abstractmethod
    def batch_quotes(self, tickers: list[str]) -> list[Quote]:
        """
        Fetch current quotes for up to MAX_BATCH_SIZE symbols.

        Best effort: symbols the provider cannot price are omitted from
        the result, and callers compare the returned symbols against the
        requested ones.

        Raises:
            BatchTooLargeError: More than MAX_BATCH_SIZE symbols
        """
        pass

    @abstractmethod
    def historical_range(
            self,
            ticker: str,
            start_date: date,
            end_date: date,
    ) -> list[HistoricalPoint]:
        """
        Fetch daily closes in [start_date, end_date], ascending.

        Returns an empty list when the provider has no data. Points outside
        the range or with a missing/zero close are dropped.
        """
        pass

    def instrument_universe(self) -> list[InstrumentRef]:
        """
        List the instruments the provider can seed the catalog with.

        Raises:
            UnsupportedOperationError: Variant has no universe endpoint
        """
        raise UnsupportedOperationError(provider=self.name, operation="instrument_universe")

    # =========================================================================
    # SHARED HELPERS
    # =========================================================================

    def _check_batch_size(self, tickers: list[str]) -> None:
        if len(tickers) > self.MAX_BATCH_SIZE:
            raise BatchTooLargeError(
                provider=self.name,
                size=len(tickers),
                limit=self.MAX_BATCH_SIZE,
            )

    @staticmethod
    def _normalize(ticker: str) -> str:
        return ticker.strip().upper()

    @staticmethod
    def _filter_range(
            points: list[HistoricalPoint],
            start_date: date,
            end_date: date,
    ) -> list[HistoricalPoint]:
        """Keep points inside the range, one per date, sorted ascending."""
        by_date = {p.date: p for p in points if start_date <= p.date <= end_date}
        return [by_date[d] for d in sorted(by_date)]

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        """Convert a JSON number or numeric string to Decimal, None if unusable."""
        if value is None or value == "" or isinstance(value, bool):
            return None
        try:
            result = Decimal(str(value))
        except (ArithmeticError, ValueError, TypeError):
            return None
        if not result.is_finite():
            return None
        return result.quantize(PRICE_PRECISION)

    @staticmethod
    def _to_int(value: Any) -> int | None:
        if value is None or value == "" or isinstance(value, bool):
            return None
        try:
            result = Decimal(str(value))
        except (ArithmeticError, ValueError, TypeError):
            return None
        if not result.is_finite():
            return None
        return int(result)

    def _execute_with_retry(
            self,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Execute a function with retry logic for transient failures.

        Retries ProviderUnavailableError and RateLimitError with
        exponential backoff. Anything else propagates on the first attempt.
        """

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
