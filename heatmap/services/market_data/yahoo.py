# heatmap/services/market_data/yahoo.py
"""
Yahoo Finance quote provider implementation.

Implements QuoteProvider using the yfinance library. Yahoo Finance is a
free data source suitable for personal use and needs no API key.

Key features:
- Batch quotes through yf.Tickers
- Daily closes through Ticker.history (raw, not dividend-adjusted)
- Error classification by message (rate limit, not found, transient)

Limitations:
- Rate limits exist but are not documented
- Quotes may be delayed 15-20 minutes
- No instrument universe endpoint
"""

import logging
import math
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

import yfinance as yf

from heatmap.services.constants import PRICE_PRECISION
from heatmap.services.exceptions import (
    MarketDataError,
    NoDataError,
    ProviderUnavailableError,
    RateLimitError,
)
from heatmap.services.market_data.base import HistoricalPoint, Quote, QuoteProvider

logger = logging.getLogger(__name__)


class YahooFinanceProvider(QuoteProvider):
    """
    Yahoo Finance implementation of QuoteProvider.

    Retry Behavior (inherited from QuoteProvider):
        - Retries on ProviderUnavailableError and RateLimitError
        - Does NOT retry on NoDataError (unknown ticker, empty history)
        - Exponential backoff: 1s -> 2s -> 4s, at most 3 attempts

    Example:
        provider = YahooFinanceProvider(timeout=15)
        quote = provider.current_quote("NVDA")
        points = provider.historical_range("NVDA", date(2024, 1, 1), date(2024, 12, 31))
    """

    def __init__(self, timeout: int = 10) -> None:
        self._timeout = timeout
        logger.info(f"YahooFinanceProvider initialized (timeout={timeout}s)")

    @property
    def name(self) -> str:
        return "yahoo"

    # =========================================================================
    # QUOTES
    # =========================================================================

    def current_quote(self, ticker: str) -> Quote:
        return self._execute_with_retry(self._fetch_quote, self._normalize(ticker))

    def _fetch_quote(self, ticker: str) -> Quote:
        logger.debug(f"Fetching quote for {ticker}")
        try:
            info = yf.Ticker(ticker).info
        except Exception as e:
            raise self._classify_error(ticker, e)

        quote = self._map_to_quote(info, ticker)
        if quote is None:
            raise NoDataError(provider=self.name, symbol=ticker, reason="no price in quote info")
        return quote

    def batch_quotes(self, tickers: list[str]) -> list[Quote]:
        self._check_batch_size(tickers)
        symbols = [self._normalize(t) for t in tickers]
        if not symbols:
            return []
        return self._execute_with_retry(self._fetch_batch, symbols)

    def _fetch_batch(self, symbols: list[str]) -> list[Quote]:
        try:
            yf_tickers = yf.Tickers(" ".join(symbols))
        except Exception as e:
            raise self._classify_error(",".join(symbols), e)

        quotes = []
        for symbol in symbols:
            yf_ticker = yf_tickers.tickers.get(symbol)
            if yf_ticker is None:
                continue
            try:
                quote = self._map_to_quote(yf_ticker.info, symbol)
            except Exception as e:
                logger.warning(f"Yahoo quote for {symbol} omitted from batch: {e}")
                continue
            if quote is not None:
                quotes.append(quote)

        return quotes

    def _map_to_quote(self, info: dict | None, ticker: str) -> Quote | None:
        """Map a yfinance info dict to a Quote, None when it carries no price."""
        if not info:
            return None
        price = self._to_decimal(info.get("regularMarketPrice") or info.get("currentPrice"))
        if price is None:
            return None

        return Quote(
            symbol=ticker,
            price=price,
            open=self._to_decimal(info.get("regularMarketOpen") or info.get("open")),
            high=self._to_decimal(info.get("dayHigh")),
            low=self._to_decimal(info.get("dayLow")),
            previous_close=self._to_decimal(info.get("previousClose")),
            pe_ratio=self._to_decimal(info.get("trailingPE")),
            market_cap=self._to_int(info.get("marketCap")),
        )

    # =========================================================================
    # HISTORY
    # =========================================================================

    def historical_range(
            self,
            ticker: str,
            start_date: date,
            end_date: date,
    ) -> list[HistoricalPoint]:
        return self._execute_with_retry(
            self._fetch_history,
            self._normalize(ticker),
            start_date,
            end_date,
        )

    def _fetch_history(self, ticker: str, start_date: date, end_date: date) -> list[HistoricalPoint]:
        logger.debug(f"Fetching history for {ticker}: {start_date} to {end_date}")

        try:
            # Yahoo's end date is exclusive
            df = yf.Ticker(ticker).history(
                start=start_date.isoformat(),
                end=(end_date + timedelta(days=1)).isoformat(),
                interval="1d",
                auto_adjust=False,
            )
        except Exception as e:
            raise self._classify_error(ticker, e)

        if df is None or df.empty:
            logger.warning(f"No price data for {ticker} between {start_date} and {end_date}")
            return []

        points = []
        for idx, row in df.iterrows():
            price_date = idx.date() if hasattr(idx, "date") else idx
            close = self._to_decimal(row.get("Close"))
            if close is None or close <= 0:
                logger.warning(f"Skipping {ticker} {price_date}: missing close price")
                continue
            points.append(HistoricalPoint(date=price_date, close=close))

        return self._filter_range(points, start_date, end_date)

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        """Convert a value to Decimal, returning None for NaN/None."""
        if value is None:
            return None
        try:
            if math.isnan(float(value)):
                return None
            return Decimal(str(value)).quantize(PRICE_PRECISION)
        except (TypeError, ValueError, ArithmeticError):
            return None

    def _classify_error(self, symbol: str, error: Exception) -> MarketDataError:
        """Turn a yfinance exception into the matching provider error."""
        error_str = str(error).lower()
        if "rate limit" in error_str or "too many requests" in error_str:
            return RateLimitError(provider=self.name)
        if "not found" in error_str or "no data" in error_str or "delisted" in error_str:
            return NoDataError(provider=self.name, symbol=symbol, reason=str(error))

        logger.error(f"Yahoo Finance error for {symbol}: {error}")
        return ProviderUnavailableError(provider=self.name, reason=str(error))
