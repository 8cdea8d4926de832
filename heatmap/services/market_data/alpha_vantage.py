# heatmap/services/market_data/alpha_vantage.py
"""
Alpha Vantage quote provider.

Functions used:
    GLOBAL_QUOTE        one symbol per request, string-valued fields
    TIME_SERIES_DAILY   daily OHLCV keyed by ISO date

Alpha Vantage has no multi-symbol quote endpoint, so batch_quotes loops
over single quotes and omits symbols that fail. It has no universe
endpoint either.

Throttling is reported in-band with HTTP 200 and a "Note" or
"Information" body, which is mapped to RateLimitError.
"""

import logging
from datetime import date
from typing import Any

import httpx

from heatmap.services.exceptions import (
    DeserializationError,
    MarketDataError,
    NoDataError,
    RateLimitError,
)
from heatmap.services.market_data.base import HistoricalPoint, Quote
from heatmap.services.market_data.http_base import HTTPQuoteProvider

logger = logging.getLogger(__name__)

# TIME_SERIES_DAILY compact output covers the latest 100 data points
_COMPACT_MAX_DAYS = 100


class AlphaVantageProvider(HTTPQuoteProvider):
    """Alpha Vantage implementation of QuoteProvider."""

    def __init__(
            self,
            api_key: str | None,
            base_url: str = "https://www.alphavantage.co/query",
            timeout: float = 10.0,
            client: httpx.Client | None = None,
    ) -> None:
        super().__init__(api_key=api_key, base_url=base_url, timeout=timeout, client=client)

    @property
    def name(self) -> str:
        return "alpha_vantage"

    # =========================================================================
    # QUOTES
    # =========================================================================

    def current_quote(self, ticker: str) -> Quote:
        return self._execute_with_retry(self._fetch_quote, self._normalize(ticker))

    def _fetch_quote(self, ticker: str) -> Quote:
        payload = self._query({"function": "GLOBAL_QUOTE", "symbol": ticker}, ticker)

        body = payload.get("Global Quote")
        if body is None:
            raise DeserializationError(provider=self.name, reason="missing 'Global Quote'")
        if not isinstance(body, dict) or not body:
            raise NoDataError(provider=self.name, symbol=ticker, reason="empty quote")

        price = self._to_decimal(body.get("05. price"))
        if price is None:
            raise NoDataError(provider=self.name, symbol=ticker, reason="quote without price")

        return Quote(
            symbol=str(body.get("01. symbol") or ticker).upper(),
            price=price,
            open=self._to_decimal(body.get("02. open")),
            high=self._to_decimal(body.get("03. high")),
            low=self._to_decimal(body.get("04. low")),
            previous_close=self._to_decimal(body.get("08. previous close")),
        )

    def batch_quotes(self, tickers: list[str]) -> list[Quote]:
        self._check_batch_size(tickers)

        quotes = []
        for ticker in tickers:
            try:
                quotes.append(self.current_quote(ticker))
            except MarketDataError as e:
                logger.warning(f"Alpha Vantage quote for {ticker} omitted from batch: {e}")
        return quotes

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
        output_size = "compact" if (date.today() - start_date).days <= _COMPACT_MAX_DAYS else "full"
        payload = self._query(
            {"function": "TIME_SERIES_DAILY", "symbol": ticker, "outputsize": output_size},
            ticker,
        )

        series = payload.get("Time Series (Daily)")
        if series is None:
            return []
        if not isinstance(series, dict):
            raise DeserializationError(provider=self.name, reason="'Time Series (Daily)' is not an object")

        points = []
        for raw_date, values in series.items():
            if not isinstance(values, dict):
                continue
            close = self._to_decimal(values.get("4. close"))
            if close is None or close <= 0:
                continue
            try:
                point_date = date.fromisoformat(raw_date)
            except ValueError:
                continue
            points.append(HistoricalPoint(date=point_date, close=close))

        return self._filter_range(points, start_date, end_date)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _query(self, params: dict[str, str], symbol: str) -> dict:
        payload = self._get_json(self._base_url, params=params, symbol=symbol)
        if not isinstance(payload, dict):
            raise DeserializationError(provider=self.name, reason="response is not an object")

        if "Error Message" in payload:
            raise NoDataError(provider=self.name, symbol=symbol, reason=str(payload["Error Message"]))
        if "Note" in payload or "Information" in payload:
            logger.warning(f"Alpha Vantage throttled request for {symbol}")
            raise RateLimitError(provider=self.name)
        return payload
