# heatmap/services/market_data/fmp.py
"""
Financial Modeling Prep quote provider.

Endpoints used (all under /api/v3):
    /quote/{SYM1,SYM2,...}                   current quotes, single or batch
    /historical-price-full/{SYM}?from=&to=   daily closes
    /sp500_constituent                       instrument universe

FMP reports an unknown symbol as an empty list (quotes) or an empty
object (history), and application errors as {"Error Message": "..."}.
"""

import logging
from datetime import date
from typing import Any

import httpx

from heatmap.services.exceptions import DeserializationError, NoDataError
from heatmap.services.market_data.base import HistoricalPoint, InstrumentRef, Quote
from heatmap.services.market_data.http_base import HTTPQuoteProvider

logger = logging.getLogger(__name__)


class FMPProvider(HTTPQuoteProvider):
    """
    Financial Modeling Prep implementation of QuoteProvider.

    Supports native batch quotes (comma-separated symbols in one request)
    and the S&P 500 constituent list as the instrument universe.

    Example:
        provider = FMPProvider(api_key="...")
        quotes = provider.batch_quotes(["AAPL", "MSFT"])
    """

    def __init__(
            self,
            api_key: str | None,
            base_url: str = "https://financialmodelingprep.com/api/v3",
            timeout: float = 10.0,
            client: httpx.Client | None = None,
    ) -> None:
        super().__init__(api_key=api_key, base_url=base_url, timeout=timeout, client=client)

    @property
    def name(self) -> str:
        return "fmp"

    # =========================================================================
    # QUOTES
    # =========================================================================

    def current_quote(self, ticker: str) -> Quote:
        return self._execute_with_retry(self._fetch_quote, self._normalize(ticker))

    def _fetch_quote(self, ticker: str) -> Quote:
        payload = self._get_json(f"{self._base_url}/quote/{ticker}", symbol=ticker)
        entries = self._expect_list(payload, ticker)
        if not entries:
            raise NoDataError(provider=self.name, symbol=ticker, reason="empty quote list")

        quote = self._parse_quote(entries[0])
        if quote is None:
            raise NoDataError(provider=self.name, symbol=ticker, reason="quote without price")
        return quote

    def batch_quotes(self, tickers: list[str]) -> list[Quote]:
        self._check_batch_size(tickers)
        symbols = [self._normalize(t) for t in tickers]
        if not symbols:
            return []
        return self._execute_with_retry(self._fetch_batch, symbols)

    def _fetch_batch(self, symbols: list[str]) -> list[Quote]:
        joined = ",".join(symbols)
        payload = self._get_json(f"{self._base_url}/quote/{joined}", symbol=joined)
        entries = self._expect_list(payload, joined)

        quotes = []
        for entry in entries:
            quote = self._parse_quote(entry)
            if quote is None:
                logger.warning(f"Skipping unparseable FMP quote entry: {entry!r:.200}")
                continue
            quotes.append(quote)

        logger.debug(f"FMP batch returned {len(quotes)}/{len(symbols)} quotes")
        return quotes

    def _parse_quote(self, entry: Any) -> Quote | None:
        if not isinstance(entry, dict):
            return None
        symbol = entry.get("symbol")
        price = self._to_decimal(entry.get("price"))
        if not symbol or price is None:
            return None

        return Quote(
            symbol=str(symbol).upper(),
            price=price,
            open=self._to_decimal(entry.get("open")),
            high=self._to_decimal(entry.get("dayHigh", entry.get("high"))),
            low=self._to_decimal(entry.get("dayLow", entry.get("low"))),
            previous_close=self._to_decimal(entry.get("previousClose")),
            pe_ratio=self._to_decimal(entry.get("pe")),
            market_cap=self._to_int(entry.get("marketCap")),
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
        payload = self._get_json(
            f"{self._base_url}/historical-price-full/{ticker}",
            params={"from": start_date.isoformat(), "to": end_date.isoformat()},
            symbol=ticker,
        )

        if isinstance(payload, list) and not payload:
            return []
        if not isinstance(payload, dict):
            raise DeserializationError(provider=self.name, reason="history payload is not an object")
        self._raise_for_error_body(payload, ticker)

        rows = payload.get("historical") or []
        if not isinstance(rows, list):
            raise DeserializationError(provider=self.name, reason="'historical' is not a list")

        points = []
        for row in rows:
            point = self._parse_history_row(row)
            if point is not None:
                points.append(point)

        result = self._filter_range(points, start_date, end_date)
        logger.debug(f"FMP history for {ticker}: {len(result)} points in {start_date}..{end_date}")
        return result

    def _parse_history_row(self, row: Any) -> HistoricalPoint | None:
        if not isinstance(row, dict):
            return None
        raw_date = row.get("date")
        close = self._to_decimal(row.get("close"))
        if not raw_date or close is None or close <= 0:
            return None
        try:
            point_date = date.fromisoformat(str(raw_date)[:10])
        except ValueError:
            return None
        return HistoricalPoint(date=point_date, close=close)

    # =========================================================================
    # UNIVERSE
    # =========================================================================

    def instrument_universe(self) -> list[InstrumentRef]:
        return self._execute_with_retry(self._fetch_universe)

    def _fetch_universe(self) -> list[InstrumentRef]:
        payload = self._get_json(f"{self._base_url}/sp500_constituent", symbol="sp500_constituent")
        entries = self._expect_list(payload, "sp500_constituent")

        refs = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("symbol"):
                continue
            refs.append(InstrumentRef(
                symbol=str(entry["symbol"]).upper(),
                name=entry.get("name"),
                sector=entry.get("sector"),
                market_cap=self._to_int(entry.get("marketCap")),
            ))
        logger.info(f"FMP universe: {len(refs)} instruments")
        return refs

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _expect_list(self, payload: Any, symbol: str) -> list:
        if isinstance(payload, dict):
            self._raise_for_error_body(payload, symbol)
        if not isinstance(payload, list):
            raise DeserializationError(provider=self.name, reason=f"expected a list for '{symbol}'")
        return payload

    def _raise_for_error_body(self, payload: dict, symbol: str) -> None:
        message = payload.get("Error Message") or payload.get("error")
        if message:
            raise NoDataError(provider=self.name, symbol=symbol, reason=str(message))
