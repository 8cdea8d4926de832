# heatmap/services/price_update_service.py
"""
Daily price update.

Once per trading day (after the close) the scheduler calls
update_daily_prices(), which quotes every catalog instrument in batches of
the provider's MAX_BATCH_SIZE and stores today's close where no row for
today exists yet.

refresh_latest_price() is the on-demand variant for one instrument: it
overwrites today's row with a fresh quote.
"""

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from heatmap.models import PriceHistory, Stock
from heatmap.services.constants import CASH_TICKER
from heatmap.services.exceptions import MarketDataError, StockNotFoundError
from heatmap.services.lookup_cache import LookupCache
from heatmap.services.market_data.base import QuoteProvider
from heatmap.services.price_history import PriceEntry, PriceHistoryStore

logger = logging.getLogger(__name__)


@dataclass
class DailyUpdateResult:
    """Outcome of a daily update."""

    on_date: date
    instruments_total: int = 0
    rows_written: int = 0
    already_present: int = 0
    missing_quotes: list[str] = field(default_factory=list)
    failed_batches: int = 0


class PriceUpdateService:
    """Writes today's close for catalog instruments."""

    def __init__(
            self,
            provider: QuoteProvider,
            store: PriceHistoryStore | None = None,
            cache: LookupCache | None = None,
    ) -> None:
        self._provider = provider
        self._store = store or PriceHistoryStore()
        self._cache = cache

    def update_daily_prices(self, db: Session, today: date | None = None) -> DailyUpdateResult:
        """
        Store today's quote for every catalog instrument lacking a row for today.

        A batch whose quote call fails is logged and skipped; the other
        batches still run. Each batch commits on its own.
        """
        today = today or date.today()
        tickers = [
            t for t in db.scalars(select(Stock.ticker).order_by(Stock.ticker)).all()
            if t.upper() != CASH_TICKER
        ]
        result = DailyUpdateResult(on_date=today, instruments_total=len(tickers))

        already = set(db.scalars(
            select(PriceHistory.stock_ticker).where(PriceHistory.date == today)
        ).all())

        batch_size = self._provider.MAX_BATCH_SIZE
        for i in range(0, len(tickers), batch_size):
            batch = tickers[i:i + batch_size]
            try:
                quotes = self._provider.batch_quotes(batch)
            except MarketDataError as e:
                logger.error(f"Daily update batch {i // batch_size + 1} failed: {e}")
                result.failed_batches += 1
                continue

            by_symbol = {q.symbol: q for q in quotes}
            for ticker in batch:
                quote = by_symbol.get(ticker.upper())
                if quote is None:
                    result.missing_quotes.append(ticker)
                    continue
                if ticker in already:
                    result.already_present += 1
                    continue

                self._store.put(db, PriceEntry(
                    ticker=ticker,
                    date=today,
                    closing_price=quote.price,
                    pe_ratio=quote.pe_ratio,
                    market_cap=quote.market_cap,
                ))
                result.rows_written += 1
                if self._cache is not None:
                    self._cache.invalidate_ticker(ticker)

            db.commit()

        if result.missing_quotes:
            logger.warning(
                f"Daily update: no quote for {len(result.missing_quotes)} instruments: "
                f"{', '.join(result.missing_quotes[:20])}"
            )
        logger.info(
            f"Daily update for {today}: {result.rows_written} written, "
            f"{result.already_present} already present, "
            f"{len(result.missing_quotes)} missing, {result.failed_batches} failed batches"
        )
        return result

    def refresh_latest_price(self, db: Session, ticker: str, today: date | None = None) -> PriceHistory:
        """
        Re-quote one instrument and upsert its row for today.

        Raises:
            StockNotFoundError: Ticker is not in the catalog
            MarketDataError: Quote could not be fetched
        """
        if db.get(Stock, ticker) is None:
            raise StockNotFoundError(ticker)

        quote = self._provider.current_quote(ticker)
        row = self._store.put(db, PriceEntry(
            ticker=ticker,
            date=today or date.today(),
            closing_price=quote.price,
            pe_ratio=quote.pe_ratio,
            market_cap=quote.market_cap,
        ))
        db.commit()

        if self._cache is not None:
            self._cache.invalidate_ticker(ticker)

        logger.info(f"Refreshed {ticker}: {quote.price} on {row.date}")
        return row
